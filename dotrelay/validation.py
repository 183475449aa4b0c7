"""Inputs and outputs of a parachain validation function."""

from __future__ import annotations

from dataclasses import dataclass

from .codec import Input, encode_bytes


def _as_input(source):
    return source if isinstance(source, Input) else Input(source)


@dataclass(frozen=True)
class ValidationParams:
    """Parameters passed to a parachain's validation function."""

    block_data: bytes
    parent_head: bytes

    def encode(self):
        return encode_bytes(self.block_data) + encode_bytes(self.parent_head)

    @classmethod
    def decode(cls, data):
        inp = _as_input(data)
        block_data = inp.read_bytes()
        return cls(block_data, inp.read_bytes())


@dataclass(frozen=True)
class ValidationResult:
    """Result of validation: the new head data."""

    head_data: bytes

    def encode(self):
        return encode_bytes(self.head_data)

    @classmethod
    def decode(cls, data):
        return cls(_as_input(data).read_bytes())


@dataclass(frozen=True)
class MessageRef:
    """A message posted to another parachain during validation."""

    target: int
    data: bytes

    def __post_init__(self):
        if not 0 <= self.target < 1 << 32:
            raise ValueError(f"target parachain {self.target} is not a 32-bit id")