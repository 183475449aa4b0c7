"""Compact little-endian binary encoding and hashing shared by the relay-chain types."""

from __future__ import annotations

import hashlib

# The big-integer compact mode stores the byte count minus four in six bits.
_COMPACT_MAX_BYTES = 4 + 63


class CodecError(ValueError):
    """Raised when a value cannot be encoded or input cannot be decoded."""


class Input:
    """A read cursor over encoded bytes."""

    def __init__(self, data):
        self._data = bytes(data)
        self._pos = 0

    def read(self, size):
        """Take exactly ``size`` bytes from the input."""
        if size < 0:
            raise CodecError(f"cannot read a negative number of bytes: {size}")
        end = self._pos + size
        if end > len(self._data):
            remaining = len(self._data) - self._pos
            raise CodecError(f"need {size} bytes but only {remaining} remain")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def read_u8(self):
        return self.read(1)[0]

    def read_u32(self):
        return int.from_bytes(self.read(4), "little")

    def read_u64(self):
        return int.from_bytes(self.read(8), "little")

    def read_compact(self):
        """Read an unsigned integer in compact form."""
        first = self.read_u8()
        mode = first & 0b11
        if mode == 0:
            return first >> 2
        if mode == 1:
            return int.from_bytes(bytes([first]) + self.read(1), "little") >> 2
        if mode == 2:
            return int.from_bytes(bytes([first]) + self.read(3), "little") >> 2
        return int.from_bytes(self.read((first >> 2) + 4), "little")

    def read_bytes(self):
        """Read a length-prefixed byte string."""
        return self.read(self.read_compact())

    def at_end(self):
        return self._pos == len(self._data)


def _encode_uint(value, width):
    if not 0 <= value < 1 << (8 * width):
        raise CodecError(f"{value} does not fit in {width * 8} unsigned bits")
    return value.to_bytes(width, "little")


def encode_u8(value):
    return _encode_uint(value, 1)


def encode_u32(value):
    return _encode_uint(value, 4)


def encode_u64(value):
    return _encode_uint(value, 8)


def encode_compact(value):
    """Encode an unsigned integer in compact form."""
    if value < 0:
        raise CodecError(f"compact integers are unsigned, got {value}")
    if value < 1 << 6:
        return bytes([value << 2])
    if value < 1 << 14:
        return ((value << 2) | 0b01).to_bytes(2, "little")
    if value < 1 << 30:
        return ((value << 2) | 0b10).to_bytes(4, "little")
    length = max(4, (value.bit_length() + 7) // 8)
    if length > _COMPACT_MAX_BYTES:
        raise CodecError(f"{value} is too large for compact encoding")
    return bytes([((length - 4) << 2) | 0b11]) + value.to_bytes(length, "little")


def encode_bytes(data):
    """Encode a byte string with its compact length prefix."""
    data = bytes(data)
    return encode_compact(len(data)) + data


def encode_fixed(data, size):
    """Return ``data`` as bytes, requiring exactly ``size`` of them."""
    data = bytes(data)
    if len(data) != size:
        raise CodecError(f"expected {size} bytes, got {len(data)}")
    return data


def blake2_256(data):
    """Blake2b hash with a 256-bit output."""
    return hashlib.blake2b(bytes(data), digest_size=32).digest()