"""Parachain types exchanged between collators and validators."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from Crypto.PublicKey import ECC  # noqa: F401  (keeps the EdDSA backend importable)
from Crypto.Signature import eddsa

from .codec import (
    Input,
    blake2_256,
    encode_bytes,
    encode_compact,
    encode_fixed,
    encode_u8,
    encode_u32,
    encode_u64,
)

HASH_LEN = 32
SIGNATURE_LEN = 64


def _as_input(source):
    return source if isinstance(source, Input) else Input(source)


@dataclass(frozen=True)
class Chain:
    """Either the relay chain (``para_id`` is None) or one parachain."""

    para_id: int | None = None

    @classmethod
    def relay(cls):
        return cls()

    @classmethod
    def parachain(cls, para_id):
        return cls(para_id)

    @property
    def is_relay(self):
        return self.para_id is None

    def encode(self):
        if self.para_id is None:
            return encode_u8(0)
        return encode_u8(1) + encode_u32(self.para_id)


@dataclass
class DutyRoster:
    """For each validator index, the chain it must validate."""

    validator_duty: list[Chain] = field(default_factory=list)


@dataclass
class OutgoingMessage:
    """A message to another parachain; ordered by target only."""

    target: int
    data: bytes

    def __lt__(self, other):
        return self.target < other.target

    def __le__(self, other):
        return self.target <= other.target

    def __gt__(self, other):
        return self.target > other.target

    def __ge__(self, other):
        return self.target >= other.target


@dataclass
class Extrinsic:
    """Data produced by evaluating a candidate, sorted by target parachain."""

    outgoing_messages: list[OutgoingMessage] = field(default_factory=list)


@dataclass(frozen=True, order=True)
class HeadData:
    """Parachain head data included in the relay chain."""

    data: bytes = b""


@dataclass(frozen=True)
class BlockData:
    """Everything needed to validate a parachain block."""

    data: bytes = b""

    def hash(self):
        return blake2_256(self.data)

    def encode(self):
        return encode_bytes(self.data)

    @classmethod
    def decode(cls, source):
        return cls(_as_input(source).read_bytes())


@dataclass
class CandidateReceipt:
    """A collator's claim about a parachain block."""

    parachain_index: int
    collator: bytes = bytes(HASH_LEN)
    signature: bytes = bytes(SIGNATURE_LEN)
    head_data: HeadData = field(default_factory=HeadData)
    balance_uploads: list[tuple[bytes, int]] = field(default_factory=list)
    egress_queue_roots: list[tuple[int, bytes]] = field(default_factory=list)
    fees: int = 0
    block_data_hash: bytes = bytes(HASH_LEN)

    def encode(self):
        parts = [
            encode_u32(self.parachain_index),
            encode_fixed(self.collator, HASH_LEN),
            encode_fixed(self.signature, SIGNATURE_LEN),
            encode_bytes(self.head_data.data),
            encode_compact(len(self.balance_uploads)),
        ]
        parts.extend(
            encode_fixed(account, HASH_LEN) + encode_u64(amount)
            for account, amount in self.balance_uploads
        )
        parts.append(encode_compact(len(self.egress_queue_roots)))
        parts.extend(
            encode_u32(para_id) + encode_fixed(root, HASH_LEN)
            for para_id, root in self.egress_queue_roots
        )
        parts.append(encode_u64(self.fees))
        parts.append(encode_fixed(self.block_data_hash, HASH_LEN))
        return b"".join(parts)

    @classmethod
    def decode(cls, source):
        inp = _as_input(source)
        parachain_index = inp.read_u32()
        collator = inp.read(HASH_LEN)
        signature = inp.read(SIGNATURE_LEN)
        head_data = HeadData(inp.read_bytes())
        balance_uploads = [
            (inp.read(HASH_LEN), inp.read_u64()) for _ in range(inp.read_compact())
        ]
        egress_queue_roots = [
            (inp.read_u32(), inp.read(HASH_LEN)) for _ in range(inp.read_compact())
        ]
        fees = inp.read_u64()
        block_data_hash = inp.read(HASH_LEN)
        return cls(
            parachain_index=parachain_index,
            collator=collator,
            signature=signature,
            head_data=head_data,
            balance_uploads=balance_uploads,
            egress_queue_roots=egress_queue_roots,
            fees=fees,
            block_data_hash=block_data_hash,
        )

    def hash(self):
        return blake2_256(self.encode())

    def check_signature(self):
        """Return whether the collator signed the block data hash."""
        try:
            key = eddsa.import_public_key(bytes(self.collator))
            eddsa.new(key, "rfc8032").verify(bytes(self.block_data_hash), bytes(self.signature))
        except ValueError:
            return False
        return True

    def _sort_key(self):
        return (self.parachain_index, self.head_data)

    def __lt__(self, other):
        return self._sort_key() < other._sort_key()

    def __le__(self, other):
        return self._sort_key() <= other._sort_key()

    def __gt__(self, other):
        return self._sort_key() > other._sort_key()

    def __ge__(self, other):
        return self._sort_key() >= other._sort_key()


@dataclass
class Collation:
    """Block data together with its candidate receipt."""

    block_data: BlockData
    receipt: CandidateReceipt

    def encode(self):
        return self.block_data.encode() + self.receipt.encode()

    @classmethod
    def decode(cls, source):
        inp = _as_input(source)
        block_data = BlockData.decode(inp)
        return cls(block_data, CandidateReceipt.decode(inp))


class StatementKind(enum.IntEnum):
    """Kinds of statements, valued by their wire index."""

    CANDIDATE = 1
    VALID = 2
    INVALID = 3


@dataclass(frozen=True)
class Statement:
    """A statement about a parachain candidate."""

    kind: StatementKind
    candidate: CandidateReceipt | None = None
    candidate_hash: bytes | None = None

    def __post_init__(self):
        if self.kind is StatementKind.CANDIDATE:
            if self.candidate is None or self.candidate_hash is not None:
                raise ValueError("a candidate statement carries a receipt only")
        else:
            if self.candidate is not None or self.candidate_hash is None:
                raise ValueError("a validity statement carries a candidate hash only")
            if len(self.candidate_hash) != HASH_LEN:
                raise ValueError("candidate hash must be 32 bytes")

    @classmethod
    def candidate_of(cls, receipt):
        return cls(StatementKind.CANDIDATE, candidate=receipt)

    @classmethod
    def valid(cls, candidate_hash):
        return cls(StatementKind.VALID, candidate_hash=bytes(candidate_hash))

    @classmethod
    def invalid(cls, candidate_hash):
        return cls(StatementKind.INVALID, candidate_hash=bytes(candidate_hash))

    @property
    def subject_hash(self):
        """Hash of the candidate the statement is about."""
        if self.candidate is not None:
            return self.candidate.hash()
        return self.candidate_hash

    def encode(self):
        body = self.candidate.encode() if self.candidate is not None else self.candidate_hash
        return encode_u8(self.kind) + body


@dataclass(frozen=True)
class ValidityAttestation:
    """Implicit (by issuing the candidate) or explicit validity signature."""

    signature: bytes
    explicit: bool = False


@dataclass
class AttestedCandidate:
    """A candidate with its validity votes."""

    candidate: CandidateReceipt
    validity_votes: list[tuple[bytes, ValidityAttestation]] = field(default_factory=list)

    @property
    def parachain_index(self):
        return self.candidate.parachain_index


@dataclass(frozen=True)
class SignedStatement:
    """A statement together with its sender's signature."""

    statement: Statement
    signature: bytes
    sender: bytes