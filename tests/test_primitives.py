import pytest
from Crypto.PublicKey import ECC
from Crypto.Signature import eddsa

from dotrelay.codec import CodecError, Input, blake2_256, encode_u8, encode_u32
from dotrelay.primitives import (
    AttestedCandidate,
    BlockData,
    CandidateReceipt,
    Chain,
    Collation,
    HeadData,
    OutgoingMessage,
    Statement,
    StatementKind,
    ValidityAttestation,
)


def _signed_receipt(block_data):
    key = ECC.construct(curve="Ed25519", seed=bytes([7]) * 32)
    public = key.public_key().export_key(format="raw")
    block_hash = block_data.hash()
    signature = eddsa.new(key, "rfc8032").sign(block_hash)
    return CandidateReceipt(
        parachain_index=5,
        collator=public,
        signature=signature,
        head_data=HeadData(bytes([9, 9, 9])),
        fees=1_000_000,
        block_data_hash=block_hash,
    )


def _full_receipt():
    return CandidateReceipt(
        parachain_index=5,
        collator=bytes([255]) * 32,
        signature=bytes([2]) * 64,
        head_data=HeadData(bytes([1, 2, 3])),
        balance_uploads=[(bytes([4]) * 32, 77)],
        egress_queue_roots=[(3, bytes([5]) * 32), (8, bytes([6]) * 32)],
        fees=12,
        block_data_hash=bytes([3]) * 32,
    )


def test_chain_encoding():
    assert Chain.relay().encode() == encode_u8(0)
    assert Chain.parachain(5).encode() == encode_u8(1) + encode_u32(5)
    assert Chain.relay().is_relay
    assert not Chain.parachain(0).is_relay


def test_block_data_hash_and_round_trip():
    data = BlockData(bytes([1, 2, 3, 4]))
    assert data.hash() == blake2_256(bytes([1, 2, 3, 4]))
    assert BlockData.decode(data.encode()) == data


def test_receipt_round_trip():
    receipt = _full_receipt()
    inp = Input(receipt.encode())
    assert CandidateReceipt.decode(inp) == receipt
    assert inp.at_end()


def test_default_receipt_round_trip():
    receipt = CandidateReceipt(parachain_index=0)
    assert CandidateReceipt.decode(receipt.encode()) == receipt


def test_receipt_hash_tracks_content():
    a = _full_receipt()
    b = _full_receipt()
    assert a.hash() == b.hash()
    b.fees += 1
    assert a.hash() != b.hash()


def test_truncated_receipt_raises():
    with pytest.raises(CodecError):
        CandidateReceipt.decode(_full_receipt().encode()[:-1])


def test_wrong_sized_collator_cannot_encode():
    receipt = CandidateReceipt(parachain_index=1, collator=b"short")
    with pytest.raises(CodecError):
        receipt.encode()


def test_check_signature_accepts_valid():
    receipt = _signed_receipt(BlockData(bytes([1, 2, 3, 4])))
    assert receipt.check_signature() is True


def test_check_signature_rejects_wrong_hash():
    receipt = _signed_receipt(BlockData(bytes([1, 2, 3, 4])))
    receipt.block_data_hash = BlockData(bytes([4, 3, 2, 1])).hash()
    assert receipt.check_signature() is False


def test_check_signature_rejects_default_receipt():
    assert CandidateReceipt(parachain_index=0).check_signature() is False


def test_receipts_order_by_parachain_then_head():
    a = CandidateReceipt(parachain_index=2, head_data=HeadData(b"\x01"))
    b = CandidateReceipt(parachain_index=1, head_data=HeadData(b"\x09"))
    c = CandidateReceipt(parachain_index=1, head_data=HeadData(b"\x02"))
    assert sorted([a, b, c]) == [c, b, a]


def test_outgoing_messages_order_by_target():
    msgs = [OutgoingMessage(9, b"a"), OutgoingMessage(1, b"z"), OutgoingMessage(4, b"m")]
    assert [m.target for m in sorted(msgs)] == [1, 4, 9]


def test_collation_round_trip_with_trailing_data():
    collation = Collation(BlockData(bytes([4, 5, 6])), _full_receipt())
    inp = Input(collation.encode() + b"tail")
    assert Collation.decode(inp) == collation
    assert inp.read(4) == b"tail"


def test_statement_encodings_use_wire_indices():
    receipt = _full_receipt()
    digest = receipt.hash()
    assert Statement.candidate_of(receipt).encode() == bytes([1]) + receipt.encode()
    assert Statement.valid(digest).encode() == bytes([2]) + digest
    assert Statement.invalid(digest).encode() == bytes([3]) + digest


def test_statement_subject_hash():
    receipt = _full_receipt()
    assert Statement.candidate_of(receipt).subject_hash == receipt.hash()
    assert Statement.valid(bytes([1]) * 32).subject_hash == bytes([1]) * 32


@pytest.mark.parametrize(
    "kwargs",
    [
        {"kind": StatementKind.CANDIDATE},
        {"kind": StatementKind.VALID},
        {"kind": StatementKind.INVALID, "candidate_hash": b"short"},
        {"kind": StatementKind.VALID, "candidate": CandidateReceipt(parachain_index=1)},
    ],
)
def test_malformed_statements_raise(kwargs):
    with pytest.raises(ValueError):
        Statement(**kwargs)


def test_attested_candidate_parachain_index():
    attested = AttestedCandidate(
        CandidateReceipt(parachain_index=42),
        [(bytes([1]) * 32, ValidityAttestation(bytes(64), explicit=True))],
    )
    assert attested.parachain_index == 42
    assert attested.validity_votes[0][1].explicit is True