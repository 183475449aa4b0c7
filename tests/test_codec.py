import pytest

from dotrelay.codec import (
    CodecError,
    Input,
    blake2_256,
    encode_bytes,
    encode_compact,
    encode_fixed,
    encode_u8,
    encode_u32,
    encode_u64,
)


def test_blake2_256_of_empty_input():
    assert blake2_256(b"").hex() == (
        "0e5751c026e543b2e8ab2eb06099daa1d1e5df47778f7787faab45cdf12fe3a8"
    )


def test_blake2_256_distinguishes_inputs():
    assert blake2_256(b"a") != blake2_256(b"b")
    assert len(blake2_256(b"attestations")) == 32


def test_u32_is_little_endian():
    assert encode_u32(1) == b"\x01\x00\x00\x00"


def test_small_compact_is_single_byte():
    assert encode_compact(1) == b"\x04"


@pytest.mark.parametrize("value", [0, 1, 127, 255])
def test_u8_round_trip(value):
    assert Input(encode_u8(value)).read_u8() == value


@pytest.mark.parametrize("value", [0, 5, 2**16, 2**32 - 1])
def test_u32_round_trip(value):
    assert Input(encode_u32(value)).read_u32() == value


@pytest.mark.parametrize("value", [0, 1_000_000, 2**64 - 1])
def test_u64_round_trip(value):
    assert Input(encode_u64(value)).read_u64() == value


@pytest.mark.parametrize(
    "value",
    [0, 1, 63, 64, 16383, 16384, 2**30 - 1, 2**30, 2**32, 2**64, 2**128 - 1],
)
def test_compact_round_trip(value):
    inp = Input(encode_compact(value))
    assert inp.read_compact() == value
    assert inp.at_end()


def test_compact_length_never_shrinks():
    values = [0, 63, 64, 16383, 16384, 2**30 - 1, 2**30, 2**40, 2**100]
    lengths = [len(encode_compact(v)) for v in values]
    assert lengths == sorted(lengths)


@pytest.mark.parametrize(
    "encoder, value",
    [(encode_u8, 256), (encode_u32, -1), (encode_u32, 2**32), (encode_u64, 2**64)],
)
def test_out_of_range_integers_raise(encoder, value):
    with pytest.raises(CodecError):
        encoder(value)


def test_negative_compact_raises():
    with pytest.raises(CodecError):
        encode_compact(-1)


def test_oversized_compact_raises():
    with pytest.raises(CodecError):
        encode_compact(1 << (8 * 70))


def test_bytes_are_prefixed_with_compact_length():
    payload = bytes(range(100))
    encoded = encode_bytes(payload)
    assert encoded == encode_compact(len(payload)) + payload
    inp = Input(encoded)
    assert inp.read_bytes() == payload
    assert inp.at_end()


def test_sequential_reads():
    data = encode_u8(7) + encode_u32(9) + encode_bytes(b"xyz") + encode_u64(11)
    inp = Input(data)
    assert inp.read_u8() == 7
    assert inp.read_u32() == 9
    assert inp.read_bytes() == b"xyz"
    assert inp.read_u64() == 11
    assert inp.at_end()


def test_reading_past_end_raises():
    inp = Input(b"\x01\x02")
    with pytest.raises(CodecError):
        inp.read_u32()


def test_truncated_byte_string_raises():
    encoded = encode_bytes(b"hello")[:-1]
    with pytest.raises(CodecError):
        Input(encoded).read_bytes()


def test_negative_read_raises():
    with pytest.raises(CodecError):
        Input(b"abc").read(-1)


def test_encode_fixed_checks_size():
    assert encode_fixed(bytearray(b"ab"), 2) == b"ab"
    with pytest.raises(CodecError):
        encode_fixed(b"abc", 2)