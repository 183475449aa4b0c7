import hashlib

import pytest

from dotrelay.secp256k1 import (
    CURVE_ORDER,
    FIELD_PRIME,
    public_key,
    recover,
    sign_recoverable,
)


def _scalar(seed):
    return hashlib.sha256(seed).digest()


def _digest(text):
    return hashlib.sha256(text).digest()


def test_public_key_of_one_is_generator():
    one = (1).to_bytes(32, "big")
    expected = bytes.fromhex(
        "79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798"
        "483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8"
    )
    assert public_key(one) == expected


@pytest.mark.parametrize("seed", [b"first", b"second", b"third"])
def test_public_key_is_on_curve(seed):
    pub = public_key(_scalar(seed))
    x = int.from_bytes(pub[:32], "big")
    y = int.from_bytes(pub[32:], "big")
    assert (y * y - x**3 - 7) % FIELD_PRIME == 0


@pytest.mark.parametrize("seed", [b"first", b"second", b"third"])
def test_sign_then_recover_round_trip(seed):
    scalar = _scalar(seed)
    msg = _digest(b"message for " + seed)
    r, s, recovery_id = sign_recoverable(msg, scalar)
    assert recover(msg, r, s, recovery_id) == public_key(scalar)


def test_signature_is_deterministic_and_low_s():
    scalar = _scalar(b"first")
    msg = _digest(b"hello")
    first = sign_recoverable(msg, scalar)
    assert first == sign_recoverable(msg, scalar)
    assert int.from_bytes(first[1], "big") <= CURVE_ORDER // 2
    assert first[2] in (0, 1, 2, 3)


def test_other_message_recovers_other_key():
    scalar = _scalar(b"first")
    r, s, recovery_id = sign_recoverable(_digest(b"one"), scalar)
    recovered = recover(_digest(b"two"), r, s, recovery_id)
    assert len(recovered) == 64
    assert recovered != public_key(scalar)


@pytest.mark.parametrize("bad", [bytes(32), CURVE_ORDER.to_bytes(32, "big"), b"\x01" * 31])
def test_bad_secret_rejected(bad):
    with pytest.raises(ValueError):
        public_key(bad)


def test_recover_rejects_zero_r():
    with pytest.raises(ValueError):
        recover(_digest(b"x"), bytes(32), (1).to_bytes(32, "big"), 0)


def test_recover_rejects_overflowing_s():
    with pytest.raises(ValueError):
        recover(_digest(b"x"), (1).to_bytes(32, "big"), CURVE_ORDER.to_bytes(32, "big"), 0)


def test_recover_rejects_bad_recovery_id():
    r, s, _ = sign_recoverable(_digest(b"x"), _scalar(b"first"))
    with pytest.raises(ValueError):
        recover(_digest(b"x"), r, s, 4)