"""Recoverable ECDSA signatures over the secp256k1 curve."""

from __future__ import annotations

import hashlib
import hmac

FIELD_PRIME = 2**256 - 2**32 - 977
CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
_GENERATOR = (
    0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798,
    0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8,
)


def _add(p, q):
    if p is None:
        return q
    if q is None:
        return p
    x1, y1 = p
    x2, y2 = q
    if x1 == x2:
        if (y1 + y2) % FIELD_PRIME == 0:
            return None
        lam = 3 * x1 * x1 * pow(2 * y1, -1, FIELD_PRIME)
    else:
        lam = (y2 - y1) * pow(x2 - x1, -1, FIELD_PRIME)
    lam %= FIELD_PRIME
    x3 = (lam * lam - x1 - x2) % FIELD_PRIME
    y3 = (lam * (x1 - x3) - y1) % FIELD_PRIME
    return x3, y3


def _mul(k, point):
    result = None
    addend = point
    while k:
        if k & 1:
            result = _add(result, addend)
        addend = _add(addend, addend)
        k >>= 1
    return result


def _serialize(point):
    x, y = point
    return x.to_bytes(32, "big") + y.to_bytes(32, "big")


def _hash_scalar(message_hash):
    message_hash = bytes(message_hash)
    if len(message_hash) != 32:
        raise ValueError("message hash must be 32 bytes")
    return int.from_bytes(message_hash, "big") % CURVE_ORDER


def _secret_scalar(secret):
    secret = bytes(secret)
    if len(secret) != 32:
        raise ValueError("secret key must be 32 bytes")
    d = int.from_bytes(secret, "big")
    if not 0 < d < CURVE_ORDER:
        raise ValueError("secret key out of range")
    return d


def public_key(secret):
    """Uncompressed public key (x || y, 64 bytes) of a 32-byte secret key."""
    return _serialize(_mul(_secret_scalar(secret), _GENERATOR))


def _nonces(d, e):
    """Deterministic nonce candidates in the manner of RFC 6979 with HMAC-SHA256."""
    material = d.to_bytes(32, "big") + e.to_bytes(32, "big")
    v = b"\x01" * 32
    k = b"\x00" * 32
    k = hmac.new(k, v + b"\x00" + material, hashlib.sha256).digest()
    v = hmac.new(k, v, hashlib.sha256).digest()
    k = hmac.new(k, v + b"\x01" + material, hashlib.sha256).digest()
    v = hmac.new(k, v, hashlib.sha256).digest()
    while True:
        v = hmac.new(k, v, hashlib.sha256).digest()
        candidate = int.from_bytes(v, "big")
        if 0 < candidate < CURVE_ORDER:
            yield candidate
        k = hmac.new(k, v + b"\x00", hashlib.sha256).digest()
        v = hmac.new(k, v, hashlib.sha256).digest()


def sign_recoverable(message_hash, secret):
    """Sign a 32-byte hash; return (r, s, recovery_id) with a low s."""
    d = _secret_scalar(secret)
    e = _hash_scalar(message_hash)
    for nonce in _nonces(d, e):
        rx, ry = _mul(nonce, _GENERATOR)
        r = rx % CURVE_ORDER
        if r == 0:
            continue
        s = pow(nonce, -1, CURVE_ORDER) * (e + r * d) % CURVE_ORDER
        if s == 0:
            continue
        recovery_id = (ry & 1) | (2 if rx >= CURVE_ORDER else 0)
        if s > CURVE_ORDER // 2:
            s = CURVE_ORDER - s
            recovery_id ^= 1
        return r.to_bytes(32, "big"), s.to_bytes(32, "big"), recovery_id


def recover(message_hash, r, s, recovery_id):
    """Recover the 64-byte public key that produced a signature; raise ValueError if none."""
    r_bytes, s_bytes = bytes(r), bytes(s)
    if len(r_bytes) != 32 or len(s_bytes) != 32:
        raise ValueError("signature components must be 32 bytes each")
    if not 0 <= recovery_id < 4:
        raise ValueError(f"invalid recovery id {recovery_id}")
    r_int = int.from_bytes(r_bytes, "big")
    s_int = int.from_bytes(s_bytes, "big")
    if not 0 < r_int < CURVE_ORDER or not 0 < s_int < CURVE_ORDER:
        raise ValueError("signature component out of range")
    e = _hash_scalar(message_hash)

    x = r_int + (recovery_id >> 1) * CURVE_ORDER
    if x >= FIELD_PRIME:
        raise ValueError("signature does not correspond to a curve point")
    alpha = (pow(x, 3, FIELD_PRIME) + 7) % FIELD_PRIME
    y = pow(alpha, (FIELD_PRIME + 1) // 4, FIELD_PRIME)
    if y * y % FIELD_PRIME != alpha:
        raise ValueError("signature does not correspond to a curve point")
    if y & 1 != recovery_id & 1:
        y = FIELD_PRIME - y

    r_inv = pow(r_int, -1, CURVE_ORDER)
    u1 = -e * r_inv % CURVE_ORDER
    u2 = s_int * r_inv % CURVE_ORDER
    point = _add(_mul(u1, _GENERATOR), _mul(u2, (x, y)))
    if point is None:
        raise ValueError("recovered the point at infinity")
    return _serialize(point)