"""Claims of balance by holders of Ethereum addresses."""

from __future__ import annotations

from dataclasses import dataclass

from Crypto.Hash import keccak

from .codec import Input, encode_u64
from .secp256k1 import public_key, recover, sign_recoverable

_PREFIX = b"Pay DOTs to the Polkadot account:"


class ClaimError(Exception):
    """A claim was rejected."""


def keccak256(data):
    """Keccak hash with a 256-bit output."""
    digest = keccak.new(digest_bits=256)
    digest.update(bytes(data))
    return digest.digest()


@dataclass(frozen=True)
class EcdsaSignature:
    """An Ethereum-style signature: r, s and the signed recovery byte v."""

    r: bytes
    s: bytes
    v: int

    @classmethod
    def decode(cls, data):
        inp = Input(data)
        r = inp.read(32)
        s = inp.read(32)
        v = int.from_bytes(inp.read(1), "little", signed=True)
        return cls(r, s, v)

    def encode(self):
        return bytes(self.r) + bytes(self.s) + self.v.to_bytes(1, "little", signed=True)


@dataclass(frozen=True)
class Claimed:
    """Event: an account claimed the balance of an Ethereum address."""

    account: object
    address: bytes
    amount: int


def create_msg(who):
    """The personal-message preimage an Ethereum key signs to claim for ``who``."""
    who = bytes(who)
    length = str(len(_PREFIX) + len(who)).encode("ascii")
    return b"\x19Ethereum Signed Message:\n" + length + _PREFIX + who


def eth_address(public):
    """Ethereum address of a 64-byte uncompressed public key."""
    return keccak256(public)[12:]


def ecdsa_recover(signature, message):
    """Recover the 64-byte public key from a signature on a 32-byte hash, or None."""
    v = signature.v - 27 if signature.v > 26 else signature.v
    try:
        return recover(message, signature.r, signature.s, v & 0xFF)
    except ValueError:
        return None


def eth_recover(signature, who):
    """Ethereum address that signed the claim message for ``who``, or None."""
    public = ecdsa_recover(signature, keccak256(create_msg(who)))
    if public is None:
        return None
    return eth_address(public)


def eth_sign(secret, who):
    """Sign the claim message for ``who`` with a 32-byte secp256k1 secret."""
    r, s, recovery_id = sign_recoverable(keccak256(create_msg(who)), secret)
    return EcdsaSignature(r, s, recovery_id)


def _encode_account(account):
    if isinstance(account, int):
        return encode_u64(account)
    if isinstance(account, (bytes, bytearray, memoryview)):
        return bytes(account)
    raise TypeError(f"cannot encode account {account!r}")


class Claims:
    """Balances claimable by Ethereum addresses, and the balances they pay into."""

    def __init__(self, claims):
        claims = [(bytes(address), amount) for address, amount in claims]
        self._claims = dict(claims)
        self._total = sum(amount for _, amount in claims)
        self._balances = {}
        self.events = []

    @property
    def total(self):
        """Total balance still held for claims."""
        return self._total

    def amount(self, address):
        """Amount claimable by an Ethereum address, or None."""
        return self._claims.get(bytes(address))

    def free_balance(self, account):
        return self._balances.get(account, 0)

    def claim(self, sender, signature):
        """Pay the claim of the signing Ethereum address to ``sender``."""
        signer = eth_recover(signature, _encode_account(sender))
        if signer is None:
            raise ClaimError("Invalid Ethereum signature")
        if signer not in self._claims:
            raise ClaimError("Ethereum address has no claim")
        balance_due = self._claims[signer]
        if self._total < balance_due:
            raise RuntimeError("Logic error: Pot less than the total of claims!")
        del self._claims[signer]
        self._total -= balance_due
        self._balances[sender] = self.free_balance(sender) + balance_due
        self.events.append(Claimed(sender, signer, balance_due))