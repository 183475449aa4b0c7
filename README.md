# dotrelay

Building blocks for a relay-chain node that coordinates parachains. Everything
runs in memory and nothing here opens a network connection: you feed events in
and read back the messages, futures and decisions that come out.

## Modules

- `dotrelay.codec`: compact little-endian binary encoding. `Input` is a read
  cursor (`read`, `read_u8`, `read_u32`, `read_u64`, `read_compact`,
  `read_bytes`, `at_end`); `encode_u8`, `encode_u32`, `encode_u64`,
  `encode_compact` and `encode_bytes` write values; `blake2_256` hashes.
  Malformed input raises `CodecError`.
- `dotrelay.primitives`: parachain types. `BlockData`, `HeadData`,
  `CandidateReceipt` (with `encode`, `decode`, `hash` and an Ed25519
  `check_signature`), `Collation`, `Statement` / `StatementKind`,
  `SignedStatement`, `Chain`, `DutyRoster`, `OutgoingMessage`, `Extrinsic`,
  `ValidityAttestation` and `AttestedCandidate`.
- `dotrelay.validation`: `ValidationParams` and `ValidationResult`, the
  encoded inputs and outputs of a parachain validation function, and
  `MessageRef`.
- `dotrelay.collator_pool`: `CollatorPool` gives each collator a primary or
  backup `Role`, promotes a backup when the primary disconnects, and hands out
  `concurrent.futures.Future` objects that resolve when a collation arrives.
- `dotrelay.local_collations`: `LocalCollations` decides which validators
  receive locally produced collations, and drops them after five minutes or
  once their relay parent is built on.
- `dotrelay.router`: `attestation_topic` derives the gossip topic for a parent
  hash; `DeferredStatements` holds validity statements back, without
  duplicates, until their candidate is known.
- `dotrelay.consensus`: `Knowledge` records which session keys know a
  candidate's data; `CurrentConsensus`, `RecentSessionKeys` (the last three
  keys) and `LiveConsensusInstances` track live consensus sessions and answer
  block-data lookups with a `BlockDataLookup`.
- `dotrelay.protocol`: `PolkadotProtocol`, the peer protocol handler. It
  handles connections (`on_connect` with a `PeerStatus`), session keys,
  collator roles, collations and block-data requests. Every call takes a
  `Context`, which records the encoded messages sent (`messages`) and peers
  reported (`reports`, with a `Severity`). Messages are encoded and decoded
  with `encode_message` / `decode_message`.
- `dotrelay.secp256k1`: `public_key`, `sign_recoverable` and `recover` for
  recoverable ECDSA on secp256k1.
- `dotrelay.claims`: `Claims` pays balances held for Ethereum addresses to
  the account whose encoding the address holder signed. `create_msg`,
  `eth_sign`, `eth_recover`, `ecdsa_recover`, `eth_address` and
  `EcdsaSignature` build and check the signatures; rejected claims raise
  `ClaimError`.

## Installation

```
pip install .
```

With the test extra, to run the test suite:

```
pip install ".[test]"
pytest
```

## Examples

```python
from dotrelay.collator_pool import CollatorPool, Role

pool = CollatorPool()
primary = bytes([0] * 32)
backup = bytes([1] * 32)

assert pool.on_new_collator(primary, 5) is Role.PRIMARY
assert pool.on_new_collator(backup, 5) is Role.BACKUP
assert pool.on_disconnect(primary) == backup
```

```python
from dotrelay.claims import Claims, eth_address, eth_sign, keccak256
from dotrelay.codec import encode_u64
from dotrelay.secp256k1 import public_key

signing_key = keccak256(b"Alice")
address = eth_address(public_key(signing_key))

claims = Claims([(address, 100)])
claims.claim(42, eth_sign(signing_key, encode_u64(42)))
assert claims.free_balance(42) == 100
assert claims.total == 0
```

## What it does not do

- There is no network transport and no command to run: the protocol handler
  only writes to the `Context` it is given.
- Nothing is stored on disk; all state lives in the objects you create.
  Historic block data is served only if you pass an object with a
  `block_data(relay_parent, candidate_hash)` method to
  `PolkadotProtocol.register_availability_store`.
- It does not execute parachain validation code, compute validator duty
  rosters, or check the attestations on parachain head updates.