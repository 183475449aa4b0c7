"""Relay-chain peer protocol: session keys, collator roles, collations and block data fetching."""

from __future__ import annotations

import enum
import logging
from concurrent.futures import Future
from dataclasses import dataclass, field

from .codec import CodecError, Input, encode_fixed, encode_u8, encode_u32, encode_u64
from .collator_pool import CollatorPool, Disconnect, NewRole, Role
from .consensus import LiveConsensusInstances, RecentSessionKeys
from .local_collations import LocalCollations
from .primitives import HASH_LEN, BlockData, Collation

log = logging.getLogger(__name__)

DOT_PROTOCOL_ID = b"dot"


class Severity(enum.Enum):
    """How badly a peer misbehaved."""

    BAD = "bad"
    USELESS = "useless"
    TIMEOUT = "timeout"


class Roles(enum.IntFlag):
    """Roles a node announces when connecting."""

    NONE = 0
    FULL = 0b001
    LIGHT = 0b010
    AUTHORITY = 0b100


@dataclass(frozen=True)
class PeerStatus:
    """The generic status a peer sends on connection, with our protocol's part embedded."""

    roles: Roles
    chain_status: bytes = b""
    version: int = 1
    best_number: int = 0
    best_hash: bytes = bytes(HASH_LEN)
    genesis_hash: bytes = bytes(HASH_LEN)


@dataclass(frozen=True)
class Status:
    """Protocol-specific status: the (account, parachain) a node collates for, if any."""

    collating_for: tuple | None = None

    def encode(self):
        if self.collating_for is None:
            return encode_u8(0)
        account_id, para_id = self.collating_for
        return encode_u8(1) + encode_fixed(account_id, HASH_LEN) + encode_u32(para_id)

    @classmethod
    def decode(cls, data):
        inp = Input(data)
        tag = inp.read_u8()
        if tag == 0:
            return cls()
        if tag == 1:
            account_id = inp.read(HASH_LEN)
            return cls((account_id, inp.read_u32()))
        raise CodecError(f"invalid option tag {tag}")


@dataclass(frozen=True)
class SessionKeyMessage:
    """A validator tells the peer its current session key."""

    key: bytes


@dataclass(frozen=True)
class RequestBlockData:
    """Request parachain block data by relay parent and candidate hash."""

    request_id: int
    relay_parent: bytes
    candidate_hash: bytes


@dataclass(frozen=True)
class BlockDataMessage:
    """Response with block data, or None when unknown."""

    request_id: int
    block_data: BlockData | None


@dataclass(frozen=True)
class CollatorRoleMessage:
    """Tell a collator its role."""

    role: Role


@dataclass(frozen=True)
class CollationMessage:
    """A collation on top of a relay parent."""

    relay_parent: bytes
    collation: Collation


_SESSION_KEY, _REQUEST_BLOCK_DATA, _BLOCK_DATA, _COLLATOR_ROLE, _COLLATION = range(5)


def encode_message(message):
    """Encode a protocol message to bytes."""
    if isinstance(message, SessionKeyMessage):
        return encode_u8(_SESSION_KEY) + encode_fixed(message.key, HASH_LEN)
    if isinstance(message, RequestBlockData):
        return (
            encode_u8(_REQUEST_BLOCK_DATA)
            + encode_u64(message.request_id)
            + encode_fixed(message.relay_parent, HASH_LEN)
            + encode_fixed(message.candidate_hash, HASH_LEN)
        )
    if isinstance(message, BlockDataMessage):
        body = encode_u8(0) if message.block_data is None else encode_u8(1) + message.block_data.encode()
        return encode_u8(_BLOCK_DATA) + encode_u64(message.request_id) + body
    if isinstance(message, CollatorRoleMessage):
        return encode_u8(_COLLATOR_ROLE) + encode_u8(int(message.role))
    if isinstance(message, CollationMessage):
        return (
            encode_u8(_COLLATION)
            + encode_fixed(message.relay_parent, HASH_LEN)
            + message.collation.encode()
        )
    raise CodecError(f"not a protocol message: {message!r}")


def decode_message(data):
    """Decode a protocol message; raise CodecError on malformed input."""
    inp = Input(data)
    tag = inp.read_u8()
    if tag == _SESSION_KEY:
        return SessionKeyMessage(inp.read(HASH_LEN))
    if tag == _REQUEST_BLOCK_DATA:
        request_id = inp.read_u64()
        relay_parent = inp.read(HASH_LEN)
        return RequestBlockData(request_id, relay_parent, inp.read(HASH_LEN))
    if tag == _BLOCK_DATA:
        request_id = inp.read_u64()
        present = inp.read_u8()
        if present == 0:
            return BlockDataMessage(request_id, None)
        if present == 1:
            return BlockDataMessage(request_id, BlockData.decode(inp))
        raise CodecError(f"invalid option tag {present}")
    if tag == _COLLATOR_ROLE:
        value = inp.read_u8()
        try:
            return CollatorRoleMessage(Role(value))
        except ValueError:
            raise CodecError(f"invalid collator role {value}") from None
    if tag == _COLLATION:
        relay_parent = inp.read(HASH_LEN)
        return CollationMessage(relay_parent, Collation.decode(inp))
    raise CodecError(f"unknown message index {tag}")


class Context:
    """Network context handed to protocol callbacks; records what the protocol does."""

    def __init__(self):
        self.messages = []
        self.reports = []

    def send_message(self, who, data):
        self.messages.append((who, bytes(data)))

    def report_peer(self, who, severity, reason):
        self.reports.append((who, severity, reason))


def _send(ctx, to, message):
    log.debug("Sending polkadot message to %s: %r", to, message)
    ctx.send_message(to, encode_message(message))


def _resolve(future, value):
    if not future.done():
        future.set_result(value)


class _CollatorState:
    """Orders collator messages: the session key must precede the role."""

    def __init__(self):
        self.primed = False
        self.role = None

    def send_key(self, key, send):
        send(SessionKeyMessage(key))
        if not self.primed and self.role is not None:
            send(CollatorRoleMessage(self.role))
            self.primed = True

    def set_role(self, role, send):
        if self.primed:
            send(CollatorRoleMessage(role))
        self.role = role


@dataclass
class _PeerInfo:
    collating_for: tuple | None
    claimed_validator: bool
    validator_keys: RecentSessionKeys = field(default_factory=RecentSessionKeys)
    collator_state: _CollatorState = field(default_factory=_CollatorState)

    @property
    def should_send_key(self):
        return self.claimed_validator or self.collating_for is not None


@dataclass
class _BlockDataRequest:
    consensus_parent: bytes
    candidate_hash: bytes
    block_data_hash: bytes
    future: Future
    attempted_peers: set = field(default_factory=set)


class PolkadotProtocol:
    """Protocol handler attached to the network service."""

    def __init__(self, collating_for):
        self._collating_for = collating_for
        self._peers = {}
        self._collators = CollatorPool()
        self._validators = {}
        self._local_collations = LocalCollations()
        self._live_consensus = LiveConsensusInstances()
        self._in_flight = {}
        self._pending = []
        self._extrinsic_store = None
        self._next_req_id = 1

    @property
    def validators(self):
        """Known validator session keys and the peers using them."""
        return dict(self._validators)

    @property
    def live_consensus(self):
        return self._live_consensus

    def status(self):
        """Encoded protocol status announced to peers."""
        return Status(self._collating_for).encode()

    def register_availability_store(self, store):
        """Use ``store.block_data(relay_parent, candidate_hash)`` to answer historic requests."""
        self._extrinsic_store = store

    # -- consensus sessions ------------------------------------------------

    def new_consensus(self, ctx, parent_hash, consensus):
        """Note a new consensus session, broadcasting a new local session key."""
        new_local = self._live_consensus.new_consensus(parent_hash, consensus)
        if new_local is None:
            return
        for who, info in self._peers.items():
            if info.should_send_key:
                info.collator_state.send_key(new_local, self._sender(ctx, who))

    def remove_consensus(self, parent_hash):
        self._live_consensus.remove(parent_hash)

    # -- block data ----------------------------------------------------------

    def fetch_block_data(self, ctx, candidate, relay_parent):
        """Return a future resolved with the candidate's block data."""
        future = Future()
        self._pending.append(
            _BlockDataRequest(
                consensus_parent=relay_parent,
                candidate_hash=candidate.hash(),
                block_data_hash=candidate.block_data_hash,
                future=future,
            )
        )
        self._dispatch_pending_requests(ctx)
        return future

    def _next_peer(self, request, known_keys):
        for key in known_keys:
            who = self._validators.get(key)
            if who is None or key in request.attempted_peers:
                continue
            request.attempted_peers.add(key)
            return who
        return None

    def _dispatch_pending_requests(self, ctx):
        still_pending = []
        for request in self._pending:
            lookup = self._live_consensus.lookup_block_data(
                request.consensus_parent, request.candidate_hash
            )
            if lookup.found:
                _resolve(request.future, lookup.block_data)
                continue
            if not lookup.session_live:
                request.future.cancel()
                continue
            who = self._next_peer(request, lookup.known_keys)
            if who is None:
                still_pending.append(request)
                continue
            req_id = self._next_req_id
            self._next_req_id += 1
            _send(ctx, who, RequestBlockData(req_id, request.consensus_parent, request.candidate_hash))
            self._in_flight[(req_id, who)] = request
        self._pending = still_pending

    # -- peers ---------------------------------------------------------------

    @staticmethod
    def _sender(ctx, who):
        return lambda message: _send(ctx, who, message)

    def on_connect(self, ctx, who, status):
        try:
            local_status = Status.decode(status.chain_status)
        except CodecError:
            local_status = Status()

        info = _PeerInfo(
            collating_for=local_status.collating_for,
            claimed_validator=Roles.AUTHORITY in status.roles,
        )

        if local_status.collating_for is not None:
            account_id, para_id = local_status.collating_for
            if self._collator_peer(account_id) is not None:
                ctx.report_peer(who, Severity.USELESS, "Unknown Polkadot-specific reason")
                return
            role = self._collators.on_new_collator(account_id, para_id)
            info.collator_state.set_role(role, self._sender(ctx, who))

        if info.should_send_key:
            for key in self._live_consensus.recent_keys():
                info.collator_state.send_key(key, self._sender(ctx, who))

        self._peers[who] = info
        self._dispatch_pending_requests(ctx)

    def on_disconnect(self, ctx, who):
        info = self._peers.pop(who, None)
        if info is None:
            return

        if info.collating_for is not None:
            new_primary = self._collators.on_disconnect(info.collating_for[0])
            found = self._collator_peer(new_primary) if new_primary is not None else None
            if found is not None:
                primary_who, primary_info = found
                primary_info.collator_state.set_role(Role.PRIMARY, self._sender(ctx, primary_who))

        for key in info.validator_keys:
            self._validators.pop(key, None)
            self._local_collations.on_disconnect(key)

        for request_key in [k for k in self._in_flight if k[1] == who]:
            self._pending.append(self._in_flight.pop(request_key))
        self._dispatch_pending_requests(ctx)

    def on_message(self, ctx, who, data):
        """Handle raw protocol bytes from a peer."""
        try:
            message = decode_message(data)
        except CodecError:
            log.debug("Bad message from %s", who)
            ctx.report_peer(who, Severity.BAD, "Invalid polkadot protocol message format")
            return
        log.debug("Polkadot message from %s: %r", who, message)

        if isinstance(message, SessionKeyMessage):
            self._on_session_key(ctx, who, message.key)
        elif isinstance(message, RequestBlockData):
            self._on_request_block_data(ctx, who, message)
        elif isinstance(message, BlockDataMessage):
            self._on_block_data(ctx, who, message.request_id, message.block_data)
        elif isinstance(message, CollationMessage):
            self._on_collation(ctx, who, message.relay_parent, message.collation)
        elif isinstance(message, CollatorRoleMessage):
            self._on_new_role(ctx, who, message.role)

    def _on_request_block_data(self, ctx, who, request):
        lookup = self._live_consensus.lookup_block_data(request.relay_parent, request.candidate_hash)
        block_data = lookup.block_data
        if block_data is None and self._extrinsic_store is not None:
            block_data = self._extrinsic_store.block_data(request.relay_parent, request.candidate_hash)
        _send(ctx, who, BlockDataMessage(request.request_id, block_data))

    def _on_session_key(self, ctx, who, key):
        info = self._peers.get(who)
        if info is None:
            log.debug("Network inconsistency: message received from unconnected peer %s", who)
            return
        if not info.claimed_validator:
            ctx.report_peer(who, Severity.BAD, "Session key broadcasted without setting authority role")
            return

        inserted = info.validator_keys.insert(key)
        if not inserted.new:
            new_collations = []
        elif inserted.evicted is not None:
            self._validators.pop(inserted.evicted, None)
            new_collations = self._local_collations.fresh_key(inserted.evicted, key)
        elif info.collator_state.role is not None:
            new_collations = self._local_collations.note_validator_role(key, info.collator_state.role)
        else:
            new_collations = []

        for relay_parent, collation in new_collations:
            _send(ctx, who, CollationMessage(relay_parent, collation))

        self._validators[key] = who
        self._dispatch_pending_requests(ctx)

    def _on_block_data(self, ctx, who, req_id, data):
        request = self._in_flight.pop((req_id, who), None)
        if request is None:
            ctx.report_peer(who, Severity.BAD, "Unexpected block data response")
            return
        if data is not None and data.hash() == bytes(request.block_data_hash):
            _resolve(request.future, data)
            return
        self._pending.append(request)
        self._dispatch_pending_requests(ctx)

    def _on_new_role(self, ctx, who, role):
        info = self._peers.get(who)
        if info is None:
            log.debug("Network inconsistency: message received from unconnected peer %s", who)
            return
        log.debug("New collator role %s from %s", role, who)
        if not len(info.validator_keys):
            ctx.report_peer(who, Severity.BAD, "Sent collator role without registering first as validator")
            return
        for key in info.validator_keys:
            for relay_parent, collation in self._local_collations.note_validator_role(key, role):
                _send(ctx, who, CollationMessage(relay_parent, collation))

    def _on_collation(self, ctx, who, relay_parent, collation):
        info = self._peers.get(who)
        if info is None:
            ctx.report_peer(who, Severity.USELESS, "Unknown Polkadot specific reason")
            return
        if info.collating_for is None:
            ctx.report_peer(who, Severity.BAD, "Sent collation without registering collator intent")
            return
        account_id, para_id = info.collating_for
        receipt = collation.receipt
        structurally_valid = (
            para_id == receipt.parachain_index and bytes(account_id) == bytes(receipt.collator)
        )
        if structurally_valid and receipt.check_signature():
            log.debug("Received collation for parachain %s from peer %s", para_id, who)
            self._collators.on_collation(account_id, relay_parent, collation)
        else:
            ctx.report_peer(who, Severity.BAD, "Sent malformed collation")

    # -- maintenance ---------------------------------------------------------

    def maintain_peers(self, ctx):
        self._collators.collect_garbage(None)
        self._local_collations.collect_garbage(None)
        self._dispatch_pending_requests(ctx)

        for action in self._collators.maintain_peers():
            if isinstance(action, Disconnect):
                self.disconnect_bad_collator(ctx, action.account_id)
            elif isinstance(action, NewRole):
                found = self._collator_peer(action.account_id)
                if found is not None:
                    collator, info = found
                    info.collator_state.set_role(action.role, self._sender(ctx, collator))

    def on_block_imported(self, ctx, block_hash, parent_hash):
        self._collators.collect_garbage(block_hash)
        self._local_collations.collect_garbage(parent_hash)

    # -- collators -----------------------------------------------------------

    def await_collation(self, relay_parent, para_id):
        """Return a future resolved with the next collation for the parachain."""
        log.debug("Attempting to get collation for parachain %s on relay parent %r", para_id, relay_parent)
        return self._collators.await_collation(relay_parent, para_id)

    def _collator_peer(self, account_id):
        for who, info in self._peers.items():
            if info.collating_for is not None and info.collating_for[0] == account_id:
                return who, info
        return None

    def disconnect_bad_collator(self, ctx, account_id):
        found = self._collator_peer(account_id)
        if found is not None:
            ctx.report_peer(found[0], Severity.BAD, "Consensus layer determined the given collator misbehaved")

    def add_local_collation(self, ctx, relay_parent, targets, collation):
        """Store a local collation and send it to connected primary validators among ``targets``."""
        log.debug(
            "Importing local collation on relay parent %r and parachain %s",
            relay_parent,
            collation.receipt.parachain_index,
        )
        for primary, local_collation in self._local_collations.add_collation(relay_parent, targets, collation):
            who = self._validators.get(primary)
            if who is None:
                log.warning("Encountered tracked but disconnected validator %r", primary)
                continue
            _send(ctx, who, CollationMessage(relay_parent, local_collation))