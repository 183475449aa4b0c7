"""Knowledge of candidate data and live consensus sessions on the validator side."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .primitives import StatementKind

# Sessions change rarely and only the current and previous one usually matter;
# the third slot is a margin for error.
RECENT_SESSIONS = 3


@dataclass
class _KnowledgeEntry:
    knows_block_data: list = field(default_factory=list)
    knows_extrinsic: list = field(default_factory=list)
    block_data: object = None
    extrinsic: object = None


@dataclass(frozen=True)
class BlockDataLookup:
    """Outcome of looking up block data for a candidate.

    ``block_data`` is set when the data is held locally. Otherwise
    ``known_keys`` lists the session keys believed to hold it, and
    ``session_live`` is False when no consensus session exists on the parent.
    """

    block_data: object = None
    known_keys: tuple = ()
    session_live: bool = True

    @property
    def found(self):
        return self.block_data is not None


class Knowledge:
    """Tracks which peers know the data of which candidates."""

    def __init__(self):
        self._lock = threading.Lock()
        self._candidates = {}

    def _entry(self, candidate_hash):
        key = bytes(candidate_hash)
        entry = self._candidates.get(key)
        if entry is None:
            entry = self._candidates[key] = _KnowledgeEntry()
        return entry

    def note_statement(self, sender, statement):
        """Record what a statement from ``sender`` implies it knows.

        Proposers and those declaring a candidate valid know everything;
        those declaring it invalid lack the extrinsic, which only valid
        execution produces.
        """
        with self._lock:
            entry = self._entry(statement.subject_hash)
            entry.knows_block_data.append(sender)
            if statement.kind is not StatementKind.INVALID:
                entry.knows_extrinsic.append(sender)

    def note_candidate(self, candidate_hash, block_data, extrinsic):
        """Record locally held data for a candidate; data already held is kept."""
        with self._lock:
            entry = self._entry(candidate_hash)
            if entry.block_data is None:
                entry.block_data = block_data
            if entry.extrinsic is None:
                entry.extrinsic = extrinsic

    def _lookup_block_data(self, candidate_hash):
        with self._lock:
            entry = self._candidates.get(bytes(candidate_hash))
            if entry is None:
                return BlockDataLookup()
            if entry.block_data is not None:
                return BlockDataLookup(block_data=entry.block_data)
            return BlockDataLookup(known_keys=tuple(entry.knows_block_data))


@dataclass
class CurrentConsensus:
    """A live consensus instance: shared knowledge and the local session key."""

    knowledge: Knowledge
    local_session_key: bytes

    def lookup_block_data(self, candidate_hash):
        """Local block data for a candidate, or the keys believed to hold it."""
        return self.knowledge._lookup_block_data(candidate_hash)


@dataclass(frozen=True)
class InsertedRecentKey:
    """Result of inserting a recent session key."""

    new: bool
    evicted: bytes | None = None

    @classmethod
    def already_known(cls):
        return cls(new=False)

    @classmethod
    def fresh(cls, evicted=None):
        return cls(new=True, evicted=evicted)


class RecentSessionKeys:
    """The most recent session keys, oldest first, at most ``RECENT_SESSIONS``."""

    def __init__(self):
        self._keys = []

    def insert(self, key):
        """Add a key, evicting the oldest if full."""
        if key in self._keys:
            return InsertedRecentKey.already_known()
        evicted = self._keys.pop(0) if len(self._keys) == RECENT_SESSIONS else None
        self._keys.append(key)
        return InsertedRecentKey.fresh(evicted)

    def remove(self, key):
        self._keys = [k for k in self._keys if k != key]

    def keys(self):
        return tuple(self._keys)

    def __contains__(self, key):
        return key in self._keys

    def __len__(self):
        return len(self._keys)

    def __iter__(self):
        return iter(tuple(self._keys))


class LiveConsensusInstances:
    """Live consensus instances by parent hash, and recent local session keys."""

    def __init__(self):
        self._recent = RecentSessionKeys()
        self._live_instances = {}

    def new_consensus(self, parent_hash, consensus):
        """Note a new session; return its key if it is new and must be broadcast."""
        inserted = self._recent.insert(consensus.local_session_key)
        self._live_instances[parent_hash] = consensus
        return consensus.local_session_key if inserted.new else None

    def remove(self, parent_hash):
        """Remove a session, dropping its key if no other session uses it."""
        consensus = self._live_instances.pop(parent_hash, None)
        if consensus is None:
            return
        still_used = any(
            c.local_session_key == consensus.local_session_key
            for c in self._live_instances.values()
        )
        if not still_used:
            self._recent.remove(consensus.local_session_key)

    def recent_keys(self):
        return self._recent.keys()

    def lookup_block_data(self, parent_hash, candidate_hash):
        """Block data of a candidate in the session on ``parent_hash``."""
        consensus = self._live_instances.get(parent_hash)
        if consensus is None:
            return BlockDataLookup(session_live=False)
        return consensus.lookup_block_data(candidate_hash)