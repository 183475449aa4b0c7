"""Statement routing helpers: gossip topics and deferral of statements on unknown candidates."""

from __future__ import annotations

from dataclasses import dataclass

from .codec import blake2_256
from .primitives import StatementKind


def attestation_topic(parent_hash):
    """Gossip topic for attestations made on top of ``parent_hash``."""
    return blake2_256(bytes(parent_hash) + b"attestations")


@dataclass(frozen=True)
class StatementTrace:
    """A unique trace of a validity or invalidity statement by one validator."""

    kind: StatementKind
    sender: bytes
    candidate_hash: bytes

    @classmethod
    def of(cls, signed):
        """Trace of a signed statement, or None for candidate statements."""
        statement = signed.statement
        if statement.kind is StatementKind.CANDIDATE:
            return None
        return cls(statement.kind, bytes(signed.sender), bytes(statement.candidate_hash))


class DeferredStatements:
    """Holds statements whose candidate has not been imported yet."""

    def __init__(self):
        self._deferred = {}
        self._known_traces = set()

    def push(self, statement):
        """Defer a signed statement; duplicates and candidate statements are ignored."""
        trace = StatementTrace.of(statement)
        if trace is None or trace in self._known_traces:
            return
        self._known_traces.add(trace)
        self._deferred.setdefault(trace.candidate_hash, []).append(statement)

    def get_deferred(self, candidate_hash):
        """Drain the statements deferred on a candidate, with their traces."""
        statements = self._deferred.pop(bytes(candidate_hash), [])
        traces = []
        for statement in statements:
            trace = StatementTrace.of(statement)
            if trace is None:
                continue
            self._known_traces.discard(trace)
            traces.append(trace)
        return statements, traces