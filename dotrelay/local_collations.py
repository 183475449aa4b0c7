"""Local collations to be circulated to validators.

Collations are repropagated when a validator connects, changes its session
key, or when they are generated.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from .collator_pool import Role

LIVE_FOR = 60.0 * 5


@dataclass
class _LocalCollation:
    targets: frozenset
    collation: object
    live_since: float


class LocalCollations:
    """Tracks locally collated values and which validators they go to."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._primary_for = set()
        self._local_collations = {}

    def note_validator_role(self, key, role):
        """Record a role; a new primary gets the collations targeting it."""
        if role is Role.BACKUP:
            self._primary_for.discard(key)
            return []
        if key in self._primary_for:
            return []
        self._primary_for.add(key)
        return self._collations_targeting(key)

    def fresh_key(self, old_key, new_key):
        """A validator changed session key; return collations to send to it."""
        if old_key not in self._primary_for:
            return []
        self._primary_for.discard(old_key)
        self._primary_for.add(new_key)
        return self._collations_targeting(new_key)

    def on_disconnect(self, key):
        """Forget a disconnected validator."""
        self._primary_for.discard(key)

    def collect_garbage(self, relay_parent):
        """Drop collations on ``relay_parent`` and those past their lifetime."""
        if relay_parent is not None:
            self._local_collations.pop(relay_parent, None)
        now = self._clock()
        self._local_collations = {
            parent: entry
            for parent, entry in self._local_collations.items()
            if entry.live_since + LIVE_FOR > now
        }

    def add_collation(self, relay_parent, targets, collation):
        """Store a collation; return (session key, collation) pairs to send now."""
        entry = _LocalCollation(frozenset(targets), collation, self._clock())
        self._local_collations[relay_parent] = entry
        return [(key, collation) for key in entry.targets & self._primary_for]

    def _collations_targeting(self, key):
        return [
            (parent, entry.collation)
            for parent, entry in self._local_collations.items()
            if key in entry.targets
        ]