"""Bridge between the network and consensus for getting collations to validators."""

from __future__ import annotations

import enum
import time
from concurrent.futures import Future
from dataclasses import dataclass, field

COLLATION_LIFETIME = 60.0 * 5


class Role(enum.IntEnum):
    """Whether a collator is the primary or a backup for its parachain."""

    PRIMARY = 0
    BACKUP = 1


@dataclass(frozen=True)
class Disconnect:
    """Maintenance action: disconnect the given collator."""

    account_id: bytes


@dataclass(frozen=True)
class NewRole:
    """Maintenance action: give the collator a new role."""

    account_id: bytes
    role: Role


def _resolve(future, collation):
    if not future.done():
        future.set_result(collation)


@dataclass
class CollationSlot:
    """Collations received, or requests waiting, for one relay parent and parachain."""

    live_at: float
    pending: list = field(default_factory=list)
    awaiting: list = field(default_factory=list)

    def stay_alive(self, now):
        """Return whether the slot is still live at time ``now``."""
        return self.live_at + COLLATION_LIFETIME > now

    def received_collation(self, collation):
        if self.awaiting:
            waiters, self.awaiting = self.awaiting, []
            for future in waiters:
                _resolve(future, collation)
        else:
            self.pending.append(collation)

    def await_with(self, future):
        if self.pending:
            _resolve(future, self.pending.pop())
        else:
            self.awaiting.append(future)


@dataclass
class _ParachainCollators:
    primary: bytes
    backup: list = field(default_factory=list)


class CollatorPool:
    """Connected collators and their roles, as seen by a validator."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._collators = {}
        self._parachain_collators = {}
        self._collations = {}

    def on_new_collator(self, account_id, para_id):
        """Register an authenticated collator and return its role."""
        self._collators[account_id] = para_id
        group = self._parachain_collators.get(para_id)
        if group is None:
            self._parachain_collators[para_id] = _ParachainCollators(primary=account_id)
            return Role.PRIMARY
        group.backup.append(account_id)
        return Role.BACKUP

    def on_disconnect(self, account_id):
        """Forget a collator; if it was primary, return the promoted backup."""
        para_id = self._collators.pop(account_id, None)
        if para_id is None:
            return None
        group = self._parachain_collators.get(para_id)
        if group is None:
            return None
        if group.primary == account_id:
            if not group.backup:
                del self._parachain_collators[para_id]
                return None
            group.primary = group.backup.pop()
            return group.primary
        group.backup.remove(account_id)
        return None

    def _slot(self, relay_parent, para_id):
        key = (relay_parent, para_id)
        slot = self._collations.get(key)
        if slot is None:
            slot = self._collations[key] = CollationSlot(live_at=self._clock())
        return slot

    def on_collation(self, account_id, relay_parent, collation):
        """Record a collation from a registered collator."""
        para_id = self._collators.get(account_id)
        if para_id is None:
            return
        assert para_id == collation.receipt.parachain_index, "collation for foreign parachain"
        self._slot(relay_parent, para_id).received_collation(collation)

    def await_collation(self, relay_parent, para_id):
        """Return a future resolved with the next collation for the parachain."""
        future = Future()
        self._slot(relay_parent, para_id).await_with(future)
        return future

    def maintain_peers(self):
        """Return maintenance actions to perform at the network level."""
        return []

    def collect_garbage(self, chain_head):
        """Drop slots on ``chain_head`` and slots past their lifetime."""
        now = self._clock()
        self._collations = {
            key: slot
            for key, slot in self._collations.items()
            if (chain_head is None or key[0] != chain_head) and slot.stay_alive(now)
        }