from dotrelay.collator_pool import Role
from dotrelay.local_collations import LIVE_FOR, LocalCollations


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_add_validator_with_ready_collation():
    key = bytes([1]) * 32
    relay_parent = bytes([2]) * 32
    tracker = LocalCollations()
    assert tracker.add_collation(relay_parent, {key}, 5) == []
    assert tracker.note_validator_role(key, Role.PRIMARY) == [(relay_parent, 5)]


def test_repeated_primary_role_sends_nothing_new():
    key = bytes([1]) * 32
    relay_parent = bytes([2]) * 32
    tracker = LocalCollations()
    tracker.add_collation(relay_parent, {key}, 5)
    assert tracker.note_validator_role(key, Role.PRIMARY) == [(relay_parent, 5)]
    assert tracker.note_validator_role(key, Role.PRIMARY) == []


def test_rename_with_ready():
    orig_key = bytes([1]) * 32
    new_key = bytes([2]) * 32
    relay_parent = bytes([255]) * 32
    tracker = LocalCollations()
    assert tracker.add_collation(relay_parent, {new_key}, 5) == []
    assert tracker.note_validator_role(orig_key, Role.PRIMARY) == []
    assert tracker.fresh_key(orig_key, new_key) == [(relay_parent, 5)]


def test_fresh_key_for_non_primary_is_empty():
    tracker = LocalCollations()
    tracker.add_collation(bytes([3]) * 32, {bytes([2]) * 32}, 5)
    assert tracker.fresh_key(bytes([1]) * 32, bytes([2]) * 32) == []


def test_collecting_garbage():
    clock = FakeClock()
    key = bytes([7]) * 32
    relay_parent_a = bytes([255]) * 32
    relay_parent_b = bytes([222]) * 32
    tracker = LocalCollations(clock=clock)
    assert tracker.add_collation(relay_parent_a, {key}, 5) == []
    clock.now += LIVE_FOR + 10.0
    assert tracker.add_collation(relay_parent_b, {key}, 69) == []
    clock.now = 1000.0 + LIVE_FOR + 10.0 + LIVE_FOR + 10.0
    # b is now stale and a is removed by relay parent
    tracker.collect_garbage(relay_parent_a)
    assert tracker.note_validator_role(key, Role.PRIMARY) == []


def test_collect_garbage_keeps_live():
    clock = FakeClock()
    key = bytes([7]) * 32
    relay_parent_a = bytes([255]) * 32
    relay_parent_b = bytes([222]) * 32
    tracker = LocalCollations(clock=clock)
    tracker.add_collation(relay_parent_a, {key}, 5)
    tracker.add_collation(relay_parent_b, {key}, 69)
    tracker.collect_garbage(relay_parent_a)
    assert tracker.note_validator_role(key, Role.PRIMARY) == [(relay_parent_b, 69)]


def test_add_collation_with_connected_target():
    key = bytes([1]) * 32
    relay_parent = bytes([2]) * 32
    tracker = LocalCollations()
    assert tracker.note_validator_role(key, Role.PRIMARY) == []
    assert tracker.add_collation(relay_parent, {key}, 5) == [(key, 5)]


def test_backup_role_and_disconnect_stop_sending():
    key = bytes([1]) * 32
    other = bytes([4]) * 32
    tracker = LocalCollations()
    tracker.note_validator_role(key, Role.PRIMARY)
    tracker.note_validator_role(other, Role.PRIMARY)
    tracker.note_validator_role(key, Role.BACKUP)
    tracker.on_disconnect(other)
    assert tracker.add_collation(bytes([2]) * 32, {key, other}, 5) == []