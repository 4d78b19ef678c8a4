from idle_warden.engine.lock import LockMachine
from idle_warden.engine.types import LockState


def test_lock_is_edge_triggered_and_arms_probe(notifier, clock):
    machine = LockMachine(notifier, clock=clock)

    assert machine.lock() is True
    assert machine.lock() is False
    assert machine.get_lock_state() == LockState.LOCKED
    assert machine.probe_handle == 1
    assert notifier.arm_calls == [0]


def test_unlock_closes_probe(notifier, clock):
    machine = LockMachine(notifier, clock=clock)
    machine.lock()

    assert machine.unlock() is True
    assert machine.unlock() is False
    assert machine.probe is None
    assert notifier.armed == {}


def test_unlock_when_unlocked_is_noop(notifier, clock):
    machine = LockMachine(notifier, clock=clock)
    assert machine.unlock() is False
    assert notifier.disarm_calls == []


def test_active_seconds(notifier, clock):
    machine = LockMachine(notifier, clock=clock)
    assert machine.get_active_seconds() == 0

    machine.lock()
    clock.now += 42.7
    assert machine.get_active_seconds() == 42

    machine.unlock()
    assert machine.get_active_seconds() == 0
