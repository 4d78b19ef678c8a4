from idle_warden.engine.listeners import (
    ListenerRuntime,
    Notification,
    disarm_all,
    find_by_handle,
    reconcile,
    restart,
)
from idle_warden.engine.power import PowerStatus
from idle_warden.engine.types import ListenerSpec, OnAc, OnBattery, PowerSource


def _no_usb(_device_id: str) -> bool:
    return False


def test_notification_close_is_idempotent(notifier):
    notification = Notification(notifier, 5000)
    assert notification.live is True
    assert notifier.armed == {1: 5000}

    notification.close()
    notification.close()

    assert notification.live is False
    assert notifier.disarm_calls == [1]


def test_notification_context_manager_disarms(notifier):
    with Notification(notifier, 1000) as notification:
        assert notification.handle == 1
    assert notifier.armed == {}


def test_runtime_arm_and_disarm_are_idempotent(notifier):
    runtime = ListenerRuntime(ListenerSpec(timeout=30))

    assert runtime.arm(notifier) is True
    assert runtime.arm(notifier) is False
    assert runtime.handle == 1
    assert notifier.arm_calls == [30000]

    assert runtime.disarm() is True
    assert runtime.disarm() is False
    assert runtime.handle is None
    assert notifier.armed == {}


def test_reconcile_arms_eligible_and_disarms_ineligible(notifier):
    battery_only = ListenerRuntime(ListenerSpec(timeout=60, conditions=(OnBattery(),)))
    ac_only = ListenerRuntime(ListenerSpec(timeout=120, conditions=(OnAc(),)))
    runtimes = [battery_only, ac_only]
    power = PowerStatus()

    result = reconcile(runtimes, power=power, inhibited=False, usb_present=_no_usb, notifier=notifier)
    assert (result.armed, result.disarmed) == (1, 0)
    assert battery_only.armed and not ac_only.armed

    power.source = PowerSource.PLUGGED
    result = reconcile(runtimes, power=power, inhibited=False, usb_present=_no_usb, notifier=notifier)
    assert (result.armed, result.disarmed) == (1, 1)
    assert ac_only.armed and not battery_only.armed


def test_reconcile_twice_is_a_noop(notifier):
    runtimes = [ListenerRuntime(ListenerSpec(timeout=10))]
    power = PowerStatus()

    reconcile(runtimes, power=power, inhibited=False, usb_present=_no_usb, notifier=notifier)
    result = reconcile(runtimes, power=power, inhibited=False, usb_present=_no_usb, notifier=notifier)

    assert result.changed is False
    assert notifier.arm_calls == [10000]


def test_reconcile_inhibited_disarms_everything(notifier):
    runtimes = [ListenerRuntime(ListenerSpec(timeout=10)), ListenerRuntime(ListenerSpec(timeout=20))]
    power = PowerStatus()
    reconcile(runtimes, power=power, inhibited=False, usb_present=_no_usb, notifier=notifier)

    result = reconcile(runtimes, power=power, inhibited=True, usb_present=_no_usb, notifier=notifier)

    assert result.disarmed == 2
    assert notifier.armed == {}


def test_restart_recreates_only_armed(notifier):
    armed = ListenerRuntime(ListenerSpec(timeout=10))
    idle = ListenerRuntime(ListenerSpec(timeout=20))
    armed.arm(notifier)

    assert restart([armed, idle], notifier) == 1
    assert armed.handle == 2
    assert idle.armed is False
    assert notifier.disarm_calls == [1]


def test_disarm_all_and_find_by_handle(notifier):
    a = ListenerRuntime(ListenerSpec(timeout=10))
    b = ListenerRuntime(ListenerSpec(timeout=20))
    a.arm(notifier)
    b.arm(notifier)

    assert find_by_handle([a, b], 2) is b
    assert find_by_handle([a, b], 7) is None
    assert disarm_all([a, b]) == 2
    assert find_by_handle([a, b], 2) is None
