import pytest

from idle_warden.engine.inhibitors import InhibitorRegistry
from idle_warden.engine.types import InhibitSource


def test_cookies_start_at_one_and_are_never_reused():
    registry = InhibitorRegistry()

    first, _ = registry.inhibit("firefox", "video", ":1.10")
    second, _ = registry.inhibit("mpv", "playback", ":1.11")
    registry.uninhibit(second)
    third, _ = registry.inhibit("mpv", "playback", ":1.11")

    assert first == 1
    assert second == 2
    assert third == 3
    assert registry.last_cookie == 3


def test_inhibit_reports_edge_only_on_first_entry():
    registry = InhibitorRegistry()

    _, changed_first = registry.inhibit("firefox", "video", ":1.10")
    _, changed_second = registry.inhibit("mpv", "playback", ":1.11")

    assert changed_first is True
    assert changed_second is False
    assert registry.globally_inhibited is True


def test_uninhibit_edges_and_unknown_cookie():
    registry = InhibitorRegistry()
    a, _ = registry.inhibit("firefox", "video", ":1.10")
    b, _ = registry.inhibit("mpv", "playback", ":1.11")

    assert registry.uninhibit(999) is False
    assert registry.uninhibit(a) is False
    assert registry.globally_inhibited is True
    assert registry.uninhibit(b) is True
    assert registry.globally_inhibited is False
    assert registry.uninhibit(b) is False


def test_owner_disconnected_drops_all_entries_of_owner():
    registry = InhibitorRegistry()
    registry.inhibit("firefox", "video", ":1.10")
    registry.inhibit("firefox", "tab audio", ":1.10")
    registry.inhibit("mpv", "playback", ":1.11")

    assert registry.owner_disconnected(":1.10") is False
    assert [e.app_name for e in registry.entries] == ["mpv"]
    assert registry.owner_disconnected(":1.11") is True
    assert registry.entries == []
    assert registry.owner_disconnected(":1.99") is False


def test_flags_report_edges():
    registry = InhibitorRegistry()

    assert registry.set_flag(InhibitSource.AUDIO, True) is True
    assert registry.set_flag(InhibitSource.AUDIO, True) is False
    assert registry.set_flag(InhibitSource.SESSION, True) is False
    assert registry.set_flag(InhibitSource.AUDIO, False) is False
    assert registry.set_flag(InhibitSource.SESSION, False) is True
    assert registry.globally_inhibited is False


def test_set_flag_rejects_application_source():
    registry = InhibitorRegistry()
    with pytest.raises(ValueError):
        registry.set_flag(InhibitSource.APPLICATION, True)


def test_ignored_sources_do_not_inhibit():
    registry = InhibitorRegistry(ignored={InhibitSource.APPLICATION, InhibitSource.AUDIO})

    cookie, changed = registry.inhibit("firefox", "video", ":1.10")
    assert cookie == 1
    assert changed is False
    assert registry.set_flag(InhibitSource.AUDIO, True) is False
    assert registry.is_active(InhibitSource.APPLICATION) is True
    assert registry.globally_inhibited is False

    assert registry.set_flag(InhibitSource.SESSION, True) is True
    assert registry.globally_inhibited is True


def test_set_ignored_reports_edge():
    registry = InhibitorRegistry()
    registry.set_flag(InhibitSource.AUDIO, True)

    assert registry.set_ignored({InhibitSource.AUDIO}) is True
    assert registry.globally_inhibited is False
    assert registry.set_ignored(set()) is True
    assert registry.globally_inhibited is True
