import logging
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import patch

import pytest

from idle_warden.cli import check, main
from idle_warden.cli.run import _adapters, _reload
from idle_warden.engine.events import ConfigReloaded, EventQueue, PlaybackActive, SourceChanged
from idle_warden.engine.types import BatteryBelow, GeneralConfig, UsbPlugged
from idle_warden.store.service import exec_start_args, render_service, write_service


def test_parser_defaults_to_run():
    args = main._build_parser().parse_args([])
    assert args._handler == "run"
    assert args.config is None


def test_parser_global_options():
    args = main._build_parser().parse_args(["-c", "/tmp/x.toml", "-vv", "check"])
    assert args._handler == "check"
    assert args.config == Path("/tmp/x.toml")
    assert args.verbose == 2


@patch("idle_warden.cli.main.logging.basicConfig")
def test_log_levels(mock_basic):
    main._configure_logging(0, 0)
    assert mock_basic.call_args.kwargs["level"] == logging.WARNING
    main._configure_logging(1, 0)
    assert mock_basic.call_args.kwargs["level"] == logging.INFO
    main._configure_logging(5, 0)
    assert mock_basic.call_args.kwargs["level"] == logging.DEBUG
    main._configure_logging(0, 1)
    assert mock_basic.call_args.kwargs["level"] == logging.ERROR
    main._configure_logging(0, 9)
    assert mock_basic.call_args.kwargs["level"] == logging.CRITICAL


@patch("idle_warden.cli.check.main", return_value=0)
@patch("idle_warden.cli.main.logging.basicConfig")
def test_main_dispatches_check(_mock_basic, mock_check):
    assert main.main(["check"]) == 0
    mock_check.assert_called_once_with(config_path=None)


def test_check_prints_listeners(capsys):
    with TemporaryDirectory() as tmp:
        path = Path(tmp) / "config.toml"
        path.write_text(
            "[general]\n"
            'lock_cmd = "swaylock"\n'
            "\n"
            "[[listeners]]\n"
            "timeout = 120\n"
            'conditions = ["on_battery", { battery_below = 20 }]\n'
            'on_timeout = "loginctl lock-session"\n',
            encoding="utf-8",
        )
        rc = check.main(path)

    out = capsys.readouterr().out
    assert rc == 0
    assert "lock_cmd: swaylock" in out
    assert "timeout=120s conditions=on_battery, battery_below=20" in out
    assert "on_battery=True percentage=True" in out


def test_check_reports_config_error(capsys):
    with TemporaryDirectory() as tmp:
        path = Path(tmp) / "config.toml"
        path.write_text("[[listeners]]\ntimeout = -5\n", encoding="utf-8")
        rc = check.main(path)

    assert rc == 1
    assert "config error" in capsys.readouterr().out


def test_describe_condition():
    assert check.describe_condition(BatteryBelow(12.5)) == "battery_below=12.5"
    assert check.describe_condition(UsbPlugged("046d:c52b")) == "usb_plugged=046d:c52b"


def test_render_service_has_reload():
    unit = render_service(["/usr/bin/idle-warden", "run"])
    assert unit.startswith("[Unit]\n")
    assert "ExecStart=/usr/bin/idle-warden run\n" in unit
    assert "ExecReload=kill -HUP $MAINPID\n" in unit
    assert "PartOf=graphical-session.target\n" in unit
    assert "\n\n[Install]\nWantedBy=graphical-session.target\n" in unit


def test_render_service_quotes_paths():
    unit = render_service(["/opt/my tools/idle-warden", "run"])
    assert "ExecStart='/opt/my tools/idle-warden' run\n" in unit


@patch("idle_warden.store.service.shutil.which", return_value="/usr/bin/idle-warden")
def test_exec_start_passes_config(_mock_which):
    assert exec_start_args() == ["/usr/bin/idle-warden", "run"]
    assert exec_start_args(Path("/etc/iw.toml")) == [
        "/usr/bin/idle-warden",
        "--config",
        "/etc/iw.toml",
        "run",
    ]


@patch("idle_warden.store.service.shutil.which", return_value=None)
def test_exec_start_falls_back_to_module(_mock_which):
    args = exec_start_args()
    assert args[1:] == ["-m", "idle_warden.cli.main", "run"]


def test_write_service_refuses_overwrite_without_force():
    with TemporaryDirectory() as tmp:
        path = Path(tmp) / "systemd" / "user" / "idle-warden.service"
        write_service(["idle-warden", "run"], path=path)
        with pytest.raises(FileExistsError):
            write_service(["other", "run"], path=path)
        write_service(["other", "run"], force=True, path=path)
        written = path.read_text(encoding="utf-8")

    assert "ExecStart=idle-warden run\n" not in written
    assert "ExecStart=other run\n" in written


@patch("idle_warden.cli.init.subprocess.run")
@patch("idle_warden.cli.init.write_service")
@patch("idle_warden.cli.init.shutil.which", return_value="/usr/bin/systemctl")
@patch("idle_warden.cli.init.sys.platform", "linux")
def test_init_enables_service(_mock_which, mock_write, mock_run, capsys):
    from idle_warden.cli import init

    mock_write.return_value = Path("/home/u/.config/systemd/user/idle-warden.service")
    with TemporaryDirectory() as tmp:
        rc = init.main(config_path=Path(tmp) / "config.toml")

    assert rc == 0
    assert [c.args[0] for c in mock_run.call_args_list] == [
        ["/usr/bin/systemctl", "--user", "daemon-reload"],
        ["/usr/bin/systemctl", "--user", "enable", "--now", "idle-warden.service"],
    ]
    assert "Installed and enabled" in capsys.readouterr().out


def test_reload_sends_new_config():
    queue = EventQueue()
    with TemporaryDirectory() as tmp:
        path = Path(tmp) / "config.toml"
        path.write_text("[[listeners]]\ntimeout = 30\n", encoding="utf-8")
        _reload(queue, path)

    (event,) = queue.drain()
    assert isinstance(event, ConfigReloaded)
    assert event.config.listeners[0].timeout == 30


def test_reload_keeps_config_on_error(caplog):
    queue = EventQueue()
    with TemporaryDirectory() as tmp:
        path = Path(tmp) / "config.toml"
        path.write_text("not = [valid\n", encoding="utf-8")
        _reload(queue, path)

    assert queue.drain() == []
    assert "Reload failed" in caplog.text


def test_every_adapter_runs_whatever_the_config(make_reactor):
    reactor = make_reactor(
        general=GeneralConfig(ignore_audio_inhibit=True, ignore_systemd_inhibit=True)
    )

    adapters = _adapters(EventQueue(), reactor)
    for _name, coro in adapters:
        coro.close()

    assert [name for name, _coro in adapters] == ["session", "screensaver", "power", "audio"]


def test_reload_adding_battery_condition_follows_power_source(make_reactor, notifier):
    reactor = make_reactor()
    queue = EventQueue()
    with TemporaryDirectory() as tmp:
        path = Path(tmp) / "config.toml"
        path.write_text('[[listeners]]\ntimeout = 300\nconditions = ["on_battery"]\n', encoding="utf-8")
        _reload(queue, path)

    for event in queue.drain():
        reactor.handle(event)
    # Delivered by the power adapter, which runs even with no battery listeners at startup.
    reactor.handle(SourceChanged(on_battery=False))

    assert len(reactor.listeners) == 1
    assert notifier.armed == {}

    reactor.handle(SourceChanged(on_battery=True))
    assert list(notifier.armed.values()) == [300000]


def test_reload_clearing_ignore_audio_applies_current_playback(make_reactor, notifier):
    with TemporaryDirectory() as tmp:
        path = Path(tmp) / "config.toml"
        path.write_text(
            "[general]\nignore_audio_inhibit = true\n\n[[listeners]]\ntimeout = 60\n",
            encoding="utf-8",
        )
        queue = EventQueue()
        _reload(queue, path)
        (initial,) = queue.drain()
        reactor = make_reactor(*initial.config.listeners, general=initial.config.general)
        reactor.handle(PlaybackActive(True))
        assert len(notifier.armed) == 1

        path.write_text("[[listeners]]\ntimeout = 60\n", encoding="utf-8")
        _reload(queue, path)

    for event in queue.drain():
        reactor.handle(event)

    assert reactor.inhibitors.globally_inhibited is True
    assert notifier.armed == {}
