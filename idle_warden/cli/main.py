from __future__ import annotations

import argparse
import logging
from pathlib import Path

_LEVELS = [logging.CRITICAL, logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG]
_DEFAULT_LEVEL_INDEX = 2


def _configure_logging(verbose: int, quiet: int) -> None:
    index = min(max(_DEFAULT_LEVEL_INDEX + verbose - quiet, 0), len(_LEVELS) - 1)
    logging.basicConfig(
        level=_LEVELS[index],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="idle-warden")
    parser.add_argument(
        "-c", "--config", type=Path, default=None, metavar="FILE", help="Path to the config file"
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More log output")
    parser.add_argument("-q", "--quiet", action="count", default=0, help="Less log output")
    sub = parser.add_subparsers(dest="command")

    run_p = sub.add_parser("run", help="Run the idle daemon (foreground, default)")
    run_p.set_defaults(_handler="run")

    check_p = sub.add_parser("check", help="Validate the config and print listeners")
    check_p.set_defaults(_handler="check")

    init_p = sub.add_parser("init", help="Write default config + enable systemd user service")
    init_p.add_argument("--force", action="store_true", help="Overwrite existing unit")
    init_p.set_defaults(_handler="init")

    parser.set_defaults(_handler="run")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, args.quiet)

    if args._handler == "run":
        from idle_warden.cli.run import main as run_main

        return int(run_main(config_path=args.config))

    if args._handler == "check":
        from idle_warden.cli.check import main as check_main

        return int(check_main(config_path=args.config))

    if args._handler == "init":
        from idle_warden.cli.init import main as init_main

        return int(init_main(force=bool(getattr(args, "force", False)), config_path=args.config))

    raise RuntimeError(f"Unknown command: {args._handler}")


if __name__ == "__main__":
    raise SystemExit(main())
