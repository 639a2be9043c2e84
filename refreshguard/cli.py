"""Command line entry point for the background refresh scheduler."""
from __future__ import annotations

import argparse
import json
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Sequence

import yaml

from .config import RefreshGuardConfig
from .config_loader import load_config
from .refresh_log import configure_logging, format_short_time, local_now
from .services import build_runtime, next_schedule_time


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Background refresh scheduler CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    next_refresh = sub.add_parser(
        "next-refresh",
        help="Print the next aligned background refresh time",
    )
    next_refresh.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to the YAML configuration file",
    )
    next_refresh.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="Reference time in ISO 8601 format (default: current local time)",
    )

    run = sub.add_parser(
        "run",
        help="Run the background refresh service",
    )
    run.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to the YAML configuration file",
    )
    run.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError, KeyError, yaml.YAMLError) as exc:
        print(f"Invalid configuration {args.config}: {exc}", file=sys.stderr)
        return 2

    if args.command == "next-refresh":
        return _command_next_refresh(args, config)
    if args.command == "run":
        return _command_run(args, config)

    parser.error("unknown command")
    return 1


def _command_next_refresh(args: argparse.Namespace, config: RefreshGuardConfig) -> int:
    now = args.now or local_now()
    rate = config.background_refresh.background_task_schedule_rate
    target = next_schedule_time(now, rate)
    output = {
        "now": now.isoformat(),
        "enabled": config.background_refresh.enable_background_tasks,
        "schedule_rate": rate,
        "next_refresh": target.isoformat(),
        "formatted": format_short_time(target),
    }
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


def _command_run(args: argparse.Namespace, config: RefreshGuardConfig) -> int:
    configure_logging(config.logging)
    runtime = build_runtime(config)
    stop_event = threading.Event()
    timer = None
    if args.duration is not None:
        timer = threading.Timer(max(0.0, args.duration), stop_event.set)
        timer.daemon = True
        timer.start()

    try:
        runtime.service.run_forever(stop_event)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        print("Interrupted, stopping background refresh...", file=sys.stderr)
    finally:
        if timer is not None:
            timer.cancel()
        runtime.close()

    print(json.dumps({"refresh_log": runtime.history.lines()}, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
