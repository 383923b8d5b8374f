# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import os
import sys


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="CharForge - Character Asset Generation Orchestrator"
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Override runtime data directory (default: ~/.charforge or CHARFORGE_DATA_DIR)",
    )
    sub = parser.add_subparsers(dest="command")

    # ── Serve ─────────────────────────────────────────────
    p_serve = sub.add_parser("serve", help="Start the CharForge HTTP server")
    p_serve.add_argument("--host", default=None, help="Bind host (default: from config)")
    p_serve.add_argument("--port", type=int, default=None, help="Bind port (default: from config)")
    p_serve.set_defaults(func=_lazy_serve)

    # ── Generate ──────────────────────────────────────────
    from cli.commands import generate_cmd

    generate_cmd.register(sub)

    # ── Sessions ──────────────────────────────────────────
    from cli.commands import sessions_cmd

    sessions_cmd.register(sub)

    return parser


def cli_main(argv: list[str] | None = None) -> None:
    from dotenv import load_dotenv

    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    # Apply --data-dir override before any command
    if args.data_dir:
        os.environ["CHARFORGE_DATA_DIR"] = args.data_dir

    from core.config import load_config
    from core.exceptions import ConfigError
    from core.logging_config import setup_logging
    from core.paths import get_log_dir

    try:
        system = load_config().system
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    setup_logging(
        level=os.environ.get("CHARFORGE_LOG_LEVEL", system.log_level),
        log_dir=get_log_dir(),
        json_file=system.json_log_file,
    )

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


# ── Lazy import wrappers ──────────────────────────────────


def _lazy_serve(args: argparse.Namespace) -> None:
    from cli.commands.server import cmd_serve

    cmd_serve(args)
