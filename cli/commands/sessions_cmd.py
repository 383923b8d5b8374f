"""CLI commands for inspecting and pruning generation sessions."""

# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import json
import sys

from core.session_store import SessionStore


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the sessions subcommand group."""
    p_sessions = subparsers.add_parser("sessions", help="Manage generation sessions")
    sessions_sub = p_sessions.add_subparsers(dest="sessions_command")

    p_list = sessions_sub.add_parser("list", help="List recent sessions")
    p_list.add_argument("--limit", type=int, default=10)
    p_list.add_argument("--offset", type=int, default=0)
    p_list.set_defaults(func=cmd_sessions_list)

    p_show = sessions_sub.add_parser("show", help="Show a session and its assets")
    p_show.add_argument("session_id", help="Session id")
    p_show.set_defaults(func=cmd_sessions_show)

    p_delete = sessions_sub.add_parser("delete", help="Delete a session and its files")
    p_delete.add_argument("session_id", help="Session id")
    p_delete.set_defaults(func=cmd_sessions_delete)

    p_cleanup = sessions_sub.add_parser(
        "cleanup", help="Delete sessions not accessed within the retention window",
    )
    p_cleanup.add_argument(
        "--days", type=int, default=None,
        help="Retention in days (default: sessions.retention_days from config)",
    )
    p_cleanup.set_defaults(func=cmd_sessions_cleanup)

    p_sessions.set_defaults(func=lambda args: p_sessions.print_help())


def _open_store() -> SessionStore:
    from core.asset_paths import AssetPathResolver
    from core.paths import get_data_dir

    data_dir = get_data_dir()
    resolver = AssetPathResolver(data_dir / "assets")
    return SessionStore(data_dir / "database" / "sessions.db", resolver)


def cmd_sessions_list(args: argparse.Namespace) -> None:
    store = _open_store()
    try:
        sessions, total = store.list_sessions(args.limit, args.offset)
    finally:
        store.close()

    if not sessions:
        print("No sessions.")
        return
    print(f"{'ID':<38} {'MODEL':<8} {'LAST ACCESSED':<27} DESCRIPTION")
    for s in sessions:
        desc = s.character_description
        if len(desc) > 40:
            desc = desc[:40] + "..."
        print(f"{s.id:<38} {s.model_type:<8} {s.last_accessed:<27} {desc}")
    print(f"\n{len(sessions)} of {total} session(s)")


def cmd_sessions_show(args: argparse.Namespace) -> None:
    store = _open_store()
    try:
        session = store.get_session(args.session_id)
        if session is None:
            print(f"Error: Session not found: {args.session_id}")
            sys.exit(1)
        assets = store.list_assets(args.session_id)
    finally:
        store.close()

    payload = session.to_dict()
    payload["assets"] = [a.to_dict() for a in assets]
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def cmd_sessions_delete(args: argparse.Namespace) -> None:
    store = _open_store()
    try:
        deleted = store.delete_session(args.session_id)
    finally:
        store.close()

    if not deleted:
        print(f"Error: Session not found: {args.session_id}")
        sys.exit(1)
    print(f"Deleted session {args.session_id}")


def cmd_sessions_cleanup(args: argparse.Namespace) -> None:
    from core.config import load_config

    days = args.days if args.days is not None else load_config().sessions.retention_days
    store = _open_store()
    try:
        removed = store.cleanup_old_sessions(days)
    finally:
        store.close()
    print(f"Removed {removed} session(s) older than {days} days")
