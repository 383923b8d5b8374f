"""CLI command that runs the full character pipeline once."""

# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from core.pipeline.models import PipelineEvent, PipelineResult


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the generate subcommand."""
    parser = subparsers.add_parser(
        "generate",
        help="Generate a complete character asset set",
        description=(
            "Run the four-phase pipeline: ground texture and idle front, "
            "idle angle views, idle mesh plus the other pose fronts, then "
            "the remaining views and meshes. Existing assets are reused "
            "unless --no-reuse is given."
        ),
    )
    parser.add_argument(
        "character",
        nargs="?",
        default=None,
        help="Character description (default: built-in test character)",
    )
    parser.add_argument(
        "--session",
        dest="session_id",
        default=None,
        help="Reuse an existing session id (default: create a new session)",
    )
    parser.add_argument(
        "--model-type",
        default=None,
        help="Reconstruction provider (default: from config)",
    )
    parser.add_argument(
        "--no-extras",
        action="store_true",
        help="Skip lore, puzzle and prop generation",
    )
    parser.add_argument(
        "--no-reuse",
        action="store_true",
        help="Regenerate every artifact even when it already exists on disk",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON",
    )
    parser.set_defaults(func=_run)


def _print_event(event: PipelineEvent) -> None:
    if event.status == "done":
        cached = " (cached)" if event.artifact and event.artifact.cached else ""
        print(f"  [{event.phase.value}] {event.step}: done{cached}")
    elif event.status == "failed":
        print(f"  [{event.phase.value}] {event.step}: FAILED ({event.error})")
    elif event.status == "skipped":
        print(f"  [{event.phase.value}] {event.step}: skipped")


async def _generate(args: argparse.Namespace, quiet: bool) -> PipelineResult:
    from core.config import load_config
    from core.generation.prompts import DEFAULT_CHARACTER
    from core.paths import get_data_dir
    from core.runtime import build_runtime

    config = load_config()
    if args.no_reuse:
        # Copy: load_config returns the process-wide cached instance.
        config = config.model_copy(update={
            "pipeline": config.pipeline.model_copy(update={"reuse_assets": False}),
        })
    runtime = build_runtime(
        config,
        get_data_dir(),
        on_progress=None if quiet else _print_event,
    )
    try:
        return await runtime.orchestrator.run(
            args.character or DEFAULT_CHARACTER,
            session_id=args.session_id,
            model_type=args.model_type,
            include_extras=False if args.no_extras else None,
        )
    finally:
        await runtime.aclose()


def _print_summary(result: PipelineResult) -> None:
    print()
    print(f"=== Pipeline {result.phase.value} ===")
    print(f"  session:  {result.session_id}")
    print(f"  provider: {result.provider}")
    if result.ground:
        print(f"  ground:   {result.ground.url}")
    for pose, views in result.views.items():
        ok = sum(1 for flag in result.view_status.get(pose, {}).values() if flag)
        total = len(result.view_status.get(pose, {}))
        print(f"  {pose}: {ok}/{total} views")
        for view, ref in views.items():
            print(f"            {view}: {ref.url}")
    for pose, ref in result.meshes.items():
        print(f"  mesh {pose}: {ref.url}")
    if result.skipped_poses:
        print(f"\n  Skipped poses: {', '.join(result.skipped_poses)}")
    if result.errors:
        print(f"\n  Errors ({len(result.errors)}):")
        for err in result.errors:
            print(f"    - {err}")


def _run(args: argparse.Namespace) -> None:
    """Execute the generate command."""
    from core.exceptions import InputValidationError, PipelineAbortedError

    try:
        result = asyncio.run(_generate(args, quiet=args.json))
    except InputValidationError as exc:
        print(f"Error: {exc}")
        sys.exit(2)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_summary(result)

    try:
        result.raise_for_status()
    except PipelineAbortedError as exc:
        print(f"\nPipeline aborted: {exc}", file=sys.stderr)
        sys.exit(1)
