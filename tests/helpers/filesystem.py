# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
"""Filesystem scaffolding helpers for tests.

Creates isolated CharForge runtime data directories so that each test
runs against its own temporary filesystem without touching real data.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

# Minimal valid config.json for tests.
DEFAULT_TEST_CONFIG: dict[str, Any] = {
    "version": 1,
    "system": {"log_level": "DEBUG"},
    "credentials": {"fal": {"api_key": ""}},
    "generation": {"fal_base_url": "https://queue.test", "poll_interval": 0},
    "sessions": {"retention_days": 30},
}


def create_test_data_dir(tmp_path: Path) -> Path:
    """Create ``<tmp>/.charforge`` with config.json, assets/ and database/."""
    data_dir = tmp_path / ".charforge"
    for sub in ("assets", "database", "logs"):
        (data_dir / sub).mkdir(parents=True, exist_ok=True)
    (data_dir / "config.json").write_text(
        json.dumps(DEFAULT_TEST_CONFIG, indent=2), encoding="utf-8",
    )
    return data_dir


def write_asset(path: Path, content: bytes = b"asset") -> Path:
    """Place a fake artifact at *path*, creating parents."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path
