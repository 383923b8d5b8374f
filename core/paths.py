# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of CharForge core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Centralized path resolution for CharForge.

All modules import directory paths from here instead of computing them ad-hoc.
Runtime data directory can be overridden via CHARFORGE_DATA_DIR environment variable.
"""

from __future__ import annotations

import os
from pathlib import Path

# Default runtime data directory
_DEFAULT_DATA_DIR = Path.home() / ".charforge"


def get_data_dir() -> Path:
    """Return the runtime data directory, respecting CHARFORGE_DATA_DIR env var."""
    env_val = os.environ.get("CHARFORGE_DATA_DIR")
    if env_val:
        return Path(env_val).expanduser().resolve()
    return _DEFAULT_DATA_DIR


def get_log_dir() -> Path:
    return get_data_dir() / "logs"
