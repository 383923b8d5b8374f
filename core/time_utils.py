from __future__ import annotations
# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of CharForge core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Timezone-aware datetime helpers.

All persisted timestamps are UTC ISO8601 strings so that lexical ordering
in SQLite matches chronological ordering.
"""

from datetime import datetime, timedelta, timezone


def now_utc() -> datetime:
    """Return current time as timezone-aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def now_iso() -> str:
    """Return current time as ISO8601 string with UTC offset."""
    return now_utc().isoformat()


def days_ago_iso(days: float) -> str:
    """Return the ISO8601 timestamp *days* before now."""
    return (now_utc() - timedelta(days=days)).isoformat()

