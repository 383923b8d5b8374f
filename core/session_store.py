# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of CharForge core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""SQLite-backed store for generation sessions and their asset records.

A session scopes one end-to-end generation run.  Every artifact the run
produces is recorded as an asset row keyed by
``(session_id, asset_type, pose, view_name)``; writing the same key twice
replaces the earlier row.  Deleting a session cascades to its asset rows
and removes the session's artifact directory.

The store is an explicit object: construct one at process start and pass
it to the cache and the orchestrator.
"""

from __future__ import annotations

import json
import logging
import shutil
import sqlite3
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from core.asset_paths import POSES, AssetPathResolver, AssetType
from core.exceptions import (
    InvalidAssetPathError,
    SessionNotFoundError,
    SessionStoreError,
)
from core.time_utils import days_ago_iso, now_iso

logger = logging.getLogger("charforge.sessions")

# ── Schema ─────────────────────────────────────────────────

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS sessions (
    id                    TEXT PRIMARY KEY,
    character_description TEXT NOT NULL,
    model_type            TEXT DEFAULT 'trellis',
    player_mode           INTEGER DEFAULT 1,
    created_at            TEXT NOT NULL,
    updated_at            TEXT NOT NULL,
    last_accessed         TEXT NOT NULL,
    game_state            TEXT,
    metadata              TEXT
);

CREATE INDEX IF NOT EXISTS idx_sessions_created
    ON sessions(created_at);
CREATE INDEX IF NOT EXISTS idx_sessions_accessed
    ON sessions(last_accessed);

CREATE TABLE IF NOT EXISTS assets (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id  TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    asset_type  TEXT NOT NULL,
    pose        TEXT,
    view_name   TEXT,
    file_path   TEXT NOT NULL,
    remote_url  TEXT,
    request_id  TEXT,
    created_at  TEXT NOT NULL
);

-- NULL pose/view must still collide, so the key uses COALESCE.
CREATE UNIQUE INDEX IF NOT EXISTS idx_assets_key
    ON assets(session_id, asset_type, COALESCE(pose, ''), COALESCE(view_name, ''));
CREATE INDEX IF NOT EXISTS idx_assets_session
    ON assets(session_id);
"""

_SESSION_SUBDIRS = (
    *(f"{AssetType.CHARACTER.value}/{pose}" for pose in POSES),
    AssetType.MODELS.value,
    AssetType.GROUND.value,
    AssetType.IMAGES.value,
)


# ── Records ────────────────────────────────────────────────


@dataclass
class Session:
    id: str
    character_description: str
    model_type: str
    player_mode: int
    created_at: str
    updated_at: str
    last_accessed: str
    game_state: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AssetRecord:
    id: int
    session_id: str
    asset_type: str
    pose: str | None
    view_name: str | None
    file_path: str
    remote_url: str | None
    request_id: str | None
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _loads(raw: str | None) -> dict[str, Any] | None:
    if raw is None:
        return None
    return json.loads(raw)


def _dumps(value: dict[str, Any] | None) -> str | None:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        id=row["id"],
        character_description=row["character_description"],
        model_type=row["model_type"],
        player_mode=row["player_mode"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        last_accessed=row["last_accessed"],
        game_state=_loads(row["game_state"]),
        metadata=_loads(row["metadata"]),
    )


def _row_to_asset(row: sqlite3.Row) -> AssetRecord:
    return AssetRecord(**dict(row))


# ── SessionStore ───────────────────────────────────────────


class SessionStore:
    """CRUD over sessions and asset records.

    Args:
        db_path: Path to the SQLite database file.  Parent directories
            are created automatically.
        resolver: Path resolver owning the artifact tree; used to create
            and remove per-session directories.
    """

    def __init__(self, db_path: Path, resolver: AssetPathResolver) -> None:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self.resolver = resolver
        self._lock = threading.RLock()
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self.conn.executescript(_SCHEMA_SQL)
        self.conn.commit()

    # ── Lifecycle ──────────────────────────────────────────

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    @contextmanager
    def _transaction(self, op: str) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self.conn
                self.conn.commit()
            except sqlite3.Error as exc:
                self.conn.rollback()
                raise SessionStoreError(f"Session store {op} failed: {exc}") from exc
            except Exception:
                self.conn.rollback()
                raise

    # ── Sessions ───────────────────────────────────────────

    def create_session(
        self,
        character_description: str,
        model_type: str = "trellis",
        player_mode: int = 1,
        session_id: str | None = None,
    ) -> Session:
        """Insert a new session and create its artifact directories.

        Raises:
            InvalidAssetPathError: If *session_id* is not a usable path
                segment.  Nothing is written in that case.
        """
        sid = session_id or str(uuid.uuid4())
        session_dir = self.resolver.session_dir(sid)
        ts = now_iso()
        with self._transaction("create") as conn:
            conn.execute(
                "INSERT INTO sessions (id, character_description, model_type, "
                "player_mode, created_at, updated_at, last_accessed) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (sid, character_description, model_type, player_mode, ts, ts, ts),
            )

        for sub in _SESSION_SUBDIRS:
            (session_dir / sub).mkdir(parents=True, exist_ok=True)

        logger.info("Created session %s (%s)", sid, model_type)
        return Session(
            id=sid,
            character_description=character_description,
            model_type=model_type,
            player_mode=player_mode,
            created_at=ts,
            updated_at=ts,
            last_accessed=ts,
        )

    def get_session(self, session_id: str) -> Session | None:
        """Return the session and bump its ``last_accessed`` timestamp."""
        with self._transaction("get") as conn:
            conn.execute(
                "UPDATE sessions SET last_accessed = ? WHERE id = ?",
                (now_iso(), session_id),
            )
            row = conn.execute(
                "SELECT * FROM sessions WHERE id = ?", (session_id,),
            ).fetchone()
        return _row_to_session(row) if row else None

    def update_session(
        self,
        session_id: str,
        *,
        game_state: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Session:
        """Replace the game-state and/or metadata blobs of a session.

        Raises:
            SessionNotFoundError: If *session_id* does not exist.
        """
        assignments = ["updated_at = ?"]
        params: list[Any] = [now_iso()]
        if game_state is not None:
            assignments.append("game_state = ?")
            params.append(_dumps(game_state))
        if metadata is not None:
            assignments.append("metadata = ?")
            params.append(_dumps(metadata))
        params.append(session_id)

        with self._transaction("update") as conn:
            cur = conn.execute(
                f"UPDATE sessions SET {', '.join(assignments)} WHERE id = ?",  # noqa: S608
                params,
            )
            if cur.rowcount == 0:
                raise SessionNotFoundError(f"Session not found: {session_id}")
            row = conn.execute(
                "SELECT * FROM sessions WHERE id = ?", (session_id,),
            ).fetchone()
        return _row_to_session(row)

    def list_sessions(self, limit: int = 10, offset: int = 0) -> tuple[list[Session], int]:
        """Return one page of sessions (most recently accessed first) and the total."""
        with self._transaction("list") as conn:
            rows = conn.execute(
                "SELECT * FROM sessions ORDER BY last_accessed DESC LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
            total = conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0]
        return [_row_to_session(r) for r in rows], total

    def delete_session(self, session_id: str) -> bool:
        """Delete the session row, its asset rows and its artifact tree."""
        with self._transaction("delete") as conn:
            cur = conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
            deleted = cur.rowcount > 0

        try:
            session_dir = self.resolver.session_dir(session_id)
        except InvalidAssetPathError:
            # Rows written before ids were validated have no directory to remove.
            logger.error("Session %r has an unusable id; removed row only", session_id)
            session_dir = None
        if session_dir is not None and session_dir.exists():
            shutil.rmtree(session_dir)
            logger.debug("Removed session directory %s", session_dir)

        if deleted:
            logger.info("Deleted session %s", session_id)
        return deleted

    def cleanup_old_sessions(self, days_to_keep: int = 30) -> int:
        """Delete every session not accessed within *days_to_keep* days."""
        cutoff = days_ago_iso(days_to_keep)
        with self._transaction("sweep") as conn:
            rows = conn.execute(
                "SELECT id FROM sessions WHERE last_accessed < ?", (cutoff,),
            ).fetchall()

        count = 0
        for row in rows:
            try:
                removed = self.delete_session(row["id"])
            except (SessionStoreError, OSError) as exc:
                logger.error("Retention sweep skipped session %s: %s", row["id"], exc)
                continue
            if removed:
                count += 1
        if count:
            logger.info("Retention sweep removed %d session(s) older than %d days", count, days_to_keep)
        return count

    # ── Assets ─────────────────────────────────────────────

    def record_asset(
        self,
        session_id: str,
        asset_type: AssetType | str,
        file_path: Path | str,
        *,
        pose: str | None = None,
        view_name: str | None = None,
        remote_url: str | None = None,
        request_id: str | None = None,
    ) -> AssetRecord:
        """Insert or replace the asset row for ``(session, type, pose, view)``."""
        asset_type = AssetType(asset_type).value
        with self._transaction("record_asset") as conn:
            cur = conn.execute(
                "INSERT OR REPLACE INTO assets (session_id, asset_type, pose, "
                "view_name, file_path, remote_url, request_id, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    session_id, asset_type, pose, view_name, str(file_path),
                    remote_url, request_id, now_iso(),
                ),
            )
            row = conn.execute(
                "SELECT * FROM assets WHERE id = ?", (cur.lastrowid,),
            ).fetchone()
        logger.debug(
            "Recorded asset %s/%s/%s/%s -> %s",
            session_id, asset_type, pose, view_name, file_path,
        )
        return _row_to_asset(row)

    def _find_asset_row(
        self,
        session_id: str,
        asset_type: AssetType | str,
        pose: str | None,
        view_name: str | None,
    ) -> sqlite3.Row | None:
        query = "SELECT * FROM assets WHERE session_id = ? AND asset_type = ?"
        params: list[Any] = [session_id, AssetType(asset_type).value]
        if pose is not None:
            query += " AND pose = ?"
            params.append(pose)
        if view_name is not None:
            query += " AND view_name = ?"
            params.append(view_name)
        query += " ORDER BY created_at DESC, id DESC LIMIT 1"
        with self._transaction("find_asset") as conn:
            return conn.execute(query, params).fetchone()

    def get_asset(
        self,
        session_id: str,
        asset_type: AssetType | str,
        pose: str | None = None,
        view_name: str | None = None,
    ) -> AssetRecord | None:
        """Return the asset record if its file is still on disk."""
        row = self._find_asset_row(session_id, asset_type, pose, view_name)
        if row is None or not Path(row["file_path"]).is_file():
            return None
        return _row_to_asset(row)

    def asset_exists(
        self,
        session_id: str,
        asset_type: AssetType | str,
        pose: str | None = None,
        view_name: str | None = None,
    ) -> Path | None:
        """Return the recorded file path, or ``None`` when absent or stale."""
        record = self.get_asset(session_id, asset_type, pose, view_name)
        return Path(record.file_path) if record else None

    def list_assets(self, session_id: str) -> list[AssetRecord]:
        with self._transaction("list_assets") as conn:
            rows = conn.execute(
                "SELECT * FROM assets WHERE session_id = ? ORDER BY created_at, id",
                (session_id,),
            ).fetchall()
        return [_row_to_asset(r) for r in rows]
