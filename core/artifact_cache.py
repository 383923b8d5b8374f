# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of CharForge core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Existence-based memoization of generation calls.

Before a remote call is made, the artifact's canonical path is checked.
A file already on disk (session tree first, then the legacy tree) short
circuits the call with a cached result.  Otherwise the generator runs and,
for session-scoped keys, an asset record is written.  With
``reuse_assets`` off every call regenerates its artifact.

Concurrent requests for one key are serialized on a per-path
:class:`asyncio.Lock`, and the existence check runs under that lock, so
at most one remote call is made per key.  Downloads are atomic (see
:mod:`core.generation.fal_client`), so "file present" means "complete".
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable

from core.asset_paths import (
    GROUND_FILE,
    AssetPathResolver,
    AssetType,
    mesh_file_name,
    view_file_name,
)
from core.exceptions import SessionStoreError
from core.generation._base import GenerationResult
from core.session_store import SessionStore

logger = logging.getLogger("charforge.cache")

GenerateFn = Callable[[Path], Awaitable[GenerationResult]]


@dataclass(frozen=True)
class ArtifactKey:
    """Identity of one artifact.

    ``pose`` and ``view_name`` are the asset-record columns.  The pose is
    also a path segment unless ``nest_pose`` is false (meshes live flat in
    ``models/`` and carry the pose in their file name).
    """

    session_id: str | None
    asset_type: AssetType
    file_name: str
    pose: str | None = None
    view_name: str | None = None
    nest_pose: bool = True

    @property
    def path_pose(self) -> str | None:
        return self.pose if self.nest_pose else None

    def describe(self) -> str:
        parts = [self.asset_type.value, self.pose, self.view_name or self.file_name]
        return "/".join(p for p in parts if p)

    # ── Constructors ───────────────────────────────────────

    @classmethod
    def ground(cls, session_id: str | None) -> ArtifactKey:
        return cls(session_id, AssetType.GROUND, GROUND_FILE)

    @classmethod
    def view(cls, session_id: str | None, pose: str, view: str) -> ArtifactKey:
        return cls(
            session_id, AssetType.CHARACTER, view_file_name(view),
            pose=pose, view_name=view,
        )

    @classmethod
    def mesh(cls, session_id: str | None, pose: str) -> ArtifactKey:
        return cls(
            session_id, AssetType.MODELS, mesh_file_name(pose),
            pose=pose, nest_pose=False,
        )

    @classmethod
    def image(cls, session_id: str | None, name: str, file_name: str) -> ArtifactKey:
        return cls(session_id, AssetType.IMAGES, file_name, pose=name)


@dataclass
class CacheOutcome:
    result: GenerationResult
    was_cached: bool


class ArtifactCache:
    """Memoize generation calls on artifact paths.

    Args:
        resolver: Maps keys to paths and URLs.
        store: Session store for asset records; ``None`` disables recording.
        public_base_url: Prefix turning a served ``/assets/...`` URL into an
            absolute address, used when no upstream URL was recorded.
        reuse_assets: When false, files already on disk are ignored and
            every call regenerates (and overwrites) its artifact.
    """

    def __init__(
        self,
        resolver: AssetPathResolver,
        store: SessionStore | None = None,
        public_base_url: str = "http://localhost:8081",
        reuse_assets: bool = True,
    ) -> None:
        self.resolver = resolver
        self.store = store
        self.public_base_url = public_base_url.rstrip("/")
        self.reuse_assets = reuse_assets
        self._locks: dict[Path, asyncio.Lock] = {}
        self._lock_users: dict[Path, int] = {}

    def _acquire_lock(self, path: Path) -> asyncio.Lock:
        lock = self._locks.setdefault(path, asyncio.Lock())
        self._lock_users[path] = self._lock_users.get(path, 0) + 1
        return lock

    def _release_lock(self, path: Path) -> None:
        self._lock_users[path] -= 1
        if self._lock_users[path] == 0:
            del self._lock_users[path]
            del self._locks[path]

    def in_flight(self) -> int:
        """Number of keys with a caller holding or waiting on the lock."""
        return len(self._locks)

    # ── Lookup ─────────────────────────────────────────────

    def lookup(self, key: ArtifactKey) -> GenerationResult | None:
        """Return a cached result for *key*, or ``None`` when absent."""
        found = self.resolver.check_exists(
            key.session_id, key.asset_type, key.path_pose, key.file_name,
        )
        if not found.exists:
            return None

        remote_url: str | None = None
        request_id = "cached"
        if key.session_id and not found.is_legacy and self.store is not None:
            record = self.store.get_asset(
                key.session_id, key.asset_type, key.pose, key.view_name,
            )
            if record is not None and Path(record.file_path) == found.path:
                remote_url = record.remote_url
                request_id = record.request_id or request_id

        data = {}
        if found.path.suffix == ".json":
            try:
                data = json.loads(found.path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("Ignoring unreadable %s: %s", found.path, exc)
                return None

        return GenerationResult(
            success=True,
            remote_url=remote_url or f"{self.public_base_url}{found.url}",
            local_path=found.path,
            url=found.url,
            request_id=request_id,
            cached=True,
            data=data,
        )

    # ── Public API ─────────────────────────────────────────

    async def get_or_generate(self, key: ArtifactKey, generate_fn: GenerateFn) -> CacheOutcome:
        """Return the cached artifact for *key* or produce it with *generate_fn*.

        *generate_fn* receives the destination path.  Failures are returned
        as-is and never cached.
        """
        dest = self.resolver.resolve_path(
            key.session_id, key.asset_type, key.path_pose, key.file_name,
        )
        lock = self._acquire_lock(dest)
        try:
            async with lock:
                cached = self.lookup(key) if self.reuse_assets else None
                if cached is not None:
                    logger.info("Reusing cached %s", key.describe())
                    return CacheOutcome(result=cached, was_cached=True)

                result = await generate_fn(dest)
                if not result.success:
                    return CacheOutcome(result=result, was_cached=False)

                result.url = self.resolver.resolve_url(
                    key.session_id, key.asset_type, key.path_pose, key.file_name,
                )
                if key.session_id and self.store is not None:
                    self._record(key, dest, result)
                return CacheOutcome(result=result, was_cached=False)
        finally:
            self._release_lock(dest)

    def _record(self, key: ArtifactKey, dest: Path, result: GenerationResult) -> None:
        try:
            self.store.record_asset(  # type: ignore[union-attr]
                key.session_id,  # type: ignore[arg-type]
                key.asset_type,
                dest,
                pose=key.pose,
                view_name=key.view_name,
                remote_url=result.remote_url,
                request_id=result.request_id,
            )
        except SessionStoreError as exc:
            # The artifact is on disk and stays reusable by path.
            logger.error("Failed to record %s: %s", key.describe(), exc)
            result.diagnostics["store_error"] = str(exc)
