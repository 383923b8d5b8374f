# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of CharForge core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Canonical on-disk and URL locations for generated artifacts.

Layout::

    <assets_root>/<session_id>/ground/ground-texture.png
    <assets_root>/<session_id>/character/<pose>/<view>.png
    <assets_root>/<session_id>/models/character_<pose>.glb
    <assets_root>/<session_id>/images/<pose>/<name>

Artifacts generated before sessions existed live in the same tree without
the ``<session_id>`` segment (the *legacy* tree).  :meth:`check_exists`
consults the session tree first and falls back to the legacy one, so old
installations keep working without a migration.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from core.exceptions import InvalidAssetPathError


class AssetType(str, Enum):
    GROUND = "ground"
    CHARACTER = "character"
    MODELS = "models"
    IMAGES = "images"


# ── Naming ─────────────────────────────────────────────────

PRIMARY_POSE = "idle"
POSES = ("idle", "walking", "shooting")
FRONT_VIEW = "front"
ANGLE_VIEWS = ("back", "left", "right", "angle_30", "angle_-30")
ALL_VIEWS = (FRONT_VIEW, *ANGLE_VIEWS)
GROUND_FILE = "ground-texture.png"


def view_file_name(view: str) -> str:
    return f"{view}.png"


def mesh_file_name(pose: str) -> str:
    return f"character_{pose}.glb"


@dataclass(frozen=True)
class ResolvedAsset:
    """Result of an existence check."""

    path: Path
    url: str
    exists: bool
    is_legacy: bool = False


def _validate_segment(value: str, what: str) -> str:
    if not value or value in (".", "..") or "/" in value or "\\" in value:
        raise InvalidAssetPathError(f"Invalid {what}: {value!r}")
    return value


# ── Resolver ───────────────────────────────────────────────


class AssetPathResolver:
    """Pure mapping from ``(session, type, pose, file)`` to path and URL."""

    def __init__(self, assets_root: Path, url_prefix: str = "/assets") -> None:
        self.assets_root = assets_root
        self.url_prefix = url_prefix.rstrip("/")

    def _segments(
        self,
        session_id: str | None,
        asset_type: AssetType | str,
        pose: str | None,
        file_name: str | None,
    ) -> list[str]:
        parts: list[str] = []
        if session_id:
            parts.append(_validate_segment(session_id, "session id"))
        try:
            parts.append(AssetType(asset_type).value)
        except ValueError:
            raise InvalidAssetPathError(f"Invalid asset type: {asset_type!r}") from None
        if pose:
            parts.append(_validate_segment(pose, "pose"))
        if file_name:
            parts.append(_validate_segment(file_name, "file name"))
        return parts

    def resolve_path(
        self,
        session_id: str | None,
        asset_type: AssetType | str,
        pose: str | None,
        file_name: str | None,
    ) -> Path:
        return self.assets_root.joinpath(
            *self._segments(session_id, asset_type, pose, file_name)
        )

    def resolve_url(
        self,
        session_id: str | None,
        asset_type: AssetType | str,
        pose: str | None,
        file_name: str | None,
    ) -> str:
        return "/".join(
            [self.url_prefix, *self._segments(session_id, asset_type, pose, file_name)]
        )

    def session_dir(self, session_id: str) -> Path:
        return self.assets_root / _validate_segment(session_id, "session id")

    def check_exists(
        self,
        session_id: str | None,
        asset_type: AssetType | str,
        pose: str | None,
        file_name: str,
    ) -> ResolvedAsset:
        """Look for an artifact in the session tree, then the legacy tree."""
        if session_id:
            session_path = self.resolve_path(session_id, asset_type, pose, file_name)
            if session_path.is_file():
                return ResolvedAsset(
                    path=session_path,
                    url=self.resolve_url(session_id, asset_type, pose, file_name),
                    exists=True,
                )

        legacy_path = self.resolve_path(None, asset_type, pose, file_name)
        if legacy_path.is_file():
            return ResolvedAsset(
                path=legacy_path,
                url=self.resolve_url(None, asset_type, pose, file_name),
                exists=True,
                is_legacy=True,
            )

        return ResolvedAsset(
            path=self.resolve_path(session_id, asset_type, pose, file_name),
            url=self.resolve_url(session_id, asset_type, pose, file_name),
            exists=False,
        )

    def session_asset_paths(
        self, session_id: str | None, pose: str = PRIMARY_POSE,
    ) -> dict[str, Path | dict[str, Path]]:
        """Return the canonical artifact set for one pose."""
        return {
            "ground": self.resolve_path(session_id, AssetType.GROUND, None, GROUND_FILE),
            "character": {
                view: self.resolve_path(
                    session_id, AssetType.CHARACTER, pose, view_file_name(view),
                )
                for view in ALL_VIEWS
            },
            "model": self.resolve_path(
                session_id, AssetType.MODELS, None, mesh_file_name(pose),
            ),
        }

    def session_asset_urls(
        self, session_id: str | None, pose: str = PRIMARY_POSE,
    ) -> dict[str, str | dict[str, str]]:
        return {
            "ground": self.resolve_url(session_id, AssetType.GROUND, None, GROUND_FILE),
            "character": {
                view: self.resolve_url(
                    session_id, AssetType.CHARACTER, pose, view_file_name(view),
                )
                for view in ALL_VIEWS
            },
            "model": self.resolve_url(
                session_id, AssetType.MODELS, None, mesh_file_name(pose),
            ),
        }
