# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

"""Result and progress types of the phase pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from core.exceptions import PipelineAbortedError
from core.generation._base import GenerationResult


class PipelinePhase(str, Enum):
    PHASE1 = "phase1"
    PHASE2 = "phase2"
    PHASE3 = "phase3"
    PHASE4 = "phase4"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ArtifactRef:
    """Addressable artifact produced (or reused) by the pipeline."""

    url: str | None
    remote_url: str | None
    path: str | None
    cached: bool
    request_id: str | None = None

    @classmethod
    def from_result(cls, result: GenerationResult) -> ArtifactRef:
        return cls(
            url=result.url,
            remote_url=result.remote_url,
            path=str(result.local_path) if result.local_path else None,
            cached=result.cached,
            request_id=result.request_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "remote_url": self.remote_url,
            "path": self.path,
            "cached": self.cached,
            "request_id": self.request_id,
        }


@dataclass
class PipelineEvent:
    phase: PipelinePhase
    step: str
    status: str  # "done", "failed", "skipped"
    artifact: ArtifactRef | None = None
    error: str | None = None


def fallback_scene() -> dict[str, Any]:
    """Minimal default artifact set used when generation aborts."""
    return {
        "ground": {
            "type": "plane",
            "size": 20,
            "material": {"color": "#333333", "roughness": 0.8, "metalness": 0.2},
            "grid": {"size": 20, "divisions": 20, "center_color": "#00d4ff", "color": "#444444"},
        },
        "character": None,
        "models": {},
    }


@dataclass
class PipelineResult:
    """Everything one pipeline run produced.

    ``view_status`` maps pose → view → success (``front`` included) and
    ``mesh_status`` maps pose → mesh success, for every pose the run
    attempted.
    """

    session_id: str
    character: str
    provider: str
    phase: PipelinePhase = PipelinePhase.PHASE1
    ground: ArtifactRef | None = None
    views: dict[str, dict[str, ArtifactRef]] = field(default_factory=dict)
    meshes: dict[str, ArtifactRef] = field(default_factory=dict)
    extras: dict[str, Any] = field(default_factory=dict)
    view_status: dict[str, dict[str, bool]] = field(default_factory=dict)
    mesh_status: dict[str, bool] = field(default_factory=dict)
    skipped_poses: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    error: str | None = None
    fallback: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.phase == PipelinePhase.DONE

    def artifacts(self) -> list[ArtifactRef]:
        refs: list[ArtifactRef] = []
        if self.ground is not None:
            refs.append(self.ground)
        for pose_views in self.views.values():
            refs.extend(pose_views.values())
        refs.extend(self.meshes.values())
        return refs

    def raise_for_status(self) -> None:
        if self.phase == PipelinePhase.FAILED:
            raise PipelineAbortedError(self.error or "Pipeline failed", result=self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "character": self.character,
            "provider": self.provider,
            "status": self.phase.value,
            "ground": self.ground.to_dict() if self.ground else None,
            "views": {
                pose: {view: ref.to_dict() for view, ref in refs.items()}
                for pose, refs in self.views.items()
            },
            "meshes": {pose: ref.to_dict() for pose, ref in self.meshes.items()},
            "extras": self.extras,
            "view_status": self.view_status,
            "mesh_status": self.mesh_status,
            "skipped_poses": self.skipped_poses,
            "errors": self.errors,
            "error": self.error,
            "fallback": self.fallback,
        }
