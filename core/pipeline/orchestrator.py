# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of CharForge core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Four-phase character asset pipeline.

  Phase 1  ground texture  ┐ parallel, both hard
           idle front      ┘
  Phase 2  idle back/left/right/angle_30/angle_-30 from idle front (soft)
  Phase 3  idle mesh from idle views (hard)            ┐ parallel
           secondary pose fronts from idle front (soft) ┘
  Phase 4  secondary pose views (soft), then a mesh for every pose with
           at least ``min_views_for_mesh`` views (soft)

Each phase is an ``asyncio.gather`` join; a request never starts before
the named result it consumes exists.  Extras (lore, riddle, props) run on
an independent task that is joined before the run reports done.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from core.artifact_cache import ArtifactCache, ArtifactKey, CacheOutcome
from core.asset_paths import ANGLE_VIEWS, FRONT_VIEW
from core.config.models import PipelineConfig
from core.exceptions import CharForgeError, MissingPrerequisiteError, UnknownPoseError
from core.generation._base import GenerationResult
from core.generation.adapter import GenerationAdapter
from core.generation.prompts import (
    GROUND_PROMPT,
    LORE_FIELDS,
    RIDDLE_FIELDS,
    VIEW_PROMPTS,
    character_prompt,
    lore_prompt,
    pose_prompt,
    riddle_prompt,
    view_prompt,
)
from core.generation.requests import parse_request
from core.logging_config import bind_pipeline_context
from core.pipeline.models import (
    ArtifactRef,
    PipelineEvent,
    PipelinePhase,
    PipelineResult,
    fallback_scene,
)
from core.session_store import Session, SessionStore

logger = logging.getLogger("charforge.pipeline")

ProgressCallback = Callable[[PipelineEvent], None]


class _HardFailure(Exception):
    def __init__(self, step: str, error: str) -> None:
        super().__init__(f"{step}: {error}")
        self.step = step
        self.error = error


def _enter_phase(result: PipelineResult, phase: PipelinePhase) -> None:
    result.phase = phase
    bind_pipeline_context(phase=phase.value)
    logger.debug("Entering %s", phase.value)


class PhaseOrchestrator:
    """Runs the pipeline and the single-step operations it is built from.

    Args:
        adapter: Remote generation adapter.
        cache: Artifact cache (shares *store*).
        store: Session store.
        config: Pose set and mesh threshold.
        on_progress: Optional callback receiving :class:`PipelineEvent`.
    """

    def __init__(
        self,
        adapter: GenerationAdapter,
        cache: ArtifactCache,
        store: SessionStore,
        config: PipelineConfig | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.adapter = adapter
        self.cache = cache
        self.store = store
        self.config = config or PipelineConfig()
        self.on_progress = on_progress

    # ── Progress ───────────────────────────────────────────

    def _notify(
        self,
        phase: PipelinePhase,
        step: str,
        status: str,
        artifact: ArtifactRef | None = None,
        error: str | None = None,
    ) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(PipelineEvent(phase, step, status, artifact, error))
        except Exception:
            logger.debug("on_progress error (ignored)", exc_info=True)

    # ── Validation ─────────────────────────────────────────

    def _validate_pose(self, pose: str) -> None:
        known = {self.config.primary_pose, *self.config.secondary_poses}
        if pose not in known or pose not in VIEW_PROMPTS:
            raise UnknownPoseError(f"Unknown pose: {pose}")

    # ── Single steps ───────────────────────────────────────

    async def _submit(self, key: ArtifactKey, fields: dict[str, Any]) -> CacheOutcome:
        """Validate *fields* as a tagged request, then generate through the cache.

        A malformed request raises :class:`InputValidationError` before the
        cache is consulted.
        """
        request = parse_request(fields)
        return await self.cache.get_or_generate(
            key, lambda dest: self.adapter.submit(request, dest),
        )

    async def generate_ground(
        self, session_id: str | None, prompt: str | None = None,
    ) -> CacheOutcome:
        text = prompt or GROUND_PROMPT
        return await self._submit(
            ArtifactKey.ground(session_id), {"kind": "synthesize", "prompt": text},
        )

    async def generate_character(
        self,
        session_id: str | None,
        character: str | None,
        pose: str | None = None,
    ) -> CacheOutcome:
        """Text-to-image front view of *pose* (default: the primary pose)."""
        pose = pose or self.config.primary_pose
        self._validate_pose(pose)
        text = character_prompt(character)
        return await self._submit(
            ArtifactKey.view(session_id, pose, FRONT_VIEW),
            {"kind": "synthesize", "prompt": text},
        )

    async def generate_view(
        self,
        session_id: str | None,
        pose: str,
        view: str,
        source_url: str,
    ) -> CacheOutcome:
        """Repose *source_url* to *view*; unknown pose/view raises before any call."""
        text = view_prompt(pose, view)
        return await self._submit(
            ArtifactKey.view(session_id, pose, view),
            {"kind": "edit", "prompt": text, "source_images": [source_url]},
        )

    async def generate_pose(
        self,
        session_id: str | None,
        pose: str,
        source_url: str | None = None,
    ) -> CacheOutcome:
        """Transfer the primary pose's front image into secondary *pose*.

        Raises:
            UnknownPoseError: *pose* has no transfer prompt.
            MissingPrerequisiteError: no source given and no primary front.
        """
        text = pose_prompt(pose)
        key = ArtifactKey.view(session_id, pose, FRONT_VIEW)

        if self.cache.reuse_assets:
            cached = self.cache.lookup(key)
            if cached is not None:
                return CacheOutcome(result=cached, was_cached=True)

        if source_url is None:
            primary = self.cache.lookup(
                ArtifactKey.view(session_id, self.config.primary_pose, FRONT_VIEW)
            )
            if primary is None:
                raise MissingPrerequisiteError(
                    f"{self.config.primary_pose.capitalize()} pose not found. "
                    f"Generate {self.config.primary_pose} pose first."
                )
            source_url = primary.remote_url

        return await self._submit(
            key, {"kind": "edit", "prompt": text, "source_images": [source_url]},
        )

    async def generate_mesh(
        self,
        session_id: str | None,
        pose: str,
        image_urls: list[str],
        provider: str | None = None,
    ) -> CacheOutcome:
        """Reconstruct *pose* from *image_urls*, truncated to the provider ceiling."""
        capability = self.adapter.providers.get(provider)
        images = capability.truncate(list(image_urls))
        return await self._submit(
            ArtifactKey.mesh(session_id, pose),
            {"kind": "reconstruct", "provider": capability.name, "images": images},
        )

    async def query(
        self,
        session_id: str | None,
        name: str,
        prompt: str,
        fields: tuple[str, str] = RIDDLE_FIELDS,
    ) -> CacheOutcome:
        return await self._submit(
            ArtifactKey.image(session_id, name, f"{name}.json"),
            {"kind": "query", "prompt": prompt, "answer_fields": fields},
        )

    async def generate_prop(
        self, session_id: str | None, name: str, prompt: str,
    ) -> CacheOutcome:
        return await self._submit(
            ArtifactKey.image(session_id, name, f"{name}.png"),
            {"kind": "synthesize", "prompt": prompt},
        )

    # ── Pipeline ───────────────────────────────────────────

    def _open_session(
        self, character: str, session_id: str | None, model_type: str | None,
    ) -> Session:
        if session_id:
            session = self.store.get_session(session_id)
            if session is not None:
                return session
        return self.store.create_session(
            character,
            model_type=model_type or self.adapter.providers.default,
            session_id=session_id,
        )

    async def run(
        self,
        character: str,
        session_id: str | None = None,
        model_type: str | None = None,
        include_extras: bool | None = None,
    ) -> PipelineResult:
        """Run all four phases for *character*.

        Reusing *session_id* resumes a previous run: every artifact already
        on disk is returned from the cache without a provider call.

        Returns:
            A :class:`PipelineResult` in phase ``DONE`` or ``FAILED``.  A
            failed result carries the aborting error and the fallback set.
        """
        if model_type is not None:
            self.adapter.providers.get(model_type)
        session = self._open_session(character, session_id, model_type)
        provider = self.adapter.providers.get(model_type or session.model_type).name
        result = PipelineResult(
            session_id=session.id, character=character, provider=provider,
        )
        bind_pipeline_context(session_id=session.id)
        logger.info("Pipeline started for %r (session %s, %s)", character, session.id, provider)

        extras_enabled = (
            self.config.extras_enabled if include_extras is None else include_extras
        )
        extras_task: asyncio.Task[None] | None = None
        if extras_enabled:
            extras_task = asyncio.create_task(self._run_extras(session, result))

        try:
            front = await self._phase1(session.id, character, result)
            views = await self._phase2(session.id, front, result)
            fronts = await self._phase3(session.id, provider, front, views, result)
            await self._phase4(session.id, provider, fronts, result)
        except _HardFailure as exc:
            result.phase = PipelinePhase.FAILED
            result.error = str(exc)
            result.errors.append(str(exc))
            result.fallback = fallback_scene()
            logger.error("Pipeline aborted in %s: %s", exc.step, exc.error)
            self._notify(PipelinePhase.FAILED, exc.step, "failed", error=exc.error)
            if extras_task is not None:
                extras_task.cancel()

        if extras_task is not None:
            try:
                await extras_task
            except asyncio.CancelledError:
                logger.debug("Extras track cancelled")

        if result.phase != PipelinePhase.FAILED:
            result.phase = PipelinePhase.DONE
            self._notify(PipelinePhase.DONE, "pipeline", "done")
            logger.info(
                "Pipeline done (session %s): %d artifact(s), meshes=%s",
                session.id, len(result.artifacts()), sorted(result.meshes),
            )
        return result

    async def _guard(
        self, step: str, coro: Awaitable[CacheOutcome],
    ) -> CacheOutcome:
        """Await *coro*, turning domain errors into a failed outcome."""
        try:
            return await coro
        except (CharForgeError, OSError) as exc:
            logger.error("%s failed: %s", step, exc)
            return CacheOutcome(GenerationResult.failure(str(exc)), was_cached=False)

    def _record_view(
        self,
        result: PipelineResult,
        phase: PipelinePhase,
        pose: str,
        view: str,
        outcome: CacheOutcome,
    ) -> ArtifactRef | None:
        step = f"{pose}/{view}"
        result.view_status.setdefault(pose, {})[view] = outcome.result.success
        if not outcome.result.success:
            self._notify(phase, step, "failed", error=outcome.result.error)
            return None
        ref = ArtifactRef.from_result(outcome.result)
        result.views.setdefault(pose, {})[view] = ref
        self._notify(phase, step, "done", ref)
        return ref

    # ── Phase 1 ──

    async def _phase1(
        self, session_id: str, character: str, result: PipelineResult,
    ) -> ArtifactRef:
        _enter_phase(result, PipelinePhase.PHASE1)
        primary = self.config.primary_pose
        ground, front = await asyncio.gather(
            self._guard("ground", self.generate_ground(session_id)),
            self._guard(
                f"{primary}/front",
                self.generate_character(session_id, character, primary),
            ),
        )

        if not ground.result.success:
            raise _HardFailure("ground", ground.result.error or "unknown error")
        result.ground = ArtifactRef.from_result(ground.result)
        # Consumers can apply the ground texture while Phase 2 runs.
        self._notify(PipelinePhase.PHASE1, "ground", "done", result.ground)

        front_ref = self._record_view(result, PipelinePhase.PHASE1, primary, FRONT_VIEW, front)
        if front_ref is None:
            raise _HardFailure(f"{primary}/front", front.result.error or "unknown error")
        return front_ref

    # ── Phase 2 / 4a ──

    async def _fan_out_views(
        self,
        session_id: str,
        pose: str,
        front: ArtifactRef,
        phase: PipelinePhase,
        result: PipelineResult,
    ) -> list[ArtifactRef]:
        """Generate every angle view of *pose*; return successes in view order."""
        outcomes = await asyncio.gather(*(
            self._guard(
                f"{pose}/{view}",
                self.generate_view(session_id, pose, view, front.remote_url or ""),
            )
            for view in ANGLE_VIEWS
        ))
        produced: list[ArtifactRef] = []
        for view, outcome in zip(ANGLE_VIEWS, outcomes):
            ref = self._record_view(result, phase, pose, view, outcome)
            if ref is None:
                logger.warning("Skipping %s view of %s: %s", view, pose, outcome.result.error)
                result.errors.append(f"{pose}/{view}: {outcome.result.error}")
            else:
                produced.append(ref)
        return produced

    async def _phase2(
        self, session_id: str, front: ArtifactRef, result: PipelineResult,
    ) -> list[ArtifactRef]:
        _enter_phase(result, PipelinePhase.PHASE2)
        return await self._fan_out_views(
            session_id, self.config.primary_pose, front, PipelinePhase.PHASE2, result,
        )

    # ── Phase 3 ──

    async def _phase3(
        self,
        session_id: str,
        provider: str,
        front: ArtifactRef,
        views: list[ArtifactRef],
        result: PipelineResult,
    ) -> dict[str, ArtifactRef]:
        _enter_phase(result, PipelinePhase.PHASE3)
        primary = self.config.primary_pose
        images = [ref.remote_url for ref in (front, *views) if ref.remote_url]
        poses = list(self.config.secondary_poses)

        mesh, *pose_fronts = await asyncio.gather(
            self._guard(
                f"{primary}/mesh",
                self.generate_mesh(session_id, primary, images, provider),
            ),
            *(
                self._guard(
                    f"{pose}/front",
                    self.generate_pose(session_id, pose, front.remote_url),
                )
                for pose in poses
            ),
        )

        result.mesh_status[primary] = mesh.result.success
        if not mesh.result.success:
            raise _HardFailure(f"{primary}/mesh", mesh.result.error or "unknown error")
        result.meshes[primary] = ArtifactRef.from_result(mesh.result)
        self._notify(PipelinePhase.PHASE3, f"{primary}/mesh", "done", result.meshes[primary])

        fronts: dict[str, ArtifactRef] = {}
        for pose, outcome in zip(poses, pose_fronts):
            ref = self._record_view(result, PipelinePhase.PHASE3, pose, FRONT_VIEW, outcome)
            if ref is None:
                logger.warning("Skipping pose %s: %s", pose, outcome.result.error)
                result.errors.append(f"{pose}/front: {outcome.result.error}")
                result.skipped_poses.append(pose)
                result.mesh_status[pose] = False
            else:
                fronts[pose] = ref
        return fronts

    # ── Phase 4 ──

    async def _phase4(
        self,
        session_id: str,
        provider: str,
        fronts: dict[str, ArtifactRef],
        result: PipelineResult,
    ) -> None:
        _enter_phase(result, PipelinePhase.PHASE4)
        poses = list(fronts)
        per_pose_views = await asyncio.gather(*(
            self._fan_out_views(session_id, pose, fronts[pose], PipelinePhase.PHASE4, result)
            for pose in poses
        ))

        qualified: dict[str, list[str]] = {}
        for pose, views in zip(poses, per_pose_views):
            if len(views) < self.config.min_views_for_mesh:
                logger.warning(
                    "Pose %s has %d/%d views (< %d), skipping reconstruction",
                    pose, len(views), len(ANGLE_VIEWS), self.config.min_views_for_mesh,
                )
                result.skipped_poses.append(pose)
                result.mesh_status[pose] = False
                self._notify(PipelinePhase.PHASE4, f"{pose}/mesh", "skipped")
                continue
            qualified[pose] = [
                ref.remote_url for ref in (fronts[pose], *views) if ref.remote_url
            ]

        meshes = await asyncio.gather(*(
            self._guard(
                f"{pose}/mesh",
                self.generate_mesh(session_id, pose, images, provider),
            )
            for pose, images in qualified.items()
        ))
        for pose, outcome in zip(qualified, meshes):
            result.mesh_status[pose] = outcome.result.success
            if outcome.result.success:
                result.meshes[pose] = ArtifactRef.from_result(outcome.result)
                self._notify(PipelinePhase.PHASE4, f"{pose}/mesh", "done", result.meshes[pose])
            else:
                logger.warning("Mesh for %s failed: %s", pose, outcome.result.error)
                result.errors.append(f"{pose}/mesh: {outcome.result.error}")
                self._notify(PipelinePhase.PHASE4, f"{pose}/mesh", "failed", error=outcome.result.error)

    # ── Extras track ──

    async def _run_extras(self, session: Session, result: PipelineResult) -> None:
        """Lore, riddle and props; never fails the pipeline."""
        sid = session.id
        character = session.character_description
        jobs: dict[str, Awaitable[CacheOutcome]] = {
            "lore": self.query(sid, "lore", lore_prompt(character), LORE_FIELDS),
            "puzzle": self.query(sid, "puzzle", riddle_prompt(character), RIDDLE_FIELDS),
        }
        for prop in self.config.props:
            jobs[prop.name] = self.generate_prop(sid, prop.name, prop.prompt)

        outcomes = await asyncio.gather(*(
            self._guard(f"extra/{name}", job) for name, job in jobs.items()
        ))
        for name, outcome in zip(jobs, outcomes):
            if not outcome.result.success:
                logger.warning("Extra %s failed: %s", name, outcome.result.error)
                result.errors.append(f"extra/{name}: {outcome.result.error}")
                continue
            entry: dict[str, Any] = ArtifactRef.from_result(outcome.result).to_dict()
            if outcome.result.data:
                entry["data"] = outcome.result.data
            result.extras[name] = entry

        puzzle = result.extras.get("puzzle", {}).get("data")
        if puzzle:
            metadata = dict(session.metadata or {})
            metadata["puzzle"] = puzzle
            try:
                self.store.update_session(sid, metadata=metadata)
            except CharForgeError as exc:
                logger.error("Failed to store puzzle for %s: %s", sid, exc)
                result.errors.append(f"extra/puzzle: {exc}")
