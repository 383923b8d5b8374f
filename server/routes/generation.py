from __future__ import annotations
# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

"""Per-step generation endpoints and the full-pipeline endpoint.

Request bodies use the visualization client's camelCase field names
(``sessionId``, ``viewName``, ``imageUrl`` ...).  Every step answers with
``{success, imageUrl|modelUrl, remoteUrl, requestId, cached}`` or
``{success: false, error}``.
"""

import logging
from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.artifact_cache import CacheOutcome
from core.asset_paths import (
    ALL_VIEWS,
    GROUND_FILE,
    PRIMARY_POSE,
    AssetType,
    mesh_file_name,
    view_file_name,
)
from core.exceptions import InputValidationError
from core.generation.prompts import DEFAULT_CHARACTER, RIDDLE_FIELDS

logger = logging.getLogger("charforge.routes.generation")


class _ClientModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TextureRequest(_ClientModel):
    prompt: str | None = None
    session_id: str | None = None


class CharacterRequest(_ClientModel):
    character: str = DEFAULT_CHARACTER
    pose: str = PRIMARY_POSE
    session_id: str | None = None


class ViewRequest(_ClientModel):
    view_name: str
    image_url: str
    pose: str = PRIMARY_POSE
    session_id: str | None = None


class PoseRequest(_ClientModel):
    target_pose: str
    image_url: str | None = None
    session_id: str | None = None


class ModelRequest(_ClientModel):
    image_urls: list[str] = Field(min_length=1)
    pose: str = PRIMARY_POSE
    model_type: str | None = None
    session_id: str | None = None


class QueryBody(_ClientModel):
    prompt: str
    name: str = "puzzle"
    answer_fields: tuple[str, str] = RIDDLE_FIELDS
    session_id: str | None = None


class PipelineRequest(_ClientModel):
    character: str = DEFAULT_CHARACTER
    session_id: str | None = None
    model_type: str | None = None
    include_extras: bool | None = None


# ── Envelopes ─────────────────────────────────────────────


def _envelope(outcome: CacheOutcome, url_key: str, **extra: Any) -> JSONResponse:
    result = outcome.result
    if not result.success:
        body: dict[str, Any] = {"success": False, "error": result.error, **extra}
        if result.diagnostics:
            body["diagnostics"] = result.diagnostics
        return JSONResponse(body, status_code=500)
    return JSONResponse({
        "success": True,
        url_key: result.url,
        "remoteUrl": result.remote_url,
        "requestId": result.request_id,
        "cached": outcome.was_cached,
        **extra,
    })


def _rejected(exc: InputValidationError, **extra: Any) -> JSONResponse:
    logger.info("Rejected request: %s", exc)
    return JSONResponse({"success": False, "error": str(exc), **extra}, status_code=400)


def create_generation_router() -> APIRouter:
    router = APIRouter()

    @router.post("/generate-texture")
    async def generate_texture(body: TextureRequest, request: Request):
        orchestrator = request.app.state.orchestrator
        try:
            outcome = await orchestrator.generate_ground(body.session_id, body.prompt)
        except InputValidationError as exc:
            return _rejected(exc)
        return _envelope(outcome, "imageUrl")

    @router.post("/generate-character")
    async def generate_character(body: CharacterRequest, request: Request):
        orchestrator = request.app.state.orchestrator
        try:
            outcome = await orchestrator.generate_character(
                body.session_id, body.character, body.pose,
            )
        except InputValidationError as exc:
            return _rejected(exc)
        return _envelope(outcome, "imageUrl", pose=body.pose)

    @router.post("/generate-view")
    async def generate_view(body: ViewRequest, request: Request):
        orchestrator = request.app.state.orchestrator
        try:
            outcome = await orchestrator.generate_view(
                body.session_id, body.pose, body.view_name, body.image_url,
            )
        except InputValidationError as exc:
            return _rejected(exc, pose=body.pose, viewName=body.view_name)
        return _envelope(outcome, "imageUrl", pose=body.pose, viewName=body.view_name)

    @router.post("/generate-pose")
    async def generate_pose(body: PoseRequest, request: Request):
        orchestrator = request.app.state.orchestrator
        try:
            outcome = await orchestrator.generate_pose(
                body.session_id, body.target_pose, body.image_url,
            )
        except InputValidationError as exc:
            return _rejected(exc, pose=body.target_pose)
        return _envelope(outcome, "imageUrl", pose=body.target_pose)

    @router.post("/generate-3d-model")
    async def generate_3d_model(body: ModelRequest, request: Request):
        orchestrator = request.app.state.orchestrator
        try:
            model_type = orchestrator.adapter.providers.get(body.model_type).name
            outcome = await orchestrator.generate_mesh(
                body.session_id, body.pose, body.image_urls, model_type,
            )
        except InputValidationError as exc:
            return _rejected(exc, modelType=body.model_type)
        return _envelope(outcome, "modelUrl", pose=body.pose, modelType=model_type)

    @router.post("/query")
    async def query(body: QueryBody, request: Request):
        orchestrator = request.app.state.orchestrator
        try:
            outcome = await orchestrator.query(
                body.session_id, body.name, body.prompt, body.answer_fields,
            )
        except InputValidationError as exc:
            return _rejected(exc)
        if not outcome.result.success:
            return _envelope(outcome, "url")
        return {
            "success": True,
            "data": outcome.result.data,
            "requestId": outcome.result.request_id,
            "cached": outcome.was_cached,
        }

    @router.post("/pipeline/run")
    async def run_pipeline(body: PipelineRequest, request: Request):
        orchestrator = request.app.state.orchestrator
        try:
            result = await orchestrator.run(
                body.character,
                session_id=body.session_id,
                model_type=body.model_type,
                include_extras=body.include_extras,
            )
        except InputValidationError as exc:
            return _rejected(exc)
        return {"success": result.ok, **result.to_dict()}

    @router.get("/check-assets")
    async def check_assets(
        request: Request,
        session_id: str | None = Query(None, alias="sessionId"),
        pose: str = PRIMARY_POSE,
    ):
        resolver = request.app.state.resolver
        try:
            ground = resolver.check_exists(session_id, AssetType.GROUND, None, GROUND_FILE)
            views = {
                view: resolver.check_exists(
                    session_id, AssetType.CHARACTER, pose, view_file_name(view),
                )
                for view in ALL_VIEWS
            }
            model = resolver.check_exists(
                session_id, AssetType.MODELS, None, mesh_file_name(pose),
            )
        except InputValidationError as exc:
            return _rejected(exc)

        # Legacy files count as present, the same way the cache treats them.
        existing: dict[str, bool] = {"ground": ground.exists}
        for view, found in views.items():
            existing[f"{pose}/{view}"] = found.exists
        existing["model"] = model.exists
        return {
            "sessionId": session_id,
            "pose": pose,
            "allExist": all(existing.values()),
            "reuseEnabled": request.app.state.cache.reuse_assets,
            "existing": existing,
            "urls": {
                "ground": ground.url,
                "character": {view: found.url for view, found in views.items()},
                "model": model.url,
            },
        }

    return router
