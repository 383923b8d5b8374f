from __future__ import annotations
# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.exceptions import InputValidationError, SessionNotFoundError

logger = logging.getLogger("charforge.routes.sessions")


class CreateSessionRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    character_description: str = Field(min_length=1)
    model_type: str | None = None
    player_mode: int = 1


class UpdateSessionRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    game_state: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


def create_sessions_router() -> APIRouter:
    router = APIRouter()

    @router.post("/sessions", status_code=201)
    async def create_session(body: CreateSessionRequest, request: Request):
        store = request.app.state.store
        providers = request.app.state.adapter.providers
        try:
            model_type = providers.get(body.model_type).name
        except InputValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        session = store.create_session(
            body.character_description,
            model_type=model_type,
            player_mode=body.player_mode,
        )
        return session.to_dict()

    @router.get("/sessions")
    async def list_sessions(
        request: Request,
        limit: int = Query(10, ge=1, le=100),
        offset: int = Query(0, ge=0),
    ):
        sessions, total = request.app.state.store.list_sessions(limit, offset)
        return {
            "sessions": [s.to_dict() for s in sessions],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    @router.get("/sessions/{session_id}")
    async def get_session(session_id: str, request: Request):
        session = request.app.state.store.get_session(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
        return session.to_dict()

    @router.patch("/sessions/{session_id}")
    async def update_session(session_id: str, body: UpdateSessionRequest, request: Request):
        try:
            session = request.app.state.store.update_session(
                session_id, game_state=body.game_state, metadata=body.metadata,
            )
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return session.to_dict()

    @router.delete("/sessions/{session_id}")
    async def delete_session(session_id: str, request: Request):
        if not request.app.state.store.delete_session(session_id):
            raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
        return {"deleted": True, "session_id": session_id}

    @router.get("/sessions/{session_id}/assets")
    async def list_session_assets(session_id: str, request: Request):
        store = request.app.state.store
        if store.get_session(session_id) is None:
            raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
        return {
            "session_id": session_id,
            "assets": [a.to_dict() for a in store.list_assets(session_id)],
        }

    return router
