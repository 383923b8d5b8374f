from __future__ import annotations
# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

from fastapi import APIRouter

from server.routes.generation import create_generation_router
from server.routes.sessions import create_sessions_router
from server.routes.system import create_system_router


def create_router() -> APIRouter:
    router = APIRouter()
    api = APIRouter(prefix="/api")

    api.include_router(create_generation_router())
    api.include_router(create_sessions_router())
    api.include_router(create_system_router())

    router.include_router(api)

    return router
