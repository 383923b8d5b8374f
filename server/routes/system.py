from __future__ import annotations
# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

import logging

from fastapi import APIRouter, Request

logger = logging.getLogger("charforge.routes.system")


def create_system_router() -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    async def health(request: Request):
        adapter = request.app.state.adapter
        return {
            "status": "ok",
            "falKeyConfigured": adapter.is_configured,
            "providers": adapter.providers.names(),
            "defaultProvider": adapter.providers.default,
        }

    return router
