# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

"""Construct the long-lived objects of one process.

The store, adapter, cache and orchestrator are created once here and
handed to the server (``app.state``) or a CLI command explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from core.artifact_cache import ArtifactCache
from core.asset_paths import AssetPathResolver
from core.config.models import CharForgeConfig
from core.generation.adapter import GenerationAdapter
from core.generation.providers import ProviderRegistry
from core.pipeline.orchestrator import PhaseOrchestrator, ProgressCallback
from core.session_store import SessionStore

logger = logging.getLogger("charforge.runtime")


@dataclass
class Runtime:
    config: CharForgeConfig
    resolver: AssetPathResolver
    store: SessionStore
    adapter: GenerationAdapter
    cache: ArtifactCache
    orchestrator: PhaseOrchestrator

    async def aclose(self) -> None:
        await self.adapter.aclose()
        self.store.close()


def build_runtime(
    config: CharForgeConfig,
    data_dir: Path,
    *,
    api_key: str | None = None,
    http_client: httpx.AsyncClient | None = None,
    on_progress: ProgressCallback | None = None,
) -> Runtime:
    """Wire every component from *config* under *data_dir*."""
    assets_dir = data_dir / "assets"
    assets_dir.mkdir(parents=True, exist_ok=True)

    resolver = AssetPathResolver(assets_dir)
    store = SessionStore(data_dir / "database" / "sessions.db", resolver)
    adapter = GenerationAdapter(
        config.generation,
        ProviderRegistry.from_config(config.reconstruction),
        api_key=api_key,
        http_client=http_client,
    )
    cache = ArtifactCache(
        resolver,
        store,
        public_base_url=config.server.public_base_url,
        reuse_assets=config.pipeline.reuse_assets,
    )
    orchestrator = PhaseOrchestrator(
        adapter, cache, store, config.pipeline, on_progress=on_progress,
    )
    logger.debug("Runtime built under %s", data_dir)
    return Runtime(
        config=config,
        resolver=resolver,
        store=store,
        adapter=adapter,
        cache=cache,
        orchestrator=orchestrator,
    )
