# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
"""Global test fixtures for CharForge.

Provides filesystem isolation, config cache management, and a fully
wired runtime talking to an in-process fake of the fal.ai queue.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from core.artifact_cache import ArtifactCache
from core.asset_paths import AssetPathResolver
from core.config.models import PipelineConfig
from core.generation.adapter import GenerationAdapter
from core.generation.providers import ProviderRegistry
from core.pipeline.orchestrator import PhaseOrchestrator
from core.session_store import SessionStore
from tests.helpers.filesystem import create_test_data_dir
from tests.helpers.mocks import FakeFal, make_generation_config, no_sleep


# ── CLI options ───────────────────────────────────────────


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run @pytest.mark.live tests (skipped by default)",
    )


@pytest.fixture(autouse=True)
def _skip_live(request: pytest.FixtureRequest) -> None:
    if request.node.get_closest_marker("live") and not request.config.getoption("--run-live"):
        pytest.skip("Skipping live test: use --run-live to enable")


# ── Isolation ─────────────────────────────────────────────


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create an isolated CharForge runtime data directory.

    - Redirects ``CHARFORGE_DATA_DIR`` to a temp directory
    - Removes ``FAL_KEY`` so no test reaches the real API
    - Invalidates the config cache before and after the test
    """
    from core.config import invalidate_cache

    d = create_test_data_dir(tmp_path)
    monkeypatch.setenv("CHARFORGE_DATA_DIR", str(d))
    monkeypatch.delenv("FAL_KEY", raising=False)
    invalidate_cache()

    yield d

    invalidate_cache()


# ── Components ────────────────────────────────────────────


@pytest.fixture
def resolver(data_dir: Path) -> AssetPathResolver:
    return AssetPathResolver(data_dir / "assets")


@pytest.fixture
def store(data_dir: Path, resolver: AssetPathResolver) -> SessionStore:
    s = SessionStore(data_dir / "database" / "sessions.db", resolver)
    yield s
    s.close()


@pytest.fixture
def fake_fal() -> FakeFal:
    return FakeFal()


@pytest.fixture
async def http_client(fake_fal: FakeFal):
    client = fake_fal.client()
    yield client
    await client.aclose()


@pytest.fixture
def adapter(http_client) -> GenerationAdapter:
    return GenerationAdapter(
        make_generation_config(),
        ProviderRegistry(),
        api_key="test-key",
        http_client=http_client,
        sleep=no_sleep,
    )


@pytest.fixture
def cache(resolver: AssetPathResolver, store: SessionStore) -> ArtifactCache:
    return ArtifactCache(resolver, store, public_base_url="http://game.test")


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def orchestrator(
    adapter: GenerationAdapter,
    cache: ArtifactCache,
    store: SessionStore,
    events: list,
) -> PhaseOrchestrator:
    return PhaseOrchestrator(
        adapter, cache, store,
        PipelineConfig(extras_enabled=False),
        on_progress=events.append,
    )
