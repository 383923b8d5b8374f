"""Live tests against the real fal.ai queue (``--run-live`` and FAL_KEY required)."""
# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import os

import pytest

from core.config.models import GenerationConfig
from core.generation.adapter import GenerationAdapter
from core.generation.prompts import GROUND_PROMPT, RIDDLE_FIELDS
from core.generation.providers import ProviderRegistry

# Read before the data_dir fixture strips it from the environment.
_FAL_KEY = os.environ.get("FAL_KEY")

pytestmark = [
    pytest.mark.live,
    pytest.mark.skipif(not _FAL_KEY, reason="FAL_KEY not set"),
]


@pytest.fixture
async def live_adapter():
    adapter = GenerationAdapter(
        GenerationConfig(poll_timeout=300),
        ProviderRegistry(),
        api_key=_FAL_KEY,
    )
    yield adapter
    await adapter.aclose()


class TestLiveFal:
    async def test_ground_texture(self, live_adapter, tmp_path):
        dest = tmp_path / "ground-texture.png"
        result = await live_adapter.synthesize(GROUND_PROMPT, dest)

        assert result.success, result.error
        assert result.remote_url.startswith("https://")
        assert dest.stat().st_size > 0

    async def test_riddle_query(self, live_adapter, tmp_path):
        dest = tmp_path / "puzzle.json"
        result = await live_adapter.query(
            "Write a one-line riddle about a robot.", RIDDLE_FIELDS, dest,
        )

        assert result.success, result.error
        assert set(result.data) >= set(RIDDLE_FIELDS)
        assert dest.is_file()
