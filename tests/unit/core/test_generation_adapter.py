"""Unit tests for core/generation/adapter.py — the four remote capabilities."""
# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import json

import pytest

from core.generation.adapter import GenerationAdapter
from core.generation.providers import ProviderRegistry
from core.generation.requests import EditRequest, QueryRequest, ReconstructRequest, SynthesizeRequest
from tests.helpers.mocks import LLM_ENDPOINT, make_generation_config, no_sleep


def _urls(n: int) -> list[str]:
    return [f"https://cdn.test/view-{i}.png" for i in range(n)]


# ── synthesize / edit ────────────────────────────────────


class TestImageOperations:
    async def test_synthesize_downloads_artifact(self, adapter, fake_fal, tmp_path):
        dest = tmp_path / "ground.png"
        result = await adapter.synthesize("a floor", dest)

        assert result.success is True
        assert result.remote_url == "https://cdn.test/req-1.png"
        assert result.local_path == dest
        assert result.request_id == "req-1"
        assert dest.read_bytes() == b"bytes:/req-1.png"
        assert fake_fal.submissions == [
            ("fal-ai/alpha-image-232/text-to-image", {"prompt": "a floor"}),
        ]

    async def test_edit_sends_source_images(self, adapter, fake_fal, tmp_path):
        result = await adapter.edit("turn around", ["https://cdn.test/front.png"], tmp_path / "back.png")

        assert result.success is True
        endpoint, payload = fake_fal.submissions[0]
        assert endpoint == "fal-ai/alpha-image-232/edit-image"
        assert payload["image_urls"] == ["https://cdn.test/front.png"]
        assert payload["enable_prompt_expansion"] is False

    async def test_empty_prompt_rejected_without_call(self, adapter, fake_fal, tmp_path):
        result = await adapter.synthesize("", tmp_path / "x.png")
        assert result.success is False
        assert "prompt" in result.error
        assert fake_fal.submissions == []

    async def test_edit_without_sources_rejected(self, adapter, fake_fal, tmp_path):
        result = await adapter.edit("turn", [], tmp_path / "x.png")
        assert result.success is False
        assert fake_fal.submissions == []

    async def test_provider_failure_is_result(self, adapter, fake_fal, tmp_path):
        fake_fal.fail_when(lambda ep, payload: True)
        dest = tmp_path / "x.png"
        result = await adapter.synthesize("a floor", dest)
        assert result.success is False
        assert "failed" in result.error
        assert result.diagnostics.get("status") == "FAILED"
        assert not dest.exists()

    async def test_http_failure_carries_diagnostics(self, adapter, fake_fal, tmp_path):
        fake_fal.http_error_when(lambda ep, payload: True)
        result = await adapter.synthesize("a floor", tmp_path / "x.png")
        assert result.success is False
        assert "HTTP 500" in result.error
        assert result.diagnostics["status_code"] == 500
        assert result.diagnostics["body"] == {"detail": "upstream exploded"}

    async def test_no_retry_on_failure(self, adapter, fake_fal, tmp_path):
        fake_fal.http_error_when(lambda ep, payload: True)
        await adapter.synthesize("a floor", tmp_path / "x.png")
        assert len(fake_fal.submissions) == 1

    async def test_unconfigured_key_is_failure(self, data_dir, http_client, tmp_path):
        adapter = GenerationAdapter(
            make_generation_config(), ProviderRegistry(), http_client=http_client,
        )
        assert adapter.is_configured is False
        result = await adapter.synthesize("a floor", tmp_path / "x.png")
        assert result.success is False
        assert "FAL_KEY" in result.error

    async def test_env_key_configures(self, data_dir, http_client, monkeypatch):
        monkeypatch.setenv("FAL_KEY", "from-env")
        adapter = GenerationAdapter(
            make_generation_config(), ProviderRegistry(), http_client=http_client,
        )
        assert adapter.is_configured is True


# ── reconstruct_3d ───────────────────────────────────────


class TestReconstruct:
    async def test_trellis_ceiling_six(self, adapter, fake_fal, tmp_path):
        result = await adapter.reconstruct_3d("trellis", _urls(7), tmp_path / "m.glb")

        assert result.success is True
        assert result.data["provider"] == "trellis"
        endpoint, payload = fake_fal.submissions[0]
        assert endpoint == "fal-ai/trellis/multi"
        assert payload["image_urls"] == _urls(6)
        assert payload["multiimage_algo"] == "stochastic"

    async def test_rodin_ceiling_five(self, adapter, fake_fal, tmp_path):
        result = await adapter.reconstruct_3d("rodin", _urls(6), tmp_path / "m.glb")

        assert result.success is True
        endpoint, payload = fake_fal.submissions[0]
        assert endpoint == "fal-ai/hyper3d/rodin/v2"
        assert payload["input_image_urls"] == _urls(5)
        assert payload["geometry_file_format"] == "glb"

    async def test_under_ceiling_sends_all(self, adapter, fake_fal, tmp_path):
        await adapter.reconstruct_3d("trellis", _urls(3), tmp_path / "m.glb")
        assert fake_fal.submissions[0][1]["image_urls"] == _urls(3)

    async def test_default_provider(self, adapter, fake_fal, tmp_path):
        result = await adapter.reconstruct_3d(None, _urls(2), tmp_path / "m.glb")
        assert result.data["provider"] == "trellis"

    async def test_mesh_downloaded(self, adapter, tmp_path):
        dest = tmp_path / "models" / "character_idle.glb"
        result = await adapter.reconstruct_3d("trellis", _urls(2), dest)
        assert result.remote_url == "https://cdn.test/req-1.glb"
        assert dest.read_bytes() == b"bytes:/req-1.glb"

    async def test_unknown_provider_is_failure(self, adapter, fake_fal, tmp_path):
        result = await adapter.reconstruct_3d("meshy", _urls(2), tmp_path / "m.glb")
        assert result.success is False
        assert "meshy" in result.error
        assert fake_fal.submissions == []

    async def test_options_override_defaults(self, adapter, fake_fal, tmp_path):
        await adapter.reconstruct_3d(
            "trellis", _urls(2), tmp_path / "m.glb", options={"texture_size": "2048"},
        )
        assert fake_fal.submissions[0][1]["texture_size"] == "2048"


# ── query ────────────────────────────────────────────────


class TestQuery:
    async def test_returns_two_fields(self, adapter, fake_fal):
        result = await adapter.query("make a riddle")
        assert result.success is True
        assert result.data == {"question": "What has keys but opens no locks?", "answer": "piano"}
        endpoint, payload = fake_fal.submissions[0]
        assert endpoint == LLM_ENDPOINT
        assert "question, answer" in payload["system_prompt"]

    async def test_strips_code_fence(self, adapter, fake_fal):
        fake_fal.llm_output = '```json\n{"title": "Scout", "story": "Beep."}\n```'
        result = await adapter.query("lore", ("title", "story"))
        assert result.data == {"title": "Scout", "story": "Beep."}

    async def test_writes_answer_file(self, adapter, tmp_path):
        dest = tmp_path / "images" / "puzzle" / "puzzle.json"
        result = await adapter.query("make a riddle", dest=dest)
        assert result.local_path == dest
        assert json.loads(dest.read_text(encoding="utf-8"))["answer"] == "piano"

    async def test_malformed_json_is_failure(self, adapter, fake_fal, tmp_path):
        fake_fal.llm_output = "I cannot do that"
        dest = tmp_path / "puzzle.json"
        result = await adapter.query("make a riddle", dest=dest)
        assert result.success is False
        assert "malformed" in result.error
        assert not dest.exists()

    async def test_missing_field_is_failure(self, adapter, fake_fal):
        fake_fal.llm_output = '{"question": "?"}'
        result = await adapter.query("make a riddle")
        assert result.success is False

    async def test_identical_fields_rejected(self, adapter, fake_fal):
        result = await adapter.query("x", ("a", "a"))
        assert result.success is False
        assert fake_fal.submissions == []


# ── submit (tagged dispatch) ─────────────────────────────


class TestSubmit:
    @pytest.mark.parametrize(
        "request_obj,endpoint",
        [
            (SynthesizeRequest(prompt="p"), "fal-ai/alpha-image-232/text-to-image"),
            (EditRequest(prompt="p", source_images=["https://cdn.test/a.png"]),
             "fal-ai/alpha-image-232/edit-image"),
            (ReconstructRequest(provider="rodin", images=["https://cdn.test/a.png"]),
             "fal-ai/hyper3d/rodin/v2"),
            (QueryRequest(prompt="p"), LLM_ENDPOINT),
        ],
    )
    async def test_dispatches_by_kind(self, adapter, fake_fal, tmp_path, request_obj, endpoint):
        result = await adapter.submit(request_obj, tmp_path / "out")
        assert result.success is True
        assert fake_fal.endpoints() == [endpoint]


async def test_aclose_is_idempotent(http_client):
    adapter = GenerationAdapter(
        make_generation_config(), ProviderRegistry(),
        api_key="k", http_client=http_client, sleep=no_sleep,
    )
    adapter._queue()
    await adapter.aclose()
    await adapter.aclose()
    assert http_client.is_closed is False
