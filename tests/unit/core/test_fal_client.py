"""Unit tests for core/generation/fal_client.py — fal.ai queue protocol."""
# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import httpx
import pytest

from core.exceptions import ProviderError, ProviderTimeoutError
from core.generation.fal_client import FalQueueClient
from tests.helpers.mocks import QUEUE_BASE, FakeFal, no_sleep


def _client(fake: FakeFal, http_client: httpx.AsyncClient, **kwargs) -> FalQueueClient:
    return FalQueueClient(
        "test-key",
        base_url=QUEUE_BASE,
        poll_interval=0,
        http_client=http_client,
        sleep=kwargs.pop("sleep", no_sleep),
        **kwargs,
    )


class TestRun:
    async def test_submit_poll_fetch(self, fake_fal, http_client):
        queue = _client(fake_fal, http_client)
        request_id, output = await queue.run("fal-ai/model", {"prompt": "hi"})
        assert request_id == "req-1"
        assert output["images"][0]["url"].endswith("/req-1.png")
        assert fake_fal.submissions == [("fal-ai/model", {"prompt": "hi"})]

    async def test_sends_key_header(self):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("Authorization", ""))
            return httpx.Response(200, json={"request_id": "r1"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            queue = FalQueueClient("secret", base_url=QUEUE_BASE, http_client=client)
            data = await queue.submit("fal-ai/model", {})
        assert seen == ["Key secret"]
        # Fallback URLs are derived when the queue omits them.
        assert data["status_url"] == f"{QUEUE_BASE}/fal-ai/model/requests/r1/status"
        assert data["response_url"] == f"{QUEUE_BASE}/fal-ai/model/requests/r1"

    async def test_polls_until_completed(self, fake_fal, http_client):
        fake_fal.pending_polls = 3
        sleeps: list[float] = []

        async def record_sleep(seconds: float) -> None:
            sleeps.append(seconds)

        queue = _client(fake_fal, http_client, sleep=record_sleep)
        await queue.run("fal-ai/model", {"prompt": "hi"})
        assert fake_fal.status_polls == 4
        assert len(sleeps) == 3

    async def test_failed_status_raises(self, fake_fal, http_client):
        fake_fal.fail_when(lambda ep, payload: True)
        queue = _client(fake_fal, http_client)
        with pytest.raises(ProviderError, match="failed"):
            await queue.run("fal-ai/model", {"prompt": "hi"})

    async def test_missing_request_id_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"detail": "queued?"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            queue = FalQueueClient("k", base_url=QUEUE_BASE, http_client=client)
            with pytest.raises(ProviderError, match="request_id"):
                await queue.submit("fal-ai/model", {})

    async def test_http_error_propagates(self, fake_fal, http_client):
        fake_fal.http_error_when(lambda ep, payload: True)
        queue = _client(fake_fal, http_client)
        with pytest.raises(httpx.HTTPStatusError):
            await queue.run("fal-ai/model", {"prompt": "hi"})

    async def test_poll_timeout(self, fake_fal, http_client):
        fake_fal.pending_polls = 10_000
        queue = _client(fake_fal, http_client, poll_timeout=0)
        with pytest.raises(ProviderTimeoutError):
            await queue.run("fal-ai/model", {"prompt": "hi"})
        assert fake_fal.status_polls == 1


class TestDownload:
    async def test_writes_file_atomically(self, fake_fal, http_client, tmp_path):
        queue = _client(fake_fal, http_client)
        dest = tmp_path / "out" / "front.png"
        await queue.download("https://cdn.test/req-1.png", dest)
        assert dest.read_bytes() == b"bytes:/req-1.png"
        assert [p.name for p in dest.parent.iterdir()] == ["front.png"]

    async def test_failed_download_leaves_nothing(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            queue = FalQueueClient("k", base_url=QUEUE_BASE, http_client=client)
            dest = tmp_path / "front.png"
            with pytest.raises(httpx.HTTPStatusError):
                await queue.download("https://cdn.test/missing.png", dest)
        assert list(tmp_path.iterdir()) == []

    async def test_aclose_leaves_injected_client_open(self, fake_fal, http_client):
        queue = _client(fake_fal, http_client)
        await queue.aclose()
        assert http_client.is_closed is False
