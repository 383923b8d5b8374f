# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of CharForge core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Async client for the fal.ai queue API.

Every model call follows the same protocol:

  1. POST ``{base}/{endpoint}`` → ``request_id``, ``status_url``, ``response_url``
  2. GET ``status_url`` until ``COMPLETED`` (or ``FAILED``)
  3. GET ``response_url`` → model output JSON
  4. GET the media URL from the output → bytes on disk

Downloads land in a hidden sibling file first and are moved into place
with :func:`os.replace`, so an interrupted download never leaves a
partial artifact at the final path.
"""
from __future__ import annotations

import asyncio
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Any, Awaitable, Callable

import httpx

from core.exceptions import ProviderError, ProviderTimeoutError

logger = logging.getLogger("charforge.generation.fal")

_DONE_STATUSES = frozenset({"COMPLETED"})
_FAILED_STATUSES = frozenset({"FAILED", "ERROR", "CANCELLED"})


class FalQueueClient:
    """Submit/poll/fetch/download against ``queue.fal.run``.

    Args:
        api_key: fal.ai key, sent as ``Authorization: Key <api_key>``.
        base_url: Queue root, e.g. ``https://queue.fal.run``.
        poll_interval: Seconds between status polls.
        poll_timeout: Overall deadline for one task; ``None`` waits forever.
        request_timeout: Per-HTTP-call timeout; ``None`` disables it.
        http_client: Injected client (tests pass one with a mock transport).
        sleep: Awaitable sleep used between polls.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://queue.fal.run",
        poll_interval: float = 1.0,
        poll_timeout: float | None = None,
        request_timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._key = api_key
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(request_timeout),
        )
        self._sleep = sleep

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Key {self._key}",
            "Content-Type": "application/json",
        }

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ── Queue protocol ─────────────────────────────────────

    async def submit(self, endpoint: str, payload: dict[str, Any]) -> dict[str, str]:
        resp = await self._client.post(
            f"{self.base_url}/{endpoint}",
            json=payload,
            headers=self._headers(),
        )
        resp.raise_for_status()
        data = resp.json()
        request_id = data.get("request_id")
        if not request_id:
            raise ProviderError(
                f"fal {endpoint} submit returned no request_id", diagnostics=data,
            )
        # Status/result URLs omit endpoint subpaths, so prefer the ones returned.
        base = f"{self.base_url}/{endpoint}/requests/{request_id}"
        return {
            "request_id": request_id,
            "status_url": data.get("status_url") or f"{base}/status",
            "response_url": data.get("response_url") or base,
        }

    async def wait(self, endpoint: str, submit_data: dict[str, str]) -> None:
        request_id = submit_data["request_id"]
        deadline = (
            time.monotonic() + self.poll_timeout
            if self.poll_timeout is not None else None
        )

        while True:
            status_resp = await self._client.get(
                submit_data["status_url"], headers=self._headers(),
            )
            status_resp.raise_for_status()
            status_data = status_resp.json()
            status = status_data.get("status")
            if status in _DONE_STATUSES:
                return
            if status in _FAILED_STATUSES:
                raise ProviderError(
                    f"fal {endpoint} task {request_id} failed: "
                    f"{status_data.get('error', 'unknown')}",
                    diagnostics=status_data,
                )
            if deadline is not None and time.monotonic() >= deadline:
                raise ProviderTimeoutError(
                    f"fal {endpoint} task {request_id} timed out after "
                    f"{self.poll_timeout}s"
                )
            logger.debug("fal %s task %s: %s", endpoint, request_id, status)
            await self._sleep(self.poll_interval)

    async def fetch_result(self, submit_data: dict[str, str]) -> dict[str, Any]:
        result_resp = await self._client.get(
            submit_data["response_url"], headers=self._headers(),
        )
        result_resp.raise_for_status()
        return result_resp.json()

    async def run(self, endpoint: str, payload: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """Run one model call to completion.

        Returns:
            ``(request_id, output)`` where *output* is the model's JSON.
        """
        submit_data = await self.submit(endpoint, payload)
        request_id = submit_data["request_id"]
        logger.info("fal %s submitted: %s", endpoint, request_id)
        await self.wait(endpoint, submit_data)
        output = await self.fetch_result(submit_data)
        logger.info("fal %s completed: %s", endpoint, request_id)
        return request_id, output

    # ── Download ───────────────────────────────────────────

    async def download(self, url: str, dest: Path) -> Path:
        """Stream *url* into *dest* atomically."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = dest.with_name(f".{dest.name}.{uuid.uuid4().hex[:8]}.part")
        try:
            async with self._client.stream("GET", url) as resp:
                resp.raise_for_status()
                with open(tmp, "wb") as fh:
                    async for chunk in resp.aiter_bytes():
                        fh.write(chunk)
            os.replace(tmp, dest)
        finally:
            tmp.unlink(missing_ok=True)
        logger.debug("Downloaded %s -> %s", url, dest)
        return dest
