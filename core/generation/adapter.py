# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of CharForge core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Uniform interface over the four remote generation capabilities.

  1. synthesize      text → image
  2. edit            image(s) + prompt → image (repose / pose transfer)
  3. reconstruct_3d  image set → GLB mesh (provider-specific input ceiling)
  4. query           prompt → two-field JSON answer (LLM)

Each operation is one round trip.  Success downloads the artifact to
``dest`` and returns both the local path and the provider URL.  Any
transport or provider error comes back as a failure result; the adapter
never retries.
"""
from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Callable

import httpx
from pydantic import ValidationError, create_model

from core.config.models import GenerationConfig
from core.exceptions import CharForgeError, ProviderConfigError, ProviderError
from core.generation._base import GenerationResult, get_credential, logger
from core.generation.fal_client import FalQueueClient
from core.generation.providers import ProviderRegistry
from core.generation.requests import (
    EditRequest,
    GenerationRequest,
    QueryRequest,
    ReconstructRequest,
    SynthesizeRequest,
    format_validation_error,
)

_JSON_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)

_QUERY_SYSTEM_PROMPT = (
    "Respond with a single JSON object and nothing else. "
    "The object must have exactly these string keys: {keys}."
)


def _first_image_url(output: dict[str, Any]) -> str:
    images = output.get("images") or []
    if not images or not images[0].get("url"):
        raise ProviderError("No images returned from API", diagnostics=output)
    return images[0]["url"]


def _mesh_url(output: dict[str, Any]) -> str:
    mesh = output.get("model_mesh") or {}
    if not mesh.get("url"):
        raise ProviderError("No model returned from API", diagnostics=output)
    return mesh["url"]


def _http_diagnostics(exc: httpx.HTTPStatusError) -> dict[str, Any]:
    try:
        body: Any = exc.response.json()
    except ValueError:
        body = exc.response.text
    return {"status_code": exc.response.status_code, "body": body}


class GenerationAdapter:
    """Adapter over fal.ai models.

    Args:
        config: Endpoint and polling settings.
        providers: Reconstruction provider registry.
        api_key: fal.ai key; when ``None`` it is resolved lazily from
            config.json / ``FAL_KEY`` on first use.
        http_client: Optional injected ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        config: GenerationConfig,
        providers: ProviderRegistry,
        *,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[..., Any] | None = None,
    ) -> None:
        self.config = config
        self.providers = providers
        self._api_key = api_key
        self._http_client = http_client
        self._sleep = sleep
        self._client: FalQueueClient | None = None

    @property
    def is_configured(self) -> bool:
        if self._api_key:
            return True
        try:
            get_credential("fal", "generation", env_var="FAL_KEY")
        except ProviderConfigError:
            return False
        return True

    def _queue(self) -> FalQueueClient:
        if self._client is None:
            key = self._api_key or get_credential("fal", "generation", env_var="FAL_KEY")
            kwargs: dict[str, Any] = {}
            if self._sleep is not None:
                kwargs["sleep"] = self._sleep
            self._client = FalQueueClient(
                key,
                base_url=self.config.fal_base_url,
                poll_interval=self.config.poll_interval,
                poll_timeout=self.config.poll_timeout,
                request_timeout=self.config.request_timeout,
                http_client=self._http_client,
                **kwargs,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ── Shared execution ───────────────────────────────────

    async def _execute(
        self,
        label: str,
        endpoint: str,
        payload: dict[str, Any],
        extract_url: Callable[[dict[str, Any]], str],
        dest: Path,
    ) -> GenerationResult:
        try:
            queue = self._queue()
            request_id, output = await queue.run(endpoint, payload)
            remote_url = extract_url(output)
            await queue.download(remote_url, dest)
        except httpx.HTTPStatusError as exc:
            logger.error("%s failed: HTTP %d", label, exc.response.status_code)
            return GenerationResult.failure(
                f"{label} failed: HTTP {exc.response.status_code}",
                _http_diagnostics(exc),
            )
        except httpx.HTTPError as exc:
            logger.error("%s transport error: %s", label, exc)
            return GenerationResult.failure(f"{label} transport error: {exc}")
        except ProviderError as exc:
            logger.error("%s provider error: %s", label, exc)
            return GenerationResult.failure(str(exc), exc.diagnostics)
        except (CharForgeError, OSError) as exc:
            logger.error("%s failed: %s", label, exc)
            return GenerationResult.failure(str(exc))

        return GenerationResult(
            success=True,
            remote_url=remote_url,
            local_path=dest,
            request_id=request_id,
        )

    # ── Public API ─────────────────────────────────────────

    async def synthesize(self, prompt: str, dest: Path) -> GenerationResult:
        """Text-to-image."""
        try:
            req = SynthesizeRequest(prompt=prompt)
        except ValidationError as exc:
            return GenerationResult.failure(format_validation_error(exc))
        return await self._execute(
            "synthesize",
            self.config.text_to_image_endpoint,
            {"prompt": req.prompt},
            _first_image_url,
            dest,
        )

    async def edit(
        self, prompt: str, source_images: list[str], dest: Path,
    ) -> GenerationResult:
        """Image edit, used both for repose and pose transfer."""
        try:
            req = EditRequest(prompt=prompt, source_images=source_images)
        except ValidationError as exc:
            return GenerationResult.failure(format_validation_error(exc))
        return await self._execute(
            "edit",
            self.config.edit_endpoint,
            {
                "prompt": req.prompt,
                "image_urls": req.source_images,
                "enable_prompt_expansion": False,
            },
            _first_image_url,
            dest,
        )

    async def reconstruct_3d(
        self,
        provider: str | None,
        images: list[str],
        dest: Path,
        options: dict[str, Any] | None = None,
    ) -> GenerationResult:
        """Image set to GLB mesh.  Images over the provider ceiling are dropped."""
        try:
            capability = self.providers.get(provider)
            req = ReconstructRequest(
                provider=capability.name, images=images, options=options or {},
            )
        except ValidationError as exc:
            return GenerationResult.failure(format_validation_error(exc))
        except CharForgeError as exc:
            return GenerationResult.failure(str(exc))

        payload = capability.build_payload(req.images, req.options)
        logger.info(
            "Reconstructing mesh with %s from %d image(s)",
            capability.name, len(payload[capability.image_field]),
        )
        result = await self._execute(
            f"reconstruct_3d[{capability.name}]",
            capability.endpoint,
            payload,
            _mesh_url,
            dest,
        )
        result.data["provider"] = capability.name
        return result

    async def query(
        self,
        prompt: str,
        fields: tuple[str, str] = ("question", "answer"),
        dest: Path | None = None,
    ) -> GenerationResult:
        """Single-shot LLM request returning exactly two named string fields."""
        try:
            req = QueryRequest(prompt=prompt, answer_fields=fields)
        except ValidationError as exc:
            return GenerationResult.failure(format_validation_error(exc))

        keys = req.answer_fields
        answer_model = create_model(
            "QueryAnswer", **{k: (str, ...) for k in keys},
        )
        payload = {
            "model": self.config.llm_model,
            "prompt": req.prompt,
            "system_prompt": _QUERY_SYSTEM_PROMPT.format(keys=", ".join(keys)),
        }

        try:
            request_id, output = await self._queue().run(self.config.llm_endpoint, payload)
            text = _JSON_FENCE_RE.sub("", output.get("output") or "").strip()
            answer = answer_model.model_validate(json.loads(text)).model_dump()
        except httpx.HTTPStatusError as exc:
            logger.error("query failed: HTTP %d", exc.response.status_code)
            return GenerationResult.failure(
                f"query failed: HTTP {exc.response.status_code}",
                _http_diagnostics(exc),
            )
        except httpx.HTTPError as exc:
            logger.error("query transport error: %s", exc)
            return GenerationResult.failure(f"query transport error: {exc}")
        except ProviderError as exc:
            logger.error("query provider error: %s", exc)
            return GenerationResult.failure(str(exc), exc.diagnostics)
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.error("query returned malformed answer: %s", exc)
            return GenerationResult.failure(
                f"query returned malformed answer: {exc}", {"output": output},
            )
        except CharForgeError as exc:
            logger.error("query failed: %s", exc)
            return GenerationResult.failure(str(exc))

        if dest is not None:
            _write_json_atomic(dest, answer)

        return GenerationResult(
            success=True,
            local_path=dest,
            request_id=request_id,
            data=answer,
        )

    async def submit(self, request: GenerationRequest, dest: Path) -> GenerationResult:
        """Dispatch a tagged request variant to its operation."""
        if isinstance(request, SynthesizeRequest):
            return await self.synthesize(request.prompt, dest)
        if isinstance(request, EditRequest):
            return await self.edit(request.prompt, request.source_images, dest)
        if isinstance(request, ReconstructRequest):
            return await self.reconstruct_3d(
                request.provider, request.images, dest, request.options,
            )
        return await self.query(request.prompt, request.answer_fields, dest)


def _write_json_atomic(dest: Path, data: dict[str, Any]) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_name(f".{dest.name}.part")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    os.replace(tmp, dest)
