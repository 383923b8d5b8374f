# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of CharForge core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Base infrastructure for the generation adapter."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from core.exceptions import ProviderConfigError

logger = logging.getLogger("charforge.generation")


@dataclass
class GenerationResult:
    """Envelope returned by every adapter operation.

    ``remote_url`` is the provider-side address of the artifact and must
    be kept: reconstruction providers fetch their inputs by URL, not from
    local paths.  ``url`` is the locally served address (``/assets/...``).
    """

    success: bool
    remote_url: str | None = None
    local_path: Path | None = None
    url: str | None = None
    request_id: str | None = None
    cached: bool = False
    error: str | None = None
    diagnostics: dict[str, Any] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(
        cls, error: str, diagnostics: dict[str, Any] | None = None,
    ) -> GenerationResult:
        return cls(success=False, error=error, diagnostics=diagnostics or {})

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "url": self.url,
            "remote_url": self.remote_url,
            "local_path": str(self.local_path) if self.local_path else None,
            "request_id": self.request_id,
            "cached": self.cached,
            "error": self.error,
            "diagnostics": self.diagnostics,
            "data": self.data,
        }


# ── Credential Resolution ────────────────────────────────────


def get_credential(
    credential_name: str,
    tool_name: str,
    env_var: str | None = None,
) -> str:
    """Resolve a credential via config.json → environment variable.

    Raises:
        ProviderConfigError: If neither source provides a value.
    """
    from core.config.models import load_config

    config = load_config()
    cred = config.credentials.get(credential_name)
    if cred and cred.api_key:
        logger.debug("Credential %s resolved from config.json", credential_name)
        return cred.api_key

    if env_var:
        val = os.environ.get(env_var)
        if val:
            logger.debug("Credential %s resolved from env %s", credential_name, env_var)
            return val

    env_hint = f" or environment variable {env_var}" if env_var else ""
    raise ProviderConfigError(
        f"'{tool_name}' requires credential '{credential_name}' in config.json"
        f"{env_hint}. Set it in .env or the shell environment."
    )
