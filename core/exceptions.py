from __future__ import annotations
# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of CharForge core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Unified exception hierarchy for CharForge.

All domain-specific exceptions derive from :class:`CharForgeError`,
enabling callers to catch the entire family with a single clause::

    try:
        ...
    except CharForgeError as e:
        logger.error("Domain error: %s", e)
"""

from typing import Any


class CharForgeError(Exception):
    """Base exception for all CharForge errors."""


# ── Generation ───────────────────────────────────────────────


class GenerationError(CharForgeError):
    """Remote generation errors (transport or provider)."""


class ProviderError(GenerationError):
    """Provider returned an error status or an unusable payload.

    ``diagnostics`` carries the provider-specific response body (if any)
    so callers can surface it next to the human-readable message.
    """

    def __init__(
        self,
        message: str,
        *,
        diagnostics: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.diagnostics = diagnostics or {}


class ProviderTimeoutError(GenerationError):
    """Provider task did not finish within the configured deadline."""


class ProviderConfigError(GenerationError):
    """Provider configuration incomplete (missing credential)."""


# ── Input validation ─────────────────────────────────────────


class InputValidationError(CharForgeError):
    """Request rejected before any remote call was attempted."""


class UnknownPoseError(InputValidationError):
    """Pose name has no prompt template."""


class UnknownViewError(InputValidationError):
    """View name is not defined for the requested pose."""


class UnknownProviderError(InputValidationError):
    """Reconstruction provider is not registered."""


class MissingPrerequisiteError(InputValidationError):
    """A required upstream artifact has not been generated yet."""


class InvalidAssetPathError(InputValidationError):
    """Path segment would escape the assets root or is empty."""


# ── Session store ────────────────────────────────────────────


class SessionStoreError(CharForgeError):
    """Storage-layer failure on read or write."""


class SessionNotFoundError(SessionStoreError):
    """Referenced session does not exist."""


# ── Pipeline ─────────────────────────────────────────────────


class PipelineAbortedError(CharForgeError):
    """Pipeline hit a hard failure.

    ``result`` is the partially populated pipeline result, including the
    fallback artifact set.
    """

    def __init__(self, message: str, *, result: Any = None) -> None:
        super().__init__(message)
        self.result = result


# ── Configuration ────────────────────────────────────────────


class ConfigError(CharForgeError):
    """Configuration errors."""
