# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

"""Generation service adapter and its supporting types."""

from __future__ import annotations

from core.generation._base import GenerationResult, get_credential
from core.generation.adapter import GenerationAdapter
from core.generation.providers import (
    BUILTIN_PROVIDERS,
    ProviderCapability,
    ProviderRegistry,
)
