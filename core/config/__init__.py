# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from core.config.models import (
    CharForgeConfig,
    CredentialConfig,
    GenerationConfig,
    PipelineConfig,
    PropConfig,
    ReconstructionConfig,
    ReconstructionProviderConfig,
    ServerConfig,
    SessionConfig,
    SystemConfig,
    get_config_path,
    invalidate_cache,
    load_config,
    save_config,
)

__all__ = [
    "CharForgeConfig",
    "CredentialConfig",
    "GenerationConfig",
    "PipelineConfig",
    "PropConfig",
    "ReconstructionConfig",
    "ReconstructionProviderConfig",
    "ServerConfig",
    "SessionConfig",
    "SystemConfig",
    "get_config_path",
    "invalidate_cache",
    "load_config",
    "save_config",
]
