# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from core.pipeline.models import (
    ArtifactRef,
    PipelineEvent,
    PipelinePhase,
    PipelineResult,
    fallback_scene,
)
from core.pipeline.orchestrator import PhaseOrchestrator
