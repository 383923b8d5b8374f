# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of CharForge core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Central configuration module for CharForge.

Defines Pydantic models for the unified config.json and provides
load / save helpers with a module-level singleton cache.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator, model_validator

from core.exceptions import ConfigError

logger = logging.getLogger("charforge.config")

# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class SystemConfig(BaseModel):
    log_level: str = "INFO"
    json_log_file: bool = True


class CredentialConfig(BaseModel):
    type: str = "api_key"
    api_key: str = ""
    keys: dict[str, str] = {}
    base_url: str | None = None


class GenerationConfig(BaseModel):
    """fal.ai queue endpoints and polling behaviour.

    ``poll_timeout`` and ``request_timeout`` default to ``None``: no
    deadline is applied unless one is configured.
    """

    fal_base_url: str = "https://queue.fal.run"
    text_to_image_endpoint: str = "fal-ai/alpha-image-232/text-to-image"
    edit_endpoint: str = "fal-ai/alpha-image-232/edit-image"
    llm_endpoint: str = "fal-ai/any-llm"
    llm_model: str = "google/gemini-flash-1.5"
    poll_interval: float = 1.0  # seconds
    poll_timeout: float | None = None  # seconds
    request_timeout: float | None = None  # seconds, per HTTP call

    @field_validator("poll_interval")
    @classmethod
    def _validate_poll_interval(cls, v: float) -> float:
        if v < 0:
            raise ValueError("poll_interval must be >= 0")
        return v


class ReconstructionProviderConfig(BaseModel):
    """Per-provider overrides.  All fields are optional (None = built-in)."""

    endpoint: str | None = None
    max_input_images: int | None = None
    image_field: str | None = None
    options: dict[str, Any] = {}


class ReconstructionConfig(BaseModel):
    default_provider: str = "trellis"
    providers: dict[str, ReconstructionProviderConfig] = {}


class PropConfig(BaseModel):
    """Decorative prop generated on the independent extras track."""

    name: str
    prompt: str


class PipelineConfig(BaseModel):
    primary_pose: str = "idle"
    secondary_poses: list[str] = ["walking", "shooting"]
    min_views_for_mesh: int = 3
    extras_enabled: bool = True
    reuse_assets: bool = True
    props: list[PropConfig] = [
        PropConfig(
            name="tree",
            prompt=(
                "Stylized sci-fi alien tree, single object centered, full view, "
                "clean white background, ultra sharp, game asset"
            ),
        ),
    ]

    @model_validator(mode="after")
    def _validate_poses(self) -> PipelineConfig:
        if self.primary_pose in self.secondary_poses:
            raise ValueError(
                f"primary_pose ({self.primary_pose}) must not be listed "
                f"in secondary_poses"
            )
        return self


class SessionConfig(BaseModel):
    retention_days: int = 30
    sweep_interval_hours: float = 24.0


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8081
    public_base_url: str = "http://localhost:8081"


class CharForgeConfig(BaseModel):
    version: int = 1
    system: SystemConfig = SystemConfig()
    credentials: dict[str, CredentialConfig] = {"fal": CredentialConfig()}
    generation: GenerationConfig = GenerationConfig()
    reconstruction: ReconstructionConfig = ReconstructionConfig()
    pipeline: PipelineConfig = PipelineConfig()
    sessions: SessionConfig = SessionConfig()
    server: ServerConfig = ServerConfig()


# ---------------------------------------------------------------------------
# Singleton cache
# ---------------------------------------------------------------------------

_config: CharForgeConfig | None = None
_config_path: Path | None = None
_config_mtime: float = 0.0


def invalidate_cache() -> None:
    """Reset the module-level singleton cache."""
    global _config, _config_path, _config_mtime
    _config = None
    _config_path = None
    _config_mtime = 0.0


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def get_config_path(data_dir: Path | None = None) -> Path:
    """Return the path to config.json inside *data_dir*.

    If *data_dir* is not given, it is resolved via ``core.paths.get_data_dir``.
    """
    if data_dir is None:
        from core.paths import get_data_dir

        data_dir = get_data_dir()
    return data_dir / "config.json"


# ---------------------------------------------------------------------------
# Load / Save
# ---------------------------------------------------------------------------


def load_config(path: Path | None = None) -> CharForgeConfig:
    """Load configuration from disk, returning cached instance when possible.

    If *path* is ``None``, :func:`get_config_path` determines the location.
    When the file does not exist the default configuration is returned.
    The cache is invalidated when the file's mtime changes.
    """
    global _config, _config_path, _config_mtime

    if path is None:
        path = get_config_path()

    if _config is not None and _config_path == path:
        try:
            disk_mtime = path.stat().st_mtime
        except OSError:
            disk_mtime = 0.0
        if disk_mtime == _config_mtime:
            return _config
        logger.debug("Config file changed on disk (mtime %.3f → %.3f); reloading", _config_mtime, disk_mtime)

    if path.is_file():
        logger.debug("Loading config from %s", path)
        try:
            raw_text = path.read_text(encoding="utf-8")
            data: dict[str, Any] = json.loads(raw_text)
            config = CharForgeConfig.model_validate(data)
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse %s: %s", path, exc)
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
        except ValidationError as exc:
            logger.error("Failed to load config from %s: %s", path, exc)
            raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc
    else:
        logger.info("Config file not found at %s; using defaults", path)
        config = CharForgeConfig()

    _config = config
    _config_path = path
    try:
        _config_mtime = path.stat().st_mtime
    except OSError:
        _config_mtime = 0.0
    return config


def save_config(config: CharForgeConfig, path: Path | None = None) -> None:
    """Persist *config* to disk as pretty-printed JSON (mode 0o600)."""
    global _config, _config_path, _config_mtime

    if path is None:
        path = get_config_path()

    path.parent.mkdir(parents=True, exist_ok=True)

    payload = config.model_dump(mode="json")
    text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    path.write_text(text, encoding="utf-8")

    # Restrict permissions: the file may contain API keys.
    os.chmod(path, 0o600)

    logger.debug("Config saved to %s", path)

    _config = config
    _config_path = path
    try:
        _config_mtime = path.stat().st_mtime
    except OSError:
        _config_mtime = 0.0
