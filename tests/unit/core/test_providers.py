"""Unit tests for core/generation/providers.py — reconstruction capabilities."""
# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging

import pytest

from core.config.models import ReconstructionConfig, ReconstructionProviderConfig
from core.exceptions import UnknownProviderError
from core.generation.providers import RODIN, TRELLIS, ProviderRegistry


class TestCapability:
    def test_ceilings(self):
        assert TRELLIS.max_input_images == 6
        assert RODIN.max_input_images == 5

    def test_truncate_keeps_order(self):
        images = [f"u{i}" for i in range(8)]
        assert TRELLIS.truncate(images) == images[:6]
        assert RODIN.truncate(images) == images[:5]

    def test_truncate_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="charforge.generation"):
            RODIN.truncate(["a"] * 6)
        assert "limiting to 5" in caplog.text

    def test_build_payload_uses_image_field(self):
        payload = RODIN.build_payload(["a", "b"], {"material": "PBR"})
        assert payload["input_image_urls"] == ["a", "b"]
        assert payload["material"] == "PBR"
        assert "image_urls" not in payload

    def test_build_payload_does_not_mutate_defaults(self):
        TRELLIS.build_payload(["a"], {"texture_size": "2048"})
        assert TRELLIS.default_options["texture_size"] == "1024"


class TestRegistry:
    def test_default_lookup(self):
        reg = ProviderRegistry()
        assert reg.get().name == "trellis"
        assert reg.get("rodin") is RODIN
        assert reg.names() == ["rodin", "trellis"]

    def test_unknown_provider(self):
        with pytest.raises(UnknownProviderError, match="available: rodin, trellis"):
            ProviderRegistry().get("meshy")

    def test_unknown_default(self):
        with pytest.raises(UnknownProviderError):
            ProviderRegistry(default="meshy")

    def test_from_config_overrides(self):
        cfg = ReconstructionConfig(
            default_provider="rodin",
            providers={"trellis": ReconstructionProviderConfig(
                max_input_images=4, options={"texture_size": "512"},
            )},
        )
        reg = ProviderRegistry.from_config(cfg)
        assert reg.default == "rodin"
        trellis = reg.get("trellis")
        assert trellis.max_input_images == 4
        assert trellis.endpoint == TRELLIS.endpoint
        assert trellis.default_options["texture_size"] == "512"
        assert trellis.default_options["multiimage_algo"] == "stochastic"

    def test_from_config_new_provider(self):
        cfg = ReconstructionConfig(providers={"hunyuan": ReconstructionProviderConfig(
            endpoint="fal-ai/hunyuan3d/multi", max_input_images=4,
        )})
        reg = ProviderRegistry.from_config(cfg)
        assert reg.get("hunyuan").max_input_images == 4
        assert reg.get("hunyuan").image_field == "image_urls"

    def test_from_config_incomplete_new_provider(self):
        cfg = ReconstructionConfig(providers={"hunyuan": ReconstructionProviderConfig()})
        with pytest.raises(UnknownProviderError):
            ProviderRegistry.from_config(cfg)
