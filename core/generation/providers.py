# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

"""Capability descriptors for image-set-to-3D reconstruction providers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from core.config.models import ReconstructionConfig
from core.exceptions import UnknownProviderError

logger = logging.getLogger("charforge.generation")


@dataclass(frozen=True)
class ProviderCapability:
    """What one reconstruction provider accepts.

    ``max_input_images`` is the input ceiling; extra images are dropped
    before the call.  ``image_field`` names the payload key carrying the
    image URL list.
    """

    name: str
    endpoint: str
    max_input_images: int
    image_field: str = "image_urls"
    default_options: dict[str, Any] = field(default_factory=dict)

    def truncate(self, images: list[str]) -> list[str]:
        if len(images) > self.max_input_images:
            logger.warning(
                "%s received %d images, limiting to %d",
                self.name, len(images), self.max_input_images,
            )
        return images[: self.max_input_images]

    def build_payload(
        self, images: list[str], options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload = dict(self.default_options)
        payload.update(options or {})
        payload[self.image_field] = self.truncate(images)
        return payload


TRELLIS = ProviderCapability(
    name="trellis",
    endpoint="fal-ai/trellis/multi",
    max_input_images=6,
    image_field="image_urls",
    default_options={
        "ss_guidance_strength": 7.5,
        "ss_sampling_steps": 12,
        "slat_guidance_strength": 3,
        "slat_sampling_steps": 12,
        "mesh_simplify": 0.95,
        "texture_size": "1024",
        "multiimage_algo": "stochastic",
    },
)

RODIN = ProviderCapability(
    name="rodin",
    endpoint="fal-ai/hyper3d/rodin/v2",
    max_input_images=5,
    image_field="input_image_urls",
    default_options={
        "geometry_file_format": "glb",
        "material": "All",
        "quality_mesh_option": "500K Triangle",
        "prompt": "",
    },
)

BUILTIN_PROVIDERS: dict[str, ProviderCapability] = {
    TRELLIS.name: TRELLIS,
    RODIN.name: RODIN,
}


class ProviderRegistry:
    """Lookup of reconstruction providers, with config overrides applied."""

    def __init__(
        self,
        providers: dict[str, ProviderCapability] | None = None,
        default: str = "trellis",
    ) -> None:
        self._providers = dict(providers if providers is not None else BUILTIN_PROVIDERS)
        if default not in self._providers:
            raise UnknownProviderError(f"Unknown reconstruction provider: {default}")
        self.default = default

    @classmethod
    def from_config(cls, config: ReconstructionConfig) -> ProviderRegistry:
        providers = dict(BUILTIN_PROVIDERS)
        for name, override in config.providers.items():
            base = providers.get(name)
            if base is None:
                if not override.endpoint or not override.max_input_images:
                    raise UnknownProviderError(
                        f"Provider '{name}' needs endpoint and max_input_images"
                    )
                base = ProviderCapability(
                    name=name,
                    endpoint=override.endpoint,
                    max_input_images=override.max_input_images,
                )
            providers[name] = replace(
                base,
                endpoint=override.endpoint or base.endpoint,
                max_input_images=override.max_input_images or base.max_input_images,
                image_field=override.image_field or base.image_field,
                default_options={**base.default_options, **override.options},
            )
        return cls(providers, default=config.default_provider)

    def get(self, name: str | None = None) -> ProviderCapability:
        """Return the named provider, or the default when *name* is ``None``.

        Raises:
            UnknownProviderError: If *name* is not registered.
        """
        key = name or self.default
        try:
            return self._providers[key]
        except KeyError:
            raise UnknownProviderError(
                f"Unknown reconstruction provider: {key} "
                f"(available: {', '.join(sorted(self._providers))})"
            ) from None

    def names(self) -> list[str]:
        return sorted(self._providers)
