# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

"""Tagged request variants, one per adapter capability.

Each variant declares its required and optional fields; a payload whose
shape does not match is rejected before any remote call.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from core.exceptions import InputValidationError


class SynthesizeRequest(BaseModel):
    kind: Literal["synthesize"] = "synthesize"
    prompt: str = Field(min_length=1)


class EditRequest(BaseModel):
    kind: Literal["edit"] = "edit"
    prompt: str = Field(min_length=1)
    source_images: list[str] = Field(min_length=1)


class ReconstructRequest(BaseModel):
    kind: Literal["reconstruct"] = "reconstruct"
    provider: str = Field(min_length=1)
    images: list[str] = Field(min_length=1)
    options: dict[str, Any] = {}


class QueryRequest(BaseModel):
    kind: Literal["query"] = "query"
    prompt: str = Field(min_length=1)
    answer_fields: tuple[str, str] = ("question", "answer")

    @field_validator("answer_fields")
    @classmethod
    def _distinct_fields(cls, v: tuple[str, str]) -> tuple[str, str]:
        if not all(v) or v[0] == v[1]:
            raise ValueError("answer_fields must be two distinct non-empty names")
        return v


GenerationRequest = Annotated[
    Union[SynthesizeRequest, EditRequest, ReconstructRequest, QueryRequest],
    Field(discriminator="kind"),
]

_request_adapter: TypeAdapter[GenerationRequest] = TypeAdapter(GenerationRequest)


def parse_request(data: dict[str, Any]) -> GenerationRequest:
    """Validate a raw dict into its request variant.

    Raises:
        InputValidationError: On unknown ``kind`` or a shape mismatch.
    """
    try:
        return _request_adapter.validate_python(data)
    except ValidationError as exc:
        raise InputValidationError(format_validation_error(exc)) from exc


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "request"
        parts.append(f"{loc}: {err['msg']}")
    return "Invalid request: " + "; ".join(parts)
