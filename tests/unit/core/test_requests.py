"""Unit tests for core/generation/requests.py — tagged request variants."""
# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import pytest

from core.exceptions import InputValidationError
from core.generation.requests import (
    EditRequest,
    QueryRequest,
    ReconstructRequest,
    SynthesizeRequest,
    parse_request,
)


class TestParseRequest:
    def test_synthesize(self):
        req = parse_request({"kind": "synthesize", "prompt": "robot"})
        assert isinstance(req, SynthesizeRequest)

    def test_edit(self):
        req = parse_request({"kind": "edit", "prompt": "p", "source_images": ["u"]})
        assert isinstance(req, EditRequest)
        assert req.source_images == ["u"]

    def test_reconstruct_defaults_options(self):
        req = parse_request({"kind": "reconstruct", "provider": "trellis", "images": ["u"]})
        assert isinstance(req, ReconstructRequest)
        assert req.options == {}

    def test_query_default_fields(self):
        req = parse_request({"kind": "query", "prompt": "riddle"})
        assert isinstance(req, QueryRequest)
        assert req.answer_fields == ("question", "answer")

    def test_unknown_kind(self):
        with pytest.raises(InputValidationError, match="Invalid request"):
            parse_request({"kind": "animate", "prompt": "p"})

    def test_missing_required_field(self):
        with pytest.raises(InputValidationError, match="source_images"):
            parse_request({"kind": "edit", "prompt": "p"})

    def test_empty_image_list(self):
        with pytest.raises(InputValidationError, match="images"):
            parse_request({"kind": "reconstruct", "provider": "rodin", "images": []})

    def test_query_fields_must_differ(self):
        with pytest.raises(InputValidationError, match="distinct"):
            parse_request({"kind": "query", "prompt": "p", "answer_fields": ["a", "a"]})
