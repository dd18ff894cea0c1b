"""Tests for the reasoning provider adapters and their error classification."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from app.coder.adapters.llm import build_reasoning_provider
from app.coder.adapters.llm.openai_compat_reasoner import OpenAICompatReasoner
from app.coder.adapters.llm.stub_reasoner import DeterministicStubReasoner
from app.common.exceptions import ErrorKind, ReasoningProviderError
from app.common.llm import OpenAICompatClient, normalize_openai_base_url, strip_markdown_code_fences
from app.infra.llm_control import classify_status_code, parse_retry_after_seconds
from config.settings import ReasoningSettings


def _settings() -> ReasoningSettings:
    return ReasoningSettings(provider="openai_compat", api_key="test-key", base_url="https://llm.example/v1")


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"content": content}}]}


def _reasoner(handler) -> OpenAICompatReasoner:
    return OpenAICompatReasoner(OpenAICompatClient(_settings(), transport=httpx.MockTransport(handler)))


# =============================================================================
# OpenAI-compatible provider
# =============================================================================


class TestOpenAICompatReasoner:
    def test_extract_entities_parses_fenced_json(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            content = '```json\n{"procedure_name": "shave biopsy", "lesion_count": 1, "patient_type": "Established"}\n```'
            return httpx.Response(200, json=_completion(content))

        entities = asyncio.run(_reasoner(handler).extract_entities("Procedure: shave biopsy"))

        assert seen["url"] == "https://llm.example/v1/chat/completions"
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert entities.procedure_name == "shave biopsy"
        assert entities.patient_type == "established"

    @pytest.mark.parametrize("status,kind", [(429, ErrorKind.TRANSIENT), (503, ErrorKind.TRANSIENT), (400, ErrorKind.PERMANENT)])
    def test_http_errors_classified(self, status, kind):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, headers={"Retry-After": "7"}, json={"error": {"message": "nope"}})

        with pytest.raises(ReasoningProviderError) as excinfo:
            asyncio.run(_reasoner(handler).extract_entities("note"))

        assert excinfo.value.kind is kind
        assert excinfo.value.status_code == status
        assert excinfo.value.retry_after_s == 7.0
        assert "nope" in excinfo.value.message

    def test_timeout_is_transient(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ReasoningProviderError) as excinfo:
            asyncio.run(_reasoner(handler).extract_entities("note"))
        assert excinfo.value.transient is True

    def test_invalid_json_is_permanent(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=_completion("not json"))

        with pytest.raises(ReasoningProviderError) as excinfo:
            asyncio.run(_reasoner(handler).extract_entities("note"))
        assert excinfo.value.kind is ErrorKind.PERMANENT

    def test_suggest_fixes_drops_malformed_entries(self, claim_factory, validator):
        claim = claim_factory(
            procedures=[{"code": "17000", "charge": 150.0}, {"code": "99213", "charge": 160.0}]
        )
        issues = validator.validate(claim).errors
        fixes_payload = {
            "fixes": [
                {
                    "issue_id": issues[0].id,
                    "description": "Add modifier 25",
                    "patches": [{"op": "add", "path": "/procedures/1/modifiers/-", "value": "25"}],
                },
                {"issue_id": "x", "patches": [{"op": "move", "path": "/a"}]},
            ]
        }

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=_completion(json.dumps(fixes_payload)))

        fixes = asyncio.run(_reasoner(handler).suggest_fixes(claim, issues))

        assert [fix.issue_id for fix in fixes] == [issues[0].id]


# =============================================================================
# Stub provider and selection
# =============================================================================


class TestStubReasoner:
    def test_reads_labelled_lines(self, sample_note):
        entities = asyncio.run(DeterministicStubReasoner().extract_entities(sample_note))

        assert entities.procedure_name == "cryotherapy of actinic keratosis"
        assert entities.diagnosis_text == "actinic keratosis"
        assert entities.visit_complexity == "moderate"
        assert entities.patient_type == "established"
        assert entities.provider_npi == "1234567890"
        assert entities.service_date == "2026-03-02"

    def test_lesion_count_from_prose(self):
        entities = asyncio.run(
            DeterministicStubReasoner().extract_entities("New patient. Treated 4 actinic lesions today.")
        )
        assert entities.lesion_count == 4
        assert entities.patient_type == "new"


class TestProviderSelection:
    def test_stub_when_configured(self):
        assert isinstance(build_reasoning_provider(ReasoningSettings(provider="stub")), DeterministicStubReasoner)

    def test_stub_without_api_key(self):
        settings = ReasoningSettings(provider="openai_compat", api_key=None)
        assert isinstance(build_reasoning_provider(settings), DeterministicStubReasoner)

    def test_openai_compat_with_key(self):
        provider = build_reasoning_provider(_settings())
        assert isinstance(provider, OpenAICompatReasoner)
        assert provider.version == "openai_compat:gpt-4o-mini"


class TestHelpers:
    def test_base_url_normalization(self):
        assert normalize_openai_base_url("https://llm.example/v1/") == "https://llm.example"
        assert normalize_openai_base_url("") == "https://api.openai.com"

    def test_strip_fences(self):
        assert strip_markdown_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_status_classification(self):
        assert classify_status_code(429) is ErrorKind.TRANSIENT
        assert classify_status_code(502) is ErrorKind.TRANSIENT
        assert classify_status_code(401) is ErrorKind.PERMANENT

    def test_retry_after_parsing(self):
        assert parse_retry_after_seconds({"retry-after": "2.5"}) == 2.5
        assert parse_retry_after_seconds({"retry-after": "soon"}) is None
        assert parse_retry_after_seconds({}) is None
