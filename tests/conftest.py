"""Shared fixtures: static tables from data/knowledge, stores under tmp_path."""

from __future__ import annotations

import os

os.environ.setdefault("CLAIMS_SKIP_DOTENV", "1")

import pytest

from app.coder.adapters.llm.stub_reasoner import DeterministicStubReasoner
from app.coder.adapters.persistence.json_kb_adapter import JsonCodeRegistry
from app.coder.adapters.policy.citation_lookup import PolicyCitationLookup
from app.coder.application.claims_service import ClaimsService
from app.domain.coding_rules.rule_config import ClaimRules, load_claim_rules
from app.domain.coding_rules.validation_engine import ClaimValidator
from claim_schemas.claim import Claim
from config.settings import (
    KnowledgeSettings,
    ProcessorSettings,
    ReasoningSettings,
    Settings,
    StoreSettings,
)

SAMPLE_NOTE = """Patient: Jane Doe
DOB: 1970-01-01
Sex: F
Date of Service: 2026-03-02
Provider: Dr. Alan Smith
NPI: 1234567890
Patient Type: established
Visit Complexity: moderate
Procedure: cryotherapy of actinic keratosis
Lesions: 3
Diagnosis: actinic keratosis

Established patient seen for follow-up of sun damage. Three actinic keratoses
on the dorsal hands treated with liquid nitrogen.
"""


@pytest.fixture(scope="session")
def knowledge_settings() -> KnowledgeSettings:
    return KnowledgeSettings()


@pytest.fixture(scope="session")
def registry(knowledge_settings: KnowledgeSettings) -> JsonCodeRegistry:
    return JsonCodeRegistry.from_settings(knowledge_settings)


@pytest.fixture(scope="session")
def rules(knowledge_settings: KnowledgeSettings) -> ClaimRules:
    return load_claim_rules(knowledge_settings.rules_path)


@pytest.fixture
def validator(registry: JsonCodeRegistry, rules: ClaimRules) -> ClaimValidator:
    return ClaimValidator(registry, rules)


@pytest.fixture
def reasoning_settings() -> ReasoningSettings:
    return ReasoningSettings(provider="stub", api_key=None, policy_search_url=None)


@pytest.fixture
def claims_service(
    registry: JsonCodeRegistry,
    rules: ClaimRules,
    reasoning_settings: ReasoningSettings,
) -> ClaimsService:
    return ClaimsService(
        registry,
        rules,
        DeterministicStubReasoner(reason="tests"),
        PolicyCitationLookup(reasoning_settings),
    )


@pytest.fixture
def settings(tmp_path, knowledge_settings: KnowledgeSettings, reasoning_settings: ReasoningSettings) -> Settings:
    return Settings(
        knowledge=knowledge_settings,
        processor=ProcessorSettings(
            max_concurrency=2,
            inter_item_delay_ms=0,
            retry_base_delay_ms=0,
            item_timeout_s=10,
        ),
        store=StoreSettings(data_dir=tmp_path / "data"),
        reasoning=reasoning_settings,
    )


@pytest.fixture
def sample_note() -> str:
    return SAMPLE_NOTE


def make_claim(**overrides) -> Claim:
    """A claim that passes every rule unless ``overrides`` break one."""
    payload = {
        "patient": {"first_name": "Jane", "last_name": "Doe", "date_of_birth": "1970-01-01", "gender": "F"},
        "provider": {"npi": "1234567890", "name": "Dr. Alan Smith", "taxonomy": "207Q00000X"},
        "service_date": "2026-03-02",
        "place_of_service": "11",
        "diagnosis_codes": ["L57.0"],
        "procedures": [
            {"code": "17000", "description": "Destruction premalignant lesions first lesion", "charge": 150.0},
        ],
    }
    payload.update(overrides)
    return Claim.model_validate(payload)


@pytest.fixture
def claim_factory():
    return make_claim
