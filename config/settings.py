"""Configuration settings using pydantic-settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, model_validator
from pydantic_settings import BaseSettings


_REPO_ROOT = Path(__file__).resolve().parents[1]


def _resolve_repo_path(path: Path) -> Path:
    if path.is_absolute():
        return path
    return (_REPO_ROOT / path).resolve()


class KnowledgeSettings(BaseSettings):
    """Centralized configuration for the static code and rule tables.

    This is the single source of truth for file paths used by the code mapper
    and the claim validation engine.
    """

    cpt_codes_path: Path = Field(
        default=Path("data/knowledge/cpt_codes.v1.json"),
        validation_alias=AliasChoices("CLAIMS_CPT_CODES_FILE", "CLAIMS_CPT_FILE"),
    )
    icd_codes_path: Path = Field(
        default=Path("data/knowledge/icd_codes.v1.json"),
        validation_alias=AliasChoices("CLAIMS_ICD_CODES_FILE", "CLAIMS_ICD_FILE"),
    )
    ncci_path: Path = Field(
        default=Path("data/knowledge/ncci_pairs.v1.json"),
        validation_alias="CLAIMS_NCCI_FILE",
    )
    rules_path: Path = Field(
        default=Path("data/knowledge/claim_rules.v1.yaml"),
        validation_alias="CLAIMS_RULES_FILE",
    )

    model_config = {"extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def _resolve_paths(self) -> "KnowledgeSettings":
        self.cpt_codes_path = _resolve_repo_path(self.cpt_codes_path)
        self.icd_codes_path = _resolve_repo_path(self.icd_codes_path)
        self.ncci_path = _resolve_repo_path(self.ncci_path)
        self.rules_path = _resolve_repo_path(self.rules_path)
        return self


class ProcessorSettings(BaseSettings):
    """Settings for the background note-to-claim processor.

    Defaults are deliberately conservative to stay under third-party
    reasoning-provider rate limits. Retry delays grow as
    ``retry_base_delay_ms * 2**retry_count``.
    """

    max_concurrency: int = Field(default=3, ge=1)
    inter_item_delay_ms: int = Field(default=5000, ge=0)
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay_ms: int = Field(default=1000, ge=0)
    item_timeout_s: float = Field(default=120.0, gt=0)
    retry_on_timeout: bool = False
    auto_fix: bool = True
    auto_start: bool = True

    model_config = {"env_prefix": "PROCESSOR_"}

    @property
    def inter_item_delay_s(self) -> float:
        return self.inter_item_delay_ms / 1000.0

    def retry_delay_s(self, retry_count: int) -> float:
        return (self.retry_base_delay_ms / 1000.0) * (2**retry_count)


class StoreSettings(BaseSettings):
    """Settings for the JSON-backed work item, claim record and audit stores."""

    data_dir: Path = Path("data/runtime")
    audit_log_max_entries: int = Field(default=1000, ge=1)
    max_upload_bytes: int = Field(default=5 * 1024 * 1024, ge=1)

    model_config = {"env_prefix": "STORE_"}

    @model_validator(mode="after")
    def _resolve_paths(self) -> "StoreSettings":
        self.data_dir = _resolve_repo_path(self.data_dir)
        return self

    @property
    def work_items_path(self) -> Path:
        return self.data_dir / "work_items.json"

    @property
    def claim_records_path(self) -> Path:
        return self.data_dir / "claim_records.json"

    @property
    def audit_log_path(self) -> Path:
        return self.data_dir / "audit_log.json"


class ReasoningSettings(BaseSettings):
    """Settings for the external reasoning provider (entity extraction, fixes)."""

    provider: Literal["openai_compat", "stub"] = "openai_compat"
    model: str = "gpt-4o-mini"
    base_url: str = Field(
        default="https://api.openai.com",
        validation_alias=AliasChoices("REASONING_BASE_URL", "OPENAI_BASE_URL"),
    )
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("REASONING_API_KEY", "OPENAI_API_KEY"),
    )
    timeout_s: float = 60.0
    temperature: float = 0.1

    policy_search_url: Optional[str] = None
    policy_search_api_key: Optional[str] = None
    policy_max_results: int = 5

    model_config = {"env_prefix": "REASONING_", "extra": "ignore", "populate_by_name": True}

    @property
    def offline(self) -> bool:
        return self.provider == "stub" or not self.api_key


class Settings(BaseModel):
    """Aggregate of all settings groups used to wire the application."""

    knowledge: KnowledgeSettings = Field(default_factory=KnowledgeSettings)
    processor: ProcessorSettings = Field(default_factory=ProcessorSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    reasoning: ReasoningSettings = Field(default_factory=ReasoningSettings)

    model_config = {"extra": "ignore"}
