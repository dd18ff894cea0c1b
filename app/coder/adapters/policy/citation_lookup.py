"""Payer / CMS policy citations supporting claim fixes.

When a policy search endpoint is configured the lookup queries it over HTTP;
otherwise (or when the endpoint fails) it answers from a static citation
table keyed by query terms.
"""

from __future__ import annotations

from typing import Iterable, Optional

import httpx

from claim_schemas.citations import PolicyCitation
from claim_schemas.validation import IssueCode
from config.settings import ReasoningSettings
from observability.logging_config import get_logger

logger = get_logger("policy_citations")

_ISSUE_QUERIES: dict[str, str] = {
    IssueCode.MISSING_MODIFIER_25.value: "CMS modifier 25 requirements E/M same day as procedure",
    IssueCode.MISSING_PRIOR_AUTH.value: "prior authorization requirements advanced imaging MRI",
    IssueCode.NCCI_CONFLICT.value: "NCCI bundling edits procedure code conflicts",
    IssueCode.MISSING_REQUIRED_FIELD.value: "CMS-1500 required fields clean claim submission",
    IssueCode.INVALID_CPT_CODE.value: "valid CPT codes Medicare coverage",
    IssueCode.INVALID_ICD_CODE.value: "valid ICD-10 diagnosis codes",
}
_DEFAULT_QUERY = "Medicare claims submission requirements"

# (trigger terms, citation)
_STATIC_CITATIONS: list[tuple[tuple[str, ...], PolicyCitation]] = [
    (
        ("modifier 25", "modifier-25"),
        PolicyCitation(
            text=(
                "Modifier 25 - Significant, Separately Identifiable Evaluation and Management Service by the "
                "Same Physician on the Same Day of the Procedure or Other Service. Append modifier 25 to the "
                "E/M code when the patient's condition required a significant, separately identifiable E/M "
                "service above and beyond the usual pre- and postoperative care of the procedure."
            ),
            source="CMS Medicare Claims Processing Manual, Chapter 12, Section 40.1",
            relevance_score=0.95,
            url="https://www.cms.gov/Regulations-and-Guidance/Guidance/Manuals/Downloads/clm104c12.pdf",
        ),
    ),
    (
        ("modifier 25", "modifier-25"),
        PolicyCitation(
            text=(
                "When an E/M service is provided on the same day as a minor surgical procedure, append "
                "modifier 25 to the E/M service code to indicate that it is significant and separately "
                "identifiable from the procedure."
            ),
            source="AMA CPT Guidelines",
            relevance_score=0.90,
            url="https://www.ama-assn.org/practice-management/cpt/cpt-modifiers",
        ),
    ),
    (
        ("prior auth", "authorization"),
        PolicyCitation(
            text=(
                "Advanced imaging services including MRI, CT, and PET scans typically require prior "
                "authorization from the payer. The prior authorization number must be included on the claim "
                "at the time of submission to avoid denial."
            ),
            source="CMS Coverage Guidelines",
            relevance_score=0.92,
            url="https://www.cms.gov/medicare-coverage-database",
        ),
    ),
    (
        ("ncci", "bundling"),
        PolicyCitation(
            text=(
                "The National Correct Coding Initiative (NCCI) Procedure to Procedure (PTP) edits define "
                "pairs of HCPCS/CPT codes that should not be reported together for the same patient on the "
                "same date of service."
            ),
            source="CMS NCCI Policy Manual",
            relevance_score=0.93,
            url="https://www.cms.gov/Medicare/Coding/NationalCorrectCodInitEd",
        ),
    ),
    (
        ("npi", "provider number"),
        PolicyCitation(
            text=(
                "All HIPAA-covered health care providers must use their National Provider Identifier (NPI) "
                "in standard transactions such as health care claims."
            ),
            source="CMS NPI Registry",
            relevance_score=0.94,
            url="https://nppes.cms.hhs.gov/",
        ),
    ),
    (
        ("required field", "missing data"),
        PolicyCitation(
            text=(
                "Clean claims must include provider NPI, patient demographics, service date, place of "
                "service, diagnosis codes, and procedure codes with appropriate modifiers. Missing any "
                "required field results in claim denial."
            ),
            source="CMS-1500 Claim Form Instructions",
            relevance_score=0.91,
            url="https://www.cms.gov/Medicare/CMS-Forms/CMS-Forms/CMS-Forms-Items/CMS1500",
        ),
    ),
]

_DEFAULT_CITATION = PolicyCitation(
    text=(
        "Healthcare claims must be submitted in accordance with CMS guidelines and payer-specific policies. "
        "All required fields must be completed accurately, and services must be medically necessary and "
        "properly documented."
    ),
    source="CMS General Claims Guidelines",
    relevance_score=0.75,
    url="https://www.cms.gov/",
)


def query_for_issue(issue_code: str, context: Optional[str] = None) -> str:
    query = _ISSUE_QUERIES.get(issue_code, _DEFAULT_QUERY)
    return f"{query} {context}" if context else query


def static_citations(query: str) -> list[PolicyCitation]:
    lowered = query.lower()
    matches = [
        citation for terms, citation in _STATIC_CITATIONS if any(term in lowered for term in terms)
    ]
    return matches or [_DEFAULT_CITATION]


class PolicyCitationLookup:
    """Resolve validation issue codes to supporting policy citations."""

    def __init__(self, settings: ReasoningSettings, *, transport: httpx.AsyncBaseTransport | None = None):
        self.search_url = (settings.policy_search_url or "").rstrip("/") or None
        self.api_key = settings.policy_search_api_key
        self.max_results = settings.policy_max_results
        self.timeout_s = settings.timeout_s
        self._transport = transport

    @property
    def remote_enabled(self) -> bool:
        return bool(self.search_url and self.api_key)

    async def _search_remote(self, query: str) -> list[PolicyCitation]:
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            response = await client.post(
                f"{self.search_url}/search",
                headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
                json={"query": query, "max_results": self.max_results},
            )
            response.raise_for_status()
            data = response.json()

        citations: list[PolicyCitation] = []
        for result in (data.get("results") or []) if isinstance(data, dict) else []:
            if not isinstance(result, dict):
                continue
            text = result.get("text") or result.get("content")
            if not text:
                continue
            score = result.get("score")
            citations.append(
                PolicyCitation(
                    text=str(text),
                    source=str(result.get("source") or "Unknown"),
                    relevance_score=min(max(float(score), 0.0), 1.0) if isinstance(score, (int, float)) else 0.8,
                    url=result.get("url"),
                )
            )
        return citations

    async def search(self, query: str) -> list[PolicyCitation]:
        if not self.remote_enabled:
            return static_citations(query)
        try:
            return await self._search_remote(query)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Policy search failed; using static citations",
                extra={"error_type": type(exc).__name__, "query": query},
            )
            return static_citations(query)

    async def citations_for_issues(self, issue_codes: Iterable[str]) -> dict[str, list[PolicyCitation]]:
        """Citations per unique issue code, in first-seen order."""
        result: dict[str, list[PolicyCitation]] = {}
        for code in dict.fromkeys(issue_codes):
            result[code] = await self.search(query_for_issue(code))
        return result

    async def flat_citations(self, issue_codes: Iterable[str]) -> list[PolicyCitation]:
        flattened: list[PolicyCitation] = []
        for citations in (await self.citations_for_issues(issue_codes)).values():
            flattened.extend(citations)
        return flattened


__all__ = ["PolicyCitationLookup", "query_for_issue", "static_citations"]
