# Policy citation adapters
from .citation_lookup import PolicyCitationLookup, query_for_issue

__all__ = ["PolicyCitationLookup", "query_for_issue"]
