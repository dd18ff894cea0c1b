# Coding rules domain module
from .ncci import find_ncci_conflicts, NCCIConflict
from .rule_config import ClaimRules, load_claim_rules
from .validation_engine import ClaimValidator

__all__ = [
    # NCCI edits
    "find_ncci_conflicts",
    "NCCIConflict",
    # Static rule tables
    "ClaimRules",
    "load_claim_rules",
    # Claim validation
    "ClaimValidator",
]
