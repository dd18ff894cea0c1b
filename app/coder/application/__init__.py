# Coder application layer
from .claims_service import ClaimsService

__all__ = ["ClaimsService"]
