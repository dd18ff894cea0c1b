# Knowledge Base domain module
from .repository import CodeRegistry
from .models import CodeEntry, CodeKind, NCCIPair

__all__ = ["CodeRegistry", "CodeEntry", "CodeKind", "NCCIPair"]
