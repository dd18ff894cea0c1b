"""Shared utilities: exceptions, note loading, knowledge tables and the LLM client."""

__all__ = [
    "exceptions",
    "knowledge",
    "llm",
    "text_io",
]
