"""REST API surface for the Claims Suite package.

Keep this module import-light: importing the FastAPI app builds settings and
loads `.env`, which the CLI and library callers do not need.
"""

from __future__ import annotations


def __getattr__(name: str):
    if name == "app":
        from .fastapi_app import app

        return app
    raise AttributeError(name)


__all__ = ["app"]
