"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules.
"""

from __future__ import annotations

from fastapi import Request

from calls.engine import CallEngine
from calls.router import CallbackRouter


def get_engine(request: Request) -> CallEngine:
    return request.app.state.engine


def get_callback_router(request: Request) -> CallbackRouter:
    return CallbackRouter(get_engine(request))
