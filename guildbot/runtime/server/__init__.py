"""Server module -- aiohttp application factory and HTTP handlers."""

from __future__ import annotations

from .app import RUNTIME_KEY, AdminRoutes, MessageRoutes, QuietAccessLogger, create_app

__all__ = ["RUNTIME_KEY", "AdminRoutes", "MessageRoutes", "QuietAccessLogger", "create_app"]
