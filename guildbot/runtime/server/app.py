"""HTTP surface -- aiohttp app factory for the message webhook and admin API."""

from __future__ import annotations

import hmac
import logging

from aiohttp import web
from aiohttp.abc import AbstractAccessLogger
from pydantic import ValidationError

from ..messaging.bot import InboundMessage, render_outcome
from ..wiring import BotRuntime

logger = logging.getLogger(__name__)

RUNTIME_KEY = web.AppKey("runtime", BotRuntime)

_QUIET_PATHS = frozenset({"/health"})
_PUBLIC_PATHS = frozenset({"/health"})


class QuietAccessLogger(AbstractAccessLogger):
    """Demotes health checks and rejected requests to DEBUG."""

    def log(self, request: web.BaseRequest, response: web.StreamResponse, time: float) -> None:
        status = response.status
        level = logging.DEBUG if request.path in _QUIET_PATHS or status == 401 else logging.INFO
        self.logger.log(
            level, "%s %s %s %s %.3fs",
            request.remote, request.method, request.path, status, time,
        )


def make_auth_middleware(secret: str):  # type: ignore[no-untyped-def]
    expected = f"Bearer {secret}"

    @web.middleware
    async def auth_middleware(request: web.Request, handler):  # type: ignore[type-arg]
        if not secret or request.path in _PUBLIC_PATHS:
            return await handler(request)
        auth = request.headers.get("Authorization", "")
        if hmac.compare_digest(auth, expected):
            return await handler(request)
        return web.json_response(
            {"status": "unauthorized", "message": "Invalid or missing admin secret"},
            status=401,
        )

    return auth_middleware


class MessageRoutes:
    """Webhook for chat connectors -- /api/messages."""

    def __init__(self, runtime: BotRuntime) -> None:
        self._runtime = runtime

    def register(self, router: web.UrlDispatcher) -> None:
        router.add_post("/api/messages", self._post)

    async def _post(self, req: web.Request) -> web.Response:
        try:
            msg = InboundMessage.model_validate(await req.json())
        except ValueError as exc:
            # ValidationError and JSONDecodeError are both ValueErrors.
            detail = exc.errors(include_url=False) if isinstance(exc, ValidationError) else str(exc)
            return web.json_response({"status": "error", "message": detail}, status=400)

        outcome = await self._runtime.bot.handle_message(msg)
        if outcome is None:
            return web.json_response({"status": "ignored", "kind": None, "reply": None})
        return web.json_response({
            "status": "ok" if outcome.ok else "error",
            "kind": outcome.kind,
            "command": outcome.context.command or None,
            "reply": render_outcome(outcome, self._runtime.prefix) or None,
        })


class AdminRoutes:
    """Read-only introspection -- /api/commands, /api/tasks, /api/hooks."""

    def __init__(self, runtime: BotRuntime) -> None:
        self._runtime = runtime

    def register(self, router: web.UrlDispatcher) -> None:
        router.add_get("/api/commands", self._commands)
        router.add_get("/api/tasks", self._tasks)
        router.add_get("/api/hooks", self._hooks)

    async def _commands(self, _req: web.Request) -> web.Response:
        return web.json_response({"commands": self._runtime.registry.to_dict()})

    async def _tasks(self, _req: web.Request) -> web.Response:
        return web.json_response(
            {"tasks": [t.to_dict() for t in self._runtime.scheduler.list_tasks()]}
        )

    async def _hooks(self, _req: web.Request) -> web.Response:
        grouped: dict[str, list[dict]] = {}
        for sub in self._runtime.hooks.subscriptions():
            grouped.setdefault(sub.kind.value, []).append(sub.to_dict())
        return web.json_response({"hooks": grouped})


def create_app(runtime: BotRuntime, *, admin_secret: str = "") -> web.Application:
    app = web.Application(middlewares=[make_auth_middleware(admin_secret)])
    app[RUNTIME_KEY] = runtime

    async def health(_req: web.Request) -> web.Response:
        return web.json_response({
            "status": "ok",
            "version": runtime.version,
            "commands": len(runtime.registry),
            "tasks": len(runtime.scheduler.list_tasks()),
            "scheduler_running": runtime.scheduler.running,
        })

    app.router.add_get("/health", health)
    MessageRoutes(runtime).register(app.router)
    AdminRoutes(runtime).register(app.router)

    async def on_startup(_app: web.Application) -> None:
        runtime.start()
        logger.info("[server] runtime started")

    async def on_cleanup(_app: web.Application) -> None:
        logger.info("[server] shutting down runtime ...")
        await runtime.stop()

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app
