"""Command-line entry point.

Usage::

    guildbot-run serve --port 3978
    guildbot-run commands
    guildbot-run exec "help perms" --guild 1 --author 42
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from aiohttp import web
from rich.console import Console
from rich.tree import Tree

from guildbot.runtime.config import settings
from guildbot.runtime.messaging import render_outcome
from guildbot.runtime.messaging.commands import CommandNode, CommandRegistry
from guildbot.runtime.modules import default_modules
from guildbot.runtime.server import QuietAccessLogger, create_app
from guildbot.runtime.wiring import BotRuntime

logger = logging.getLogger(__name__)
console = Console()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="guildbot-run",
        description="Run the bot server or talk to the command core locally.",
    )
    sub = parser.add_subparsers(dest="action")

    serve = sub.add_parser("serve", help="Run the HTTP server, hook bus and scheduler.")
    serve.add_argument("--host", default="0.0.0.0", help="Listen address (default: 0.0.0.0).")
    serve.add_argument(
        "--port", type=int, default=None,
        help="Listen port (default: BOT_PORT from config).",
    )

    sub.add_parser("commands", help="Print the registered command tree.")

    run = sub.add_parser("exec", help="Dispatch one message locally and print the reply.")
    run.add_argument("message", help="Message text without the command prefix.")
    run.add_argument("--guild", default=None, help="Guild id (default: direct message).")
    run.add_argument("--channel", default="cli", help="Channel id (default: cli).")
    run.add_argument("--author", default="cli", help="Author user id (default: cli).")
    return parser


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.cfg.log_level, logging.INFO),
        format="%(asctime)s  %(name)s  %(levelname)s  %(message)s",
    )


def build_runtime() -> BotRuntime:
    runtime = BotRuntime.from_settings(settings.cfg)
    runtime.load_modules(default_modules())
    return runtime


def _command_tree(registry: CommandRegistry) -> Tree:
    root = Tree("[bold]commands[/bold]")

    def _label(node: CommandNode) -> str:
        label = f"[cyan]{node.name}[/cyan]"
        if node.aliases:
            label += f" [dim]({', '.join(node.aliases)})[/dim]"
        if node.permissions:
            label += f" [yellow]{', '.join(node.permissions)}[/yellow]"
        if node.description:
            label += f" -- {node.description}"
        return label

    def _add(parent: Tree, node: CommandNode) -> None:
        branch = parent.add(_label(node))
        for child in registry.children(node):
            _add(branch, child)

    for node in registry.roots():
        _add(root, node)
    return root


async def _exec(runtime: BotRuntime, args: argparse.Namespace) -> int:
    runtime.start()
    try:
        outcome = await runtime.dispatcher.dispatch(
            args.message, args.guild, args.channel, args.author,
        )
        reply = render_outcome(outcome, runtime.prefix)
        if outcome.ok:
            if reply:
                console.print(reply, markup=False)
            return 0
        console.print(f"[red]{outcome.kind}[/red]")
        console.print(reply, markup=False)
        return 1
    finally:
        await runtime.stop()


def _serve(runtime: BotRuntime, args: argparse.Namespace) -> None:
    port = args.port or settings.cfg.bot_port
    if not settings.cfg.admin_secret:
        logger.warning("ADMIN_SECRET not set -- /api/* is open to anyone who can reach the port")
    logger.info("Starting guildbot %s on %s:%d ...", runtime.version, args.host, port)
    web.run_app(
        create_app(runtime, admin_secret=settings.cfg.admin_secret),
        host=args.host,
        port=port,
        access_log_class=QuietAccessLogger,
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``guildbot-run``."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.action is None:
        parser.print_help()
        sys.exit(1)

    _configure_logging()
    runtime = build_runtime()

    if args.action == "commands":
        console.print(_command_tree(runtime.registry))
        sys.exit(0)
    if args.action == "serve":
        _serve(runtime, args)
        sys.exit(0)

    try:
        code = asyncio.run(_exec(runtime, args))
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
