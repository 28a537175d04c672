"""wabot CLI — run the bot and inspect its setup."""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable
from typing import Any

import structlog
import typer
from rich.console import Console
from rich.table import Table

from wabot import __version__
from wabot.bot import WhatsAppBot
from wabot.commands.registry import CommandRegistry
from wabot.config import BotConfig, get_config
from wabot.logging import setup_logging
from wabot.rendering.ffmpeg import FfmpegRenderer

app = typer.Typer(
    name="wabot",
    help="wabot — WhatsApp command bot",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()
logger = structlog.get_logger()

CRASH_RESTART_DELAY_S = 3.0


LoopExceptionHandler = Callable[[asyncio.AbstractEventLoop, dict[str, Any]], None]


def _loop_exception_handler(crashed: asyncio.Event) -> LoopExceptionHandler:
    """Log unhandled loop errors; a raising callback also requests a restart.

    Errors from tasks or futures nobody awaited are only logged.
    """

    def handle(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        from_task = "future" in context or "task" in context
        restart = exc is not None and not from_task
        logger.error(
            "wabot.unhandled_exception",
            message=context.get("message"),
            error=str(exc) if exc else None,
            restart=restart,
            exc_info=exc,
        )
        if restart:
            crashed.set()

    return handle


async def _first_set(*events: asyncio.Event) -> None:
    waiters = [asyncio.create_task(event.wait()) for event in events]
    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for waiter in waiters:
            waiter.cancel()


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, shutdown: asyncio.Event) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            pass


async def _serve(
    config: BotConfig,
    *,
    shutdown: asyncio.Event | None = None,
    bot_factory: Callable[[BotConfig], WhatsAppBot] = WhatsAppBot,
) -> None:
    """Run bots until shutdown, replacing the bot after an uncaught error."""
    loop = asyncio.get_running_loop()
    crashed = asyncio.Event()
    loop.set_exception_handler(_loop_exception_handler(crashed))
    if shutdown is None:
        shutdown = asyncio.Event()
        _install_signal_handlers(loop, shutdown)

    try:
        while True:
            bot = bot_factory(config)
            await bot.start()
            await _first_set(shutdown, crashed)
            await bot.stop()

            if shutdown.is_set():
                logger.info("wabot.shutdown_requested")
                return

            crashed.clear()
            logger.warning("wabot.crashed", restart_in_s=CRASH_RESTART_DELAY_S)
            await asyncio.sleep(CRASH_RESTART_DELAY_S)
    finally:
        loop.set_exception_handler(None)


@app.command()
def run(
    log_level: str = typer.Option("", "--log-level", "-l", help="Override configured log level"),
) -> None:
    """Connect to WhatsApp and start answering commands."""
    config = get_config()
    setup_logging(level=log_level or config.log_level, fmt=config.log_format, bot_name=config.bot_name)
    logger.info("wabot.starting", version=__version__, commands_dir=config.commands_dir)
    asyncio.run(_serve(config))


@app.command()
def commands(
    commands_dir: str = typer.Option("", "--dir", "-d", help="Command directory (default: configured)"),
) -> None:
    """List the commands the registry would load."""
    config = get_config()
    setup_logging(level="WARNING", fmt="console")
    registry = CommandRegistry(commands_dir or config.commands_dir, prefix=config.router.prefix)
    asyncio.run(registry.load())

    table = Table(title=f"Commands ({len(registry)})", border_style="blue")
    table.add_column("Token", style="cyan")
    table.add_column("Description")
    table.add_column("Source", style="dim")
    for command in registry.list():
        table.add_row(command.token, command.description, command.source_ref)
    console.print(table)


@app.command()
def check() -> None:
    """Show ffmpeg support for sticker rendering."""
    config = get_config()
    caps = asyncio.run(FfmpegRenderer(config.render).probe())

    table = Table(title="Renderer check", show_header=False, border_style="blue")
    table.add_column("Key", style="bold")
    table.add_column("Value")

    def mark(flag: bool) -> str:
        return "[green]yes[/green]" if flag else "[red]no[/red]"

    table.add_row("ffmpeg", caps.version if caps.available else "[red]not found[/red]")
    table.add_row("libfreetype", mark(caps.freetype))
    table.add_row("libharfbuzz", mark(caps.harfbuzz))
    table.add_row("libfribidi", mark(caps.fribidi))
    table.add_row("libwebp", mark(caps.libwebp))
    console.print(table)
    if not caps.text_ready:
        console.print("[yellow]Text stickers will fall back to the browser renderer.[/yellow]")


@app.command()
def version() -> None:
    """Print the wabot version."""
    console.print(f"wabot {__version__}")


if __name__ == "__main__":
    app()
