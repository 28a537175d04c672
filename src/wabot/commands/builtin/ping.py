"""Ping — check that the bot is alive."""

from __future__ import annotations

from wabot.commands.base import CommandContext
from wabot.messages import format_uptime
from wabot.system import process_uptime

DESCRIPTION = "Check bot status"
USAGE = ".ping"


async def handle(ctx: CommandContext) -> None:
    await ctx.reply(
        "🏓 Pong! Bot is online!\n"
        f"⏱️ Uptime: {format_uptime(process_uptime())}\n"
        "🤖 Status: Active"
    )
