"""Info — bot information."""

from __future__ import annotations

import platform

from wabot import __version__
from wabot.commands.base import CommandContext
from wabot.messages import format_uptime
from wabot.system import memory_mb, process_uptime

DESCRIPTION = "Bot information"


async def handle(ctx: CommandContext) -> None:
    await ctx.reply(
        "ℹ️ *Bot Information*\n\n"
        f"🤖 *{ctx.config.bot_name}* v{__version__}\n"
        "🔧 Dynamic command system with hot reload\n"
        f"🐍 Python {platform.python_version()}\n\n"
        "📊 *System Stats:*\n"
        f"💾 Memory: {memory_mb()} MB\n"
        f"⏱️ Uptime: {format_uptime(process_uptime())}\n"
        f"📦 Commands: {len(ctx.registry)}\n\n"
        f"🌟 *Prefix:* {ctx.registry.prefix}"
    )
