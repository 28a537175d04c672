"""Status — runtime status."""

from __future__ import annotations

import platform
from datetime import datetime

from wabot.commands.base import CommandContext
from wabot.system import memory_mb, process_uptime

DESCRIPTION = "Bot status"


async def handle(ctx: CommandContext) -> None:
    uptime = int(process_uptime())
    await ctx.reply(
        "📊 *Bot Status*\n\n"
        "🟢 Status: Online & Active\n"
        f"⏱️ Uptime: {uptime // 60}m {uptime % 60}s\n"
        f"💾 Memory: {memory_mb()} MB\n"
        f"🌐 Platform: {platform.system().lower()}\n"
        f"🐍 Python: {platform.python_version()}\n\n"
        f"🔄 Last checked: {datetime.now().strftime('%H:%M:%S')}"
    )
