"""Reload — re-read every command from disk (admin only)."""

from __future__ import annotations

import structlog

from wabot.commands.base import CommandContext

logger = structlog.get_logger()

DESCRIPTION = "Reload commands from disk (admin only)"


async def handle(ctx: CommandContext) -> None:
    if not ctx.config.is_admin(ctx.sender_id):
        logger.info("command.reload.denied", sender_id=ctx.sender_id)
        await ctx.reply("❌ This command is only available for administrators.")
        return

    await ctx.reply("🔄 Reloading commands...")
    count = await ctx.registry.reload()
    await ctx.reply(
        f"✅ Commands reloaded: {count} available.\n\n"
        f"💡 Type {ctx.registry.prefix}menu to see them."
    )
