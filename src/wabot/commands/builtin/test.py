"""Test — echo the arguments back with routing details."""

from __future__ import annotations

from datetime import datetime

from wabot.commands.base import CommandContext

DESCRIPTION = "Echo test command"
USAGE = ".test [message]"


async def handle(ctx: CommandContext) -> None:
    text = ctx.text_args or "No message provided"
    await ctx.reply(
        "🧪 *Test Command*\n\n"
        f'📨 Original message: "{text}"\n'
        f"👤 From: {ctx.sender_id}\n"
        f"🎯 Chat: {ctx.chat_id}\n"
        f"🕐 Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n\n"
        "✅ Test command is working!"
    )
