"""Time — current time in several formats."""

from __future__ import annotations

from datetime import UTC, datetime

from wabot.commands.base import CommandContext

DESCRIPTION = "Current time"


def describe(now: datetime) -> str:
    local = now.astimezone()
    utc = now.astimezone(UTC)
    return (
        "🕐 *Current Time*\n\n"
        "🌍 *Local Time:*\n"
        f"📅 Date: {local.strftime('%d/%m/%Y')}\n"
        f"⏰ Time: {local.strftime('%H:%M:%S')}\n"
        f"📆 Day: {local.strftime('%A')}\n\n"
        "🌎 *UTC Time:*\n"
        f"📅 Date: {utc.strftime('%Y-%m-%d')}\n"
        f"⏰ Time: {utc.strftime('%H:%M:%S')}\n\n"
        "🕓 *Timestamps:*\n"
        f"🔢 Unix: {int(now.timestamp())}\n\n"
        "⏰ *Quick Info:*\n"
        f"🗓️ Week: {local.isocalendar().week}\n"
        f"📊 Day of Year: {local.timetuple().tm_yday}"
    )


async def handle(ctx: CommandContext) -> None:
    await ctx.reply(describe(datetime.now(UTC)))
