"""Menu — short command menu grouped by category."""

from __future__ import annotations

from wabot.commands.base import CommandContext

DESCRIPTION = "Short command menu"

SECTIONS = [
    ("🔥 *Basic*", ["help", "menu", "ping", "info", "status", "time"]),
    ("🖼️ *Media*", ["sticker", "stext", "tgen"]),
    ("🎭 *Fun*", ["joke", "quote", "test"]),
    ("🛠️ *Admin*", ["reload", "ffmpeg"]),
]


async def handle(ctx: CommandContext) -> None:
    prefix = ctx.registry.prefix
    available = set(ctx.registry.tokens())
    lines = ["📋 *Command Menu*"]
    listed: set[str] = set()
    for title, names in SECTIONS:
        tokens = [f"{prefix}{name}" for name in names if f"{prefix}{name}" in available]
        if not tokens:
            continue
        listed.update(tokens)
        lines += ["", title, *(f"> *{token}*" for token in tokens)]

    others = [token for token in ctx.registry.tokens() if token not in listed]
    if others:
        lines += ["", "🧩 *Other*", *(f"> *{token}*" for token in others)]

    lines += [
        "",
        "📌 *Tips:*",
        f"> Reply to a photo/video with *{prefix}sticker*",
        f"> Reply to a photo/video with *{prefix}stext <text>*",
    ]
    await ctx.reply("\n".join(lines))
