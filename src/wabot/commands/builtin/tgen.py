"""Tgen — sticker made only of text."""

from __future__ import annotations

import structlog

from wabot.commands.base import CommandContext
from wabot.errors import RenderChainError
from wabot.rendering.stickers import StickerService

logger = structlog.get_logger()

DESCRIPTION = "Generate a sticker from text"
USAGE = ".tgen <text>"

MAX_TEXT = 200


async def handle(ctx: CommandContext) -> None:
    text = ctx.text_args
    if not text:
        await ctx.reply(
            "❌ *Text Sticker Generator*\n\n"
            "📝 Usage: .tgen <text to turn into a sticker>\n\n"
            "💡 Examples:\n• .tgen Hello World!\n• .tgen Happy Birthday 🎉"
        )
        return
    if len(text) > MAX_TEXT:
        await ctx.reply(f"❌ Text is too long ({len(text)} characters, max {MAX_TEXT}).")
        return

    await ctx.reply(f'🔄 *Generating text sticker...*\n📝 Text: "{text}"')
    try:
        method, sticker = await StickerService(ctx.config.render).text_only(text)
    except RenderChainError as e:
        logger.error("command.tgen.render_failed", failures=e.failures)
        await ctx.reply("❌ Couldn't generate the sticker. Check .ffmpeg for renderer support.")
        return

    logger.info("command.tgen.rendered", method=method)
    await ctx.reply_sticker(sticker)
