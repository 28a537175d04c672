"""Stext — sticker from a photo or video with a caption drawn on it."""

from __future__ import annotations

import structlog

from wabot.commands.base import CommandContext
from wabot.errors import RenderChainError
from wabot.messages import media_target
from wabot.rendering.stickers import StickerService

logger = structlog.get_logger()

DESCRIPTION = "Add text to a sticker"
USAGE = "Reply to a photo/video with .stext <text>"

MAX_TEXT = 100


async def handle(ctx: CommandContext) -> None:
    text = ctx.text_args
    if not text:
        await ctx.reply(
            "❌ *Sticker with text*\n\n"
            "📝 Usage: reply to a photo/video with .stext <text>\n\n"
            "💡 Examples:\n• .stext Hello World!\n• .stext Good morning 🌅"
        )
        return
    if len(text) > MAX_TEXT:
        await ctx.reply(f"❌ Text is too long ({len(text)} characters, max {MAX_TEXT}).")
        return

    target = media_target(ctx.raw_event)
    if target is None or target[1] not in ("image", "video"):
        await ctx.reply("❌ Reply to a photo or video with .stext <text>.")
        return

    raw, kind = target
    await ctx.reply(f'🔄 *Adding text to {kind}...*\n📝 Text: "{text}"')
    data = await ctx.transport.download_media(raw)

    try:
        method, sticker = await StickerService(ctx.config.render).with_caption(data, kind, text)
    except RenderChainError as e:
        logger.error("command.stext.render_failed", failures=e.failures)
        await ctx.reply("❌ Couldn't render the text sticker. Check .ffmpeg for renderer support.")
        return

    logger.info("command.stext.rendered", method=method, kind=kind)
    if method == "plain":
        await ctx.reply("⚠️ Text rendering is unavailable; sending the sticker without text.")
    await ctx.reply_sticker(sticker)
