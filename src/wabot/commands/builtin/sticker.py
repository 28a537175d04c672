"""Sticker — turn a photo or short video into a WhatsApp sticker."""

from __future__ import annotations

import structlog

from wabot.commands.base import CommandContext
from wabot.errors import RenderError
from wabot.messages import media_target
from wabot.rendering.stickers import StickerService

logger = structlog.get_logger()

DESCRIPTION = "Make a sticker from a photo or video"
USAGE = "Reply to a photo/video with .sticker, or send one with caption .sticker"

HOW_TO = """❌ *How to use .sticker:*

📸 *Photo:*
• Reply to a photo with .sticker
• Or send a photo with caption .sticker

🎥 *Video:*
• Reply to a video with .sticker
• Becomes an animated sticker (max {seconds} seconds)"""


async def handle(ctx: CommandContext) -> None:
    target = media_target(ctx.raw_event)
    if target is None or target[1] not in ("image", "video"):
        await ctx.reply(HOW_TO.format(seconds=ctx.config.render.max_video_seconds))
        return

    raw, kind = target
    await ctx.reply(f"🔄 *Processing {'photo' if kind == 'image' else 'video'}...*")

    data = await ctx.transport.download_media(raw)
    if not data:
        await ctx.reply("❌ Failed to download the media!")
        return

    try:
        sticker = await StickerService(ctx.config.render).from_media(data, kind)
    except RenderError as e:
        logger.error("command.sticker.render_failed", kind=kind, error=str(e))
        await ctx.reply("❌ Failed to create the sticker. Please try again.")
        return

    await ctx.reply_sticker(sticker)
