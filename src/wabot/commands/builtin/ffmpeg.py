"""Ffmpeg — report what the sticker renderers can do on this host."""

from __future__ import annotations

import platform

from wabot.commands.base import CommandContext
from wabot.rendering.ffmpeg import FfmpegCapabilities, FfmpegRenderer

DESCRIPTION = "Check ffmpeg support for text rendering"


def _mark(flag: bool) -> str:
    return "✅" if flag else "❌"


def describe(caps: FfmpegCapabilities, system: str) -> str:
    lines = [
        "🔧 *FFmpeg System Check*",
        "",
        f"• Platform: {system}",
        f"• FFmpeg: {_mark(caps.available)} {caps.version if caps.available else 'not found'}",
        "",
        "📝 *Text rendering:*",
        f"• libfreetype: {_mark(caps.freetype)}",
        f"• libharfbuzz: {_mark(caps.harfbuzz)}",
        f"• libfribidi: {_mark(caps.fribidi)}",
        f"• libwebp: {_mark(caps.libwebp)}",
        "",
        f"🏁 Text stickers: {'✅ Ready' if caps.text_ready else '❌ Not ready'}",
    ]
    if not caps.text_ready:
        lines += ["", "🔧 *Install:*"]
        if system == "darwin":
            lines.append("brew install ffmpeg")
        elif system == "windows":
            lines.append("winget install ffmpeg")
        else:
            lines.append("sudo apt install ffmpeg libfreetype6 libharfbuzz0b libfribidi0")
    return "\n".join(lines)


async def handle(ctx: CommandContext) -> None:
    await ctx.reply("🔄 Checking FFmpeg capabilities...")
    caps = await FfmpegRenderer(ctx.config.render).probe()
    await ctx.reply(describe(caps, platform.system().lower()))
