"""Sticker service — the fallback chains commands call into."""

from __future__ import annotations

import structlog

from wabot.config import RenderConfig
from wabot.rendering.chain import RenderStrategy, attempt, render_first
from wabot.rendering.ffmpeg import FfmpegRenderer
from wabot.rendering.html import HtmlRenderer

logger = structlog.get_logger()


class StickerService:
    def __init__(
        self,
        config: RenderConfig,
        *,
        ffmpeg: FfmpegRenderer | None = None,
        html: HtmlRenderer | None = None,
    ) -> None:
        self.config = config
        self.ffmpeg = ffmpeg or FfmpegRenderer(config)
        self.html = html or HtmlRenderer(config)

    async def from_media(self, data: bytes, kind: str) -> bytes:
        if kind == "video":
            return await self.ffmpeg.video_to_sticker(data)
        return await self.ffmpeg.image_to_sticker(data)

    async def text_only(self, text: str) -> tuple[str, bytes]:
        """Browser rendering first (best emoji support), then ffmpeg drawtext."""

        async def via_html() -> bytes:
            return await self.ffmpeg.webp_from_png(await self.html.render_png(text))

        return await render_first([
            RenderStrategy("html", lambda: attempt("html", via_html)),
            RenderStrategy("ffmpeg", lambda: attempt("ffmpeg", lambda: self.ffmpeg.text_sticker(text))),
        ])

    async def with_caption(self, data: bytes, kind: str, text: str) -> tuple[str, bytes]:
        """Caption over media: browser-rendered overlay, then drawtext, then plain sticker."""
        video = kind == "video"

        async def via_html() -> bytes:
            overlay = await self.html.render_png(text, caption=True)
            return await self.ffmpeg.overlay_sticker(data, overlay, video=video)

        return await render_first([
            RenderStrategy("html", lambda: attempt("html", via_html)),
            RenderStrategy(
                "ffmpeg",
                lambda: attempt("ffmpeg", lambda: self.ffmpeg.text_overlay_sticker(data, text, video=video)),
            ),
            RenderStrategy("plain", lambda: attempt("plain", lambda: self.from_media(data, kind))),
        ])
