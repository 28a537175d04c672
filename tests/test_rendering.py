from __future__ import annotations

import pytest

from wabot.config import RenderConfig
from wabot.errors import RenderChainError, RenderError
from wabot.rendering.chain import RenderResult, RenderStrategy, attempt, render_first
from wabot.rendering.html import build_page
from wabot.rendering.stickers import StickerService


class _FakeFfmpeg:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[str] = []

    async def _maybe(self, name: str) -> bytes:
        self.calls.append(name)
        if self.fail:
            raise RenderError("ffmpeg", "no libfreetype")
        return name.encode()

    async def webp_from_png(self, png: bytes) -> bytes:
        return await self._maybe("webp_from_png")

    async def text_sticker(self, text: str) -> bytes:
        return await self._maybe("text_sticker")

    async def text_overlay_sticker(self, data: bytes, text: str, *, video: bool = False) -> bytes:
        return await self._maybe("text_overlay_sticker")

    async def overlay_sticker(self, data: bytes, overlay: bytes, *, video: bool = False) -> bytes:
        return await self._maybe("overlay_sticker")

    async def image_to_sticker(self, data: bytes) -> bytes:
        self.calls.append("image_to_sticker")
        return b"plain"

    async def video_to_sticker(self, data: bytes) -> bytes:
        self.calls.append("video_to_sticker")
        return b"plain-video"


class _FakeHtml:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail

    async def render_png(self, text: str, *, caption: bool = False) -> bytes:
        if self.fail:
            raise RenderError("html", "chromium not installed")
        return b"png"


@pytest.mark.asyncio
async def test_render_first_returns_first_success() -> None:
    async def ok() -> RenderResult[bytes]:
        return RenderResult.success(b"second")

    async def bad() -> RenderResult[bytes]:
        return RenderResult.failure("nope")

    name, value = await render_first([RenderStrategy("a", bad), RenderStrategy("b", ok)])

    assert (name, value) == ("b", b"second")


@pytest.mark.asyncio
async def test_render_first_collects_every_failure() -> None:
    async def boom() -> bytes:
        raise RuntimeError("broken")

    with pytest.raises(RenderChainError) as exc_info:
        await render_first([
            RenderStrategy("a", lambda: attempt("a", boom)),
            RenderStrategy("b", lambda: attempt("b", boom)),
        ])

    assert [name for name, _ in exc_info.value.failures] == ["a", "b"]
    assert "RuntimeError: broken" in exc_info.value.failures[0][1]


@pytest.mark.asyncio
async def test_text_only_prefers_browser_rendering() -> None:
    ffmpeg = _FakeFfmpeg()
    service = StickerService(RenderConfig(), ffmpeg=ffmpeg, html=_FakeHtml())

    method, sticker = await service.text_only("hi")

    assert method == "html"
    assert sticker == b"webp_from_png"


@pytest.mark.asyncio
async def test_text_only_falls_back_to_drawtext() -> None:
    ffmpeg = _FakeFfmpeg()
    service = StickerService(RenderConfig(), ffmpeg=ffmpeg, html=_FakeHtml(fail=True))

    method, sticker = await service.text_only("hi")

    assert method == "ffmpeg"
    assert sticker == b"text_sticker"


@pytest.mark.asyncio
async def test_with_caption_ends_with_plain_sticker() -> None:
    ffmpeg = _FakeFfmpeg(fail=True)
    service = StickerService(RenderConfig(), ffmpeg=ffmpeg, html=_FakeHtml(fail=True))

    method, sticker = await service.with_caption(b"img", "image", "hi")

    assert method == "plain"
    assert sticker == b"plain"
    assert ffmpeg.calls == ["text_overlay_sticker", "image_to_sticker"]


@pytest.mark.asyncio
async def test_text_only_raises_when_everything_fails() -> None:
    service = StickerService(RenderConfig(), ffmpeg=_FakeFfmpeg(fail=True), html=_FakeHtml(fail=True))

    with pytest.raises(RenderChainError) as exc_info:
        await service.text_only("hi")

    assert [name for name, _ in exc_info.value.failures] == ["html", "ffmpeg"]


def test_build_page_escapes_text() -> None:
    page = build_page("<b>hi</b> & 🎉", RenderConfig())

    assert "&lt;b&gt;hi&lt;/b&gt; &amp; 🎉" in page
    assert "<b>hi</b>" not in page


@pytest.mark.asyncio
async def test_missing_ffmpeg_binary_is_reported(tmp_path) -> None:
    from wabot.rendering.ffmpeg import FfmpegRenderer

    renderer = FfmpegRenderer(RenderConfig(ffmpeg_bin=str(tmp_path / "no-ffmpeg"), temp_dir=str(tmp_path)))

    with pytest.raises(RenderError, match="not found"):
        await renderer.run(["-version"])
    assert not (await renderer.probe()).available


def test_drawtext_reads_caption_from_file(tmp_path) -> None:
    from wabot.rendering.ffmpeg import FfmpegRenderer

    renderer = FfmpegRenderer(RenderConfig(font_file="/fonts/a.ttf"))

    flt = renderer._drawtext(tmp_path / "caption.txt")

    assert flt.startswith("drawtext=fontfile='/fonts/a.ttf':textfile=")
    assert "y=h-th-20" in flt
