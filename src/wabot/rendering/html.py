"""Headless-browser text rendering (Playwright Chromium)."""

from __future__ import annotations

import html

import structlog

from wabot.config import RenderConfig
from wabot.errors import RenderError

logger = structlog.get_logger()

RENDERER = "html"

_PAGE = """<!DOCTYPE html>
<html><head><meta charset="utf-8"><style>
  html, body {{ margin: 0; padding: 0; background: transparent; }}
  #card {{
    width: {size}px; height: {size}px; box-sizing: border-box;
    display: flex; align-items: {align}; justify-content: center;
    padding: 20px; text-align: center; word-break: break-word;
    font-family: Arial, "Noto Color Emoji", "Apple Color Emoji", "Segoe UI Emoji", sans-serif;
    font-size: {font_size}px; font-weight: bold; line-height: 1.2;
    color: {color};
    -webkit-text-stroke: 2px {stroke};
    paint-order: stroke fill;
  }}
</style></head>
<body><div id="card">{text}</div></body></html>
"""


def build_page(text: str, config: RenderConfig, *, caption: bool = False) -> str:
    """HTML for a square transparent card; captions sit at the bottom."""
    return _PAGE.format(
        size=config.sticker_size,
        align="flex-end" if caption else "center",
        font_size=config.font_size,
        color=config.text_color,
        stroke=config.stroke_color,
        text=html.escape(text).replace("\n", "<br>"),
    )


class HtmlRenderer:
    """Renders text to a transparent PNG in headless Chromium."""

    def __init__(self, config: RenderConfig) -> None:
        self.config = config

    async def render_png(self, text: str, *, caption: bool = False) -> bytes:
        try:
            from playwright.async_api import Error as PlaywrightError
            from playwright.async_api import async_playwright
        except ImportError as e:
            raise RenderError(RENDERER, "playwright is not installed") from e

        size = self.config.sticker_size
        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(args=["--no-sandbox"])
                try:
                    page = await browser.new_page(viewport={"width": size, "height": size})
                    page.set_default_timeout(self.config.browser_timeout_ms)
                    await page.set_content(build_page(text, self.config, caption=caption))
                    card = await page.query_selector("#card")
                    target = card or page
                    png = await target.screenshot(type="png", omit_background=True)
                finally:
                    await browser.close()
        except PlaywrightError as e:
            msg = str(e)
            if "Executable doesn't exist" in msg:
                msg = f"{msg} | Hint: run `playwright install chromium`"
            raise RenderError(RENDERER, msg) from e

        logger.debug("render.html.rendered", bytes=len(png), caption=caption)
        return png
