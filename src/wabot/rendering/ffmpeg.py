"""ffmpeg-based sticker rendering."""

from __future__ import annotations

import asyncio
import shutil
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path

import structlog

from wabot.config import RenderConfig
from wabot.errors import RenderError

logger = structlog.get_logger()

RENDERER = "ffmpeg"

WEBP_ARGS = [
    "-c:v", "libwebp",
    "-loop", "0",
    "-lossless", "0",
    "-compression_level", "4",
    "-quality", "80",
    "-preset", "default",
    "-an",
    "-fps_mode", "passthrough",
    "-f", "webp",
]


@dataclass
class FfmpegCapabilities:
    available: bool
    version: str = "unknown"
    freetype: bool = False
    harfbuzz: bool = False
    fribidi: bool = False
    libwebp: bool = False

    @property
    def text_ready(self) -> bool:
        return self.available and self.freetype


class FfmpegRenderer:
    """Runs ffmpeg as a subprocess; never blocks the event loop."""

    def __init__(self, config: RenderConfig) -> None:
        self.config = config

    @property
    def size(self) -> int:
        return self.config.sticker_size

    def _scale_filter(self) -> str:
        return f"scale={self.size}:{self.size}:force_original_aspect_ratio=decrease"

    def _drawtext(self, textfile: Path, *, y: str = "h-th-20") -> str:
        # textfile= sidesteps filtergraph escaping of user text
        parts = [
            f"textfile='{textfile.as_posix()}'",
            f"fontsize={self.config.font_size}",
            f"fontcolor={self.config.text_color}",
            f"bordercolor={self.config.stroke_color}",
            "borderw=3",
            "x=(w-tw)/2",
            f"y={y}",
        ]
        if self.config.font_file:
            parts.insert(0, f"fontfile='{self.config.font_file}'")
        return "drawtext=" + ":".join(parts)

    async def run(self, args: list[str]) -> tuple[str, str]:
        """Run ffmpeg with ``args``; raises RenderError on failure or timeout."""
        cmd = [self.config.ffmpeg_bin, "-hide_banner", "-loglevel", "error", *args]
        logger.debug("render.ffmpeg.exec", args=args)
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise RenderError(RENDERER, f"{self.config.ffmpeg_bin} not found") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.config.subprocess_timeout_s,
            )
        except TimeoutError as e:
            process.kill()
            await process.wait()
            raise RenderError(RENDERER, f"timed out after {self.config.subprocess_timeout_s}s") from e

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace").strip()
        if process.returncode != 0:
            raise RenderError(RENDERER, err[-500:] or f"exit code {process.returncode}")
        return out, err

    async def _convert(
        self,
        data: bytes | None,
        *,
        suffix: str,
        input_args: list[str],
        filters: list[str],
        caption: str | None = None,
        drawtext_y: str = "h-th-20",
    ) -> bytes:
        workdir = Path(self.config.temp_dir)
        workdir.mkdir(parents=True, exist_ok=True)
        tmp = Path(tempfile.mkdtemp(prefix="sticker_", dir=workdir))
        try:
            args = list(input_args)
            if data is not None:
                src = tmp / f"input{suffix}"
                src.write_bytes(data)
                args += ["-i", str(src)]
            vf = list(filters)
            if caption is not None:
                textfile = tmp / "caption.txt"
                textfile.write_text(caption, encoding="utf-8")
                vf.append(self._drawtext(textfile, y=drawtext_y))

            dst = tmp / f"{uuid.uuid4().hex}.webp"
            await self.run([*args, "-vf", ",".join(vf), *WEBP_ARGS, "-y", str(dst)])
            if not dst.exists() or dst.stat().st_size == 0:
                raise RenderError(RENDERER, "no output produced")
            return dst.read_bytes()
        finally:
            shutil.rmtree(tmp, ignore_errors=True)

    def _video_args(self) -> list[str]:
        return ["-t", str(self.config.max_video_seconds)]

    async def image_to_sticker(self, data: bytes) -> bytes:
        return await self._convert(data, suffix=".jpg", input_args=[], filters=[self._scale_filter()])

    async def video_to_sticker(self, data: bytes) -> bytes:
        return await self._convert(
            data,
            suffix=".mp4",
            input_args=self._video_args(),
            filters=["fps=15", self._scale_filter()],
        )

    async def text_overlay_sticker(self, data: bytes, text: str, *, video: bool = False) -> bytes:
        """Media with a caption drawn along the bottom edge."""
        if video:
            return await self._convert(
                data,
                suffix=".mp4",
                input_args=self._video_args(),
                filters=["fps=15", self._scale_filter()],
                caption=text,
            )
        return await self._convert(
            data, suffix=".jpg", input_args=[], filters=[self._scale_filter()], caption=text
        )

    async def text_sticker(self, text: str) -> bytes:
        """Text only, centred on a transparent canvas."""
        return await self._convert(
            None,
            suffix="",
            input_args=[
                "-f", "lavfi",
                "-i", f"color=c=black@0.0:s={self.size}x{self.size}:d=1",
                "-frames:v", "1",
            ],
            filters=["format=rgba"],
            caption=text,
            drawtext_y="(h-th)/2",
        )

    async def webp_from_png(self, png: bytes) -> bytes:
        """Fit a PNG (e.g. a browser screenshot) into a sticker-sized WebP."""
        return await self._convert(png, suffix=".png", input_args=[], filters=[self._scale_filter()])

    async def probe(self) -> FfmpegCapabilities:
        try:
            version_out, _ = await self.run(["-version"])
        except RenderError as e:
            logger.info("render.ffmpeg.unavailable", error=str(e))
            return FfmpegCapabilities(available=False)

        first_line = version_out.splitlines()[0] if version_out else "unknown"
        return FfmpegCapabilities(
            available=True,
            version=first_line,
            freetype="--enable-libfreetype" in version_out,
            harfbuzz="--enable-libharfbuzz" in version_out,
            fribidi="--enable-libfribidi" in version_out,
            libwebp="--enable-libwebp" in version_out,
        )

    async def overlay_sticker(self, data: bytes, overlay_png: bytes, *, video: bool = False) -> bytes:
        """Composite a full-size transparent PNG over scaled media."""
        workdir = Path(self.config.temp_dir)
        workdir.mkdir(parents=True, exist_ok=True)
        tmp = Path(tempfile.mkdtemp(prefix="overlay_", dir=workdir))
        size = self.size
        try:
            src = tmp / ("input.mp4" if video else "input.jpg")
            layer = tmp / "overlay.png"
            dst = tmp / f"{uuid.uuid4().hex}.webp"
            src.write_bytes(data)
            layer.write_bytes(overlay_png)
            prefix = "fps=15," if video else ""
            base = (
                f"[0:v]{prefix}{self._scale_filter()},"
                f"pad={size}:{size}:(ow-iw)/2:(oh-ih)/2:color=black@0.0[bg]"
            )
            graph = f"{base};[1:v]format=rgba,scale={size}:{size}[fg];[bg][fg]overlay=0:0:format=auto"
            await self.run([
                *(self._video_args() if video else []),
                "-i", str(src),
                "-i", str(layer),
                "-filter_complex", graph,
                *WEBP_ARGS,
                "-y", str(dst),
            ])
            return dst.read_bytes()
        finally:
            shutil.rmtree(tmp, ignore_errors=True)
