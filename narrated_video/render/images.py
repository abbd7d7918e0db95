"""
Background image backends.

The compositor needs a single still image as its base layer. Backends are
tried in priority order and each reports a :class:`RenderResult`; the first
successful one wins.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from ..errors import ExternalServiceError

logger = logging.getLogger(__name__)

BACKGROUND_TOP = (13, 17, 23)
BACKGROUND_BOTTOM = (28, 33, 45)
ACCENT = (247, 147, 26)


@dataclass
class RenderResult:
    """Outcome of one backend attempt."""

    backend: str
    path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.path is not None and self.error is None


class BackgroundRenderer(ABC):
    """Base class for background image backends."""

    name = "base"

    @abstractmethod
    def try_render(self, output_path: Path, width: int, height: int, title: str = "") -> RenderResult:
        """Render a background to ``output_path`` without raising."""
        ...


class StaticImageRenderer(BackgroundRenderer):
    """Uses an existing image supplied with the request."""

    name = "static"

    def __init__(self, source: Path | str):
        self.source = Path(source)

    def try_render(self, output_path: Path, width: int, height: int, title: str = "") -> RenderResult:
        try:
            with Image.open(self.source) as image:
                image.convert("RGB").resize((width, height)).save(output_path)
        except (OSError, UnidentifiedImageError) as e:
            return RenderResult(self.name, error=f"Cannot read {self.source.name}: {e}")
        return RenderResult(self.name, path=Path(output_path))


class GradientRenderer(BackgroundRenderer):
    """Draws a dark vertical gradient with an accent bar and the video title."""

    name = "gradient"

    def try_render(self, output_path: Path, width: int, height: int, title: str = "") -> RenderResult:
        try:
            image = Image.new("RGB", (width, height), BACKGROUND_TOP)
            draw = ImageDraw.Draw(image)
            for y in range(height):
                ratio = y / max(height - 1, 1)
                color = tuple(
                    int(top + (bottom - top) * ratio)
                    for top, bottom in zip(BACKGROUND_TOP, BACKGROUND_BOTTOM)
                )
                draw.line([(0, y), (width, y)], fill=color)

            draw.rectangle([0, 0, width, 8], fill=ACCENT)
            if title:
                font = ImageFont.load_default()
                left, top, right, bottom = draw.textbbox((0, 0), title, font=font)
                position = ((width - (right - left)) // 2, (height - (bottom - top)) // 2)
                draw.text(position, title, fill=ACCENT, font=font)

            image.save(output_path)
        except (OSError, ValueError) as e:
            return RenderResult(self.name, error=str(e))
        return RenderResult(self.name, path=Path(output_path))


class FFmpegColorRenderer(BackgroundRenderer):
    """Last resort: a flat colour frame from ffmpeg's lavfi source."""

    name = "ffmpeg-color"

    def __init__(self, ffmpeg_path: str = "ffmpeg", color: str = "0x0D1117"):
        self.ffmpeg_path = ffmpeg_path
        self.color = color

    def try_render(self, output_path: Path, width: int, height: int, title: str = "") -> RenderResult:
        cmd = [
            self.ffmpeg_path, "-y", "-loglevel", "error",
            "-f", "lavfi", "-i", f"color=c={self.color}:s={width}x{height}",
            "-frames:v", "1", str(output_path),
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=60)
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            return RenderResult(self.name, error=str(e))
        if result.returncode != 0:
            return RenderResult(self.name, error=result.stderr.strip() or "ffmpeg failed")
        return RenderResult(self.name, path=Path(output_path))


def default_renderers(background_image: Optional[str] = None, ffmpeg_path: str = "ffmpeg") -> list[BackgroundRenderer]:
    renderers: list[BackgroundRenderer] = []
    if background_image:
        renderers.append(StaticImageRenderer(background_image))
    renderers.append(GradientRenderer())
    renderers.append(FFmpegColorRenderer(ffmpeg_path))
    return renderers


def render_background(
    renderers: list[BackgroundRenderer],
    output_path: Path,
    width: int = 1280,
    height: int = 720,
    title: str = "",
) -> RenderResult:
    """Try each backend in order and return the first success.

    Raises:
        ExternalServiceError: If every backend fails.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    failures = []
    for renderer in renderers:
        result = renderer.try_render(output_path, width, height, title)
        if result.ok:
            if failures:
                logger.warning("Background rendered by %s after %d failed backend(s)", result.backend, len(failures))
            return result
        logger.warning("Background backend %s failed: %s", result.backend, result.error)
        failures.append(f"{result.backend}: {result.error}")

    raise ExternalServiceError(
        "Could not render a background image",
        diagnostic="; ".join(failures) or "no backends configured",
    )
