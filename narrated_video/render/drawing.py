"""
Draw instructions and the layered compositing instruction set.

Overlay events become ``drawbox``/``drawtext`` commands gated to their
``[start, end)`` window with a linear fade envelope. Layers are stacked in a
fixed order: background, overlay boxes and text, ticker, then subtitles on
top.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..config import Config, OverlayConfig, TickerConfig, VideoConfig
from ..models import OverlayEvent, OverlayKind, PriceSnapshot
from .escape import drawtext_value, escape_filter_path
from .ticker import build_ticker_items, layout_ticker, place_cycles, scroll_x_expression, text_width


def enable_expression(start: float, end: float) -> str:
    """True only within ``[start, end)``."""
    return f"gte(t,{start:.3f})*lt(t,{end:.3f})"


def alpha_expression(start: float, end: float, fade_in: float, fade_out: float) -> str:
    """Linear fade in from ``start`` and out towards ``end``, clamped to [0, 1]."""
    parts = ["1"]
    if fade_in > 0:
        parts.append(f"(t-{start:.3f})/{fade_in:.3f}")
    if fade_out > 0:
        parts.append(f"({end:.3f}-t)/{fade_out:.3f}")
    ramp = parts[0]
    for part in parts[1:]:
        ramp = f"min({ramp},{part})"
    return f"max(0,{ramp})"


def alpha_at(t: float, start: float, end: float, fade_in: float, fade_out: float) -> float:
    """Opacity at time ``t``; matches :func:`alpha_expression` inside the window."""
    if not start <= t < end:
        return 0.0
    alpha = 1.0
    if fade_in > 0:
        alpha = min(alpha, (t - start) / fade_in)
    if fade_out > 0:
        alpha = min(alpha, (end - t) / fade_out)
    return max(0.0, alpha)


@dataclass
class DrawText:
    """A timed text layer."""

    text: str
    x: str
    y: str
    font_size: int
    color: str
    start: float
    end: float
    fade_in: float = 0.0
    fade_out: float = 0.0
    font_file: Optional[str] = None

    def to_filter(self) -> str:
        options = [f"text={drawtext_value(self.text)}"]
        if self.font_file:
            options.append(f"fontfile={escape_filter_path(self.font_file)}")
        options += [
            f"fontsize={self.font_size}",
            f"fontcolor={self.color}",
            f"x='{self.x}'",
            f"y='{self.y}'",
            f"alpha='{alpha_expression(self.start, self.end, self.fade_in, self.fade_out)}'",
            f"enable='{enable_expression(self.start, self.end)}'",
        ]
        return "drawtext=" + ":".join(options)


@dataclass
class DrawBox:
    """A timed filled rectangle behind overlay text.

    ``drawbox`` colours cannot vary over time, so a fading box is drawn as a
    short chain of boxes whose opacity steps along the same envelope as
    :func:`alpha_at`.
    """

    x: int
    y: int
    width: int
    height: int
    color: str
    start: float
    end: float
    fade_in: float = 0.0
    fade_out: float = 0.0

    FADE_STEPS = 4

    def _base(self) -> tuple[str, float]:
        name, _, opacity = self.color.partition("@")
        return name, float(opacity) if opacity else 1.0

    def _ramp(self, lo: float, hi: float) -> list[float]:
        step = (hi - lo) / self.FADE_STEPS
        return [lo + step * k for k in range(1, self.FADE_STEPS + 1)]

    def segments(self) -> list[tuple[float, float, float]]:
        """``(start, end, opacity)`` pieces covering ``[start, end)``."""
        _, base = self._base()
        if self.fade_in <= 0 and self.fade_out <= 0:
            return [(self.start, self.end, base)]

        rise_end = self.start + max(self.fade_in, 0.0)
        fall_start = self.end - max(self.fade_out, 0.0)
        if rise_end > fall_start:
            share = max(self.fade_in, 0.0) / (max(self.fade_in, 0.0) + max(self.fade_out, 0.0))
            rise_end = fall_start = self.start + (self.end - self.start) * share

        bounds = [self.start]
        if rise_end > self.start:
            bounds += self._ramp(self.start, rise_end)
        if fall_start > bounds[-1]:
            bounds.append(fall_start)
        if self.end > fall_start:
            bounds += self._ramp(fall_start, self.end)
        bounds[-1] = self.end

        pieces = []
        for lo, hi in zip(bounds, bounds[1:]):
            if hi > lo:
                opacity = alpha_at((lo + hi) / 2, self.start, self.end, self.fade_in, self.fade_out)
                pieces.append((lo, hi, base * opacity))
        return pieces

    def to_filter(self) -> str:
        name, _ = self._base()
        return ",".join(
            f"drawbox=x={self.x}:y={self.y}:w={self.width}:h={self.height}:"
            f"color={name}@{opacity:.3f}:t=fill:enable='{enable_expression(lo, hi)}'"
            for lo, hi, opacity in self.segments()
        )


class OverlayRenderer:
    """Lays out overlay events as draw commands."""

    MARGIN = 60
    PANEL_COLOR = "black@0.55"

    def __init__(self, config: OverlayConfig | None = None, width: int = 1280, height: int = 720):
        self.config = config or OverlayConfig()
        self.width = width
        self.height = height

    def _text(self, event: OverlayEvent, text: str, x: str, y: str, size: int, color: str) -> DrawText:
        return DrawText(
            text=text,
            x=x,
            y=y,
            font_size=size,
            color=color,
            start=event.start,
            end=event.end,
            fade_in=event.fade_in,
            fade_out=event.fade_out,
            font_file=self.config.font_file,
        )

    def _box(self, event: OverlayEvent, x: int, y: int, width: int, height: int, color: str) -> DrawBox:
        return DrawBox(x, y, width, height, color, event.start, event.end, event.fade_in, event.fade_out)

    def _direction_color(self, direction: str) -> str:
        return self.config.positive_color if direction == "up" else self.config.negative_color

    def render(self, event: OverlayEvent) -> list[DrawText | DrawBox]:
        if event.kind == OverlayKind.SENTIMENT:
            return self._sentiment(event)
        if event.kind in (OverlayKind.PRICE_ROW, OverlayKind.COLLECTIBLE_ROW):
            return self._rows(event)
        if event.kind == OverlayKind.TOPIC_TITLE:
            return self._topic(event)
        # Ticker cycles are rendered as one strip by TickerRenderer.
        return []

    def _sentiment(self, event: OverlayEvent) -> list[DrawText | DrawBox]:
        sentiment = event.payload.get("sentiment", "neutral")
        color = {
            "bullish": self.config.positive_color,
            "bearish": self.config.negative_color,
        }.get(sentiment, self.config.neutral_color)
        size = self.config.row_font_size
        return [
            self._box(event, 0, 20, self.width, size * 2, self.PANEL_COLOR),
            self._text(event, event.payload["text"], "(w-text_w)/2", str(20 + size // 2), size, color),
        ]

    def _rows(self, event: OverlayEvent) -> list[DrawText | DrawBox]:
        rows = event.payload.get("rows", [])
        title_size = self.config.title_font_size
        row_size = self.config.row_font_size
        line_height = int(row_size * 1.5)
        top = 100
        panel_height = title_size + 30 + line_height * len(rows)

        commands: list[DrawText | DrawBox] = [
            self._box(event, self.MARGIN - 20, top - 20, self.width // 2, panel_height + 20, self.PANEL_COLOR),
            self._text(event, event.payload.get("heading", ""), str(self.MARGIN), str(top),
                       title_size, self.config.accent_color),
        ]
        for i, row in enumerate(rows):
            y = top + title_size + 20 + i * line_height
            label = f"{row.get('symbol', row.get('name', ''))}  {row.get('price', row.get('floor', ''))}"
            commands.append(self._text(event, label, str(self.MARGIN), str(y), row_size, self.config.neutral_color))
            change_x = self.MARGIN + int(text_width(label + "  ", row_size, 0.6))
            commands.append(
                self._text(event, row["change"], str(change_x), str(y), row_size,
                           self._direction_color(row.get("direction", "up")))
            )
        return commands

    def _topic(self, event: OverlayEvent) -> list[DrawText | DrawBox]:
        size = self.config.title_font_size
        return [
            self._box(event, 0, 40, self.width, size * 2, self.PANEL_COLOR),
            self._box(event, 0, 40, 12, size * 2, self.config.accent_color),
            self._text(event, event.payload["title"], "(w-text_w)/2", str(40 + size // 2), size,
                       self.config.neutral_color),
        ]


class TickerRenderer:
    """Renders the scrolling price band at the bottom of the frame."""

    def __init__(self, config: TickerConfig | None = None, overlays: OverlayConfig | None = None,
                 width: int = 1280, height: int = 720):
        self.config = config or TickerConfig()
        self.overlays = overlays or OverlayConfig()
        self.width = width
        self.height = height

    def render(self, prices: PriceSnapshot, start: float, end: float) -> list[DrawText | DrawBox]:
        items = build_ticker_items(prices.movements, self.config, self.overlays)
        layout = layout_ticker(items, self.config)
        if layout.cycle_width <= 0:
            return []

        band_top = self.height - self.config.band_height
        text_y = band_top + (self.config.band_height - self.config.font_size) // 2
        commands: list[DrawText | DrawBox] = [
            DrawBox(0, band_top, self.width, self.config.band_height, self.config.band_color, start, end)
        ]
        for placed in place_cycles(layout, self.config.cycles, self.config.separator):
            commands.append(
                DrawText(
                    text=placed.text,
                    x=scroll_x_expression(placed.x, layout.cycle_width, self.config.speed),
                    y=str(text_y),
                    font_size=self.config.font_size,
                    color=placed.color,
                    start=start,
                    end=end,
                    font_file=self.overlays.font_file,
                )
            )
        return commands


@dataclass
class CompositorInstructions:
    """Everything the compositor needs to produce the final video."""

    background: Path
    audio: Path
    subtitles: Optional[Path] = None
    overlays: list[DrawText | DrawBox] = field(default_factory=list)
    ticker: list[DrawText | DrawBox] = field(default_factory=list)
    video: VideoConfig = field(default_factory=VideoConfig)

    def layers(self) -> list[str]:
        """Filter chain in stacking order, bottom first."""
        w, h = self.video.width, self.video.height
        chain = [
            f"scale={w}:{h}:force_original_aspect_ratio=decrease",
            f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2",
        ]
        chain += [command.to_filter() for command in self.overlays]
        chain += [command.to_filter() for command in self.ticker]
        if self.subtitles is not None:
            chain.append(f"subtitles={escape_filter_path(self.subtitles)}")
        chain.append("format=yuv420p")
        return chain

    def filter_graph(self) -> str:
        return "[0:v]" + ",\n".join(self.layers()) + "[vout]"

    def write_filter_script(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.filter_graph(), encoding="utf-8")
        return path

    def to_args(self, output_path: Path, filter_script: Path, ffmpeg_path: str = "ffmpeg") -> list[str]:
        v = self.video
        return [
            ffmpeg_path, "-y",
            "-loop", "1", "-framerate", str(v.fps), "-i", str(self.background),
            "-i", str(self.audio),
            "-filter_complex_script", str(filter_script),
            "-map", "[vout]", "-map", "1:a",
            "-c:v", "libx264", "-preset", v.preset, "-crf", str(v.crf), "-tune", "stillimage",
            "-c:a", "aac", "-b:a", v.audio_bitrate, "-ar", str(v.audio_sample_rate),
            "-shortest",
            str(output_path),
        ]


def build_instructions(
    config: Config,
    background: Path,
    audio: Path,
    subtitles: Optional[Path],
    events: list[OverlayEvent],
    prices: Optional[PriceSnapshot] = None,
) -> CompositorInstructions:
    """Assemble the layered instruction set for one video."""
    width, height = config.video.width, config.video.height
    renderer = OverlayRenderer(config.overlays, width, height)
    overlays: list[DrawText | DrawBox] = []
    for event in events:
        overlays.extend(renderer.render(event))

    ticker: list[DrawText | DrawBox] = []
    ticker_event = next((e for e in events if e.kind == OverlayKind.TICKER_CYCLE), None)
    if ticker_event is not None and prices is not None:
        ticker = TickerRenderer(config.ticker, config.overlays, width, height).render(
            prices, ticker_event.start, ticker_event.end
        )

    return CompositorInstructions(
        background=background,
        audio=audio,
        subtitles=subtitles,
        overlays=overlays,
        ticker=ticker,
        video=config.video,
    )
