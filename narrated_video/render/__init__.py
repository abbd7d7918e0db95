"""Compositing: escaping, overlay drawing, ticker, background and ffmpeg."""

from .compositor import FFmpegCompositor
from .drawing import (
    CompositorInstructions,
    DrawBox,
    DrawText,
    OverlayRenderer,
    TickerRenderer,
    alpha_at,
    build_instructions,
)
from .escape import drawtext_value, escape_drawtext, escape_filter_path, unescape_drawtext
from .images import (
    BackgroundRenderer,
    FFmpegColorRenderer,
    GradientRenderer,
    RenderResult,
    StaticImageRenderer,
    default_renderers,
    render_background,
)
from .ticker import build_ticker_items, layout_ticker, place_cycles

__all__ = [
    "BackgroundRenderer",
    "CompositorInstructions",
    "DrawBox",
    "DrawText",
    "FFmpegColorRenderer",
    "FFmpegCompositor",
    "GradientRenderer",
    "OverlayRenderer",
    "RenderResult",
    "StaticImageRenderer",
    "TickerRenderer",
    "alpha_at",
    "build_instructions",
    "build_ticker_items",
    "default_renderers",
    "drawtext_value",
    "escape_drawtext",
    "escape_filter_path",
    "layout_ticker",
    "place_cycles",
    "render_background",
    "unescape_drawtext",
]
