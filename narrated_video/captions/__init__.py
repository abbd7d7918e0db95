"""Caption reconstruction and subtitle emission."""

from .ass import format_ass_time, karaoke_text, render_ass, write_ass
from .lines import CaptionLineBuilder, build_caption_lines, max_concurrent_lines
from .reconcile import ReconcileStats, reconcile

__all__ = [
    "CaptionLineBuilder",
    "ReconcileStats",
    "build_caption_lines",
    "format_ass_time",
    "karaoke_text",
    "max_concurrent_lines",
    "reconcile",
    "render_ass",
    "write_ass",
]
