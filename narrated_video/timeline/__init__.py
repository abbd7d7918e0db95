"""Overlay timeline: scheduling, overlay events and chapter markers."""

from .chapters import format_chapters, format_timestamp, update_description
from .overlays import OverlayPlanner, plan_overlays, resolve_collisions
from .scheduler import TimelineScheduler, build_timeline, locate_topic

__all__ = [
    "OverlayPlanner",
    "TimelineScheduler",
    "build_timeline",
    "format_chapters",
    "format_timestamp",
    "locate_topic",
    "plan_overlays",
    "resolve_collisions",
    "update_description",
]
