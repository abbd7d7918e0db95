"""Narrated video synthesis: speech, captions, timed overlays and compositing."""

__version__ = "0.1.0"
