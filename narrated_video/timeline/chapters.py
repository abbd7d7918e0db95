"""Chapter timestamps for the video description."""

import re

from ..models import Timeline

TIMESTAMP_LINE = re.compile(r"^\s*\d{1,2}:\d{2}(?::\d{2})?\s*-\s*.+$", re.MULTILINE)
REFERENCE_SECTION = re.compile(r"\n\s*\n[^\n]*REFERENCE LINKS.*$", re.DOTALL)


def format_timestamp(seconds: float) -> str:
    """``M:SS``, or ``H:MM:SS`` for videos of an hour or more."""
    total = int(max(seconds, 0))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def chapter_entries(timeline: Timeline) -> list[tuple[float, str]]:
    """Chapter start times and labels, sorted by time."""
    entries: list[tuple[float, str]] = []
    if timeline.price_window:
        entries.append((timeline.price_window.start, "Market Update"))
    for topic in timeline.topic_windows:
        entries.append((topic.start, topic.title))
    if timeline.collectible_window:
        entries.append((timeline.collectible_window.start, "NFT Floor Prices"))
    entries.sort(key=lambda e: e[0])
    return [(0.0, "Intro"), *entries, (timeline.total_duration, "Outro")]


def format_chapters(timeline: Timeline) -> str:
    return "\n".join(f"{format_timestamp(t)} - {label}" for t, label in chapter_entries(timeline))


def update_description(description: str, timeline: Timeline) -> str:
    """Replace any chapter block in ``description`` with a fresh one.

    Existing ``M:SS - ...`` lines are removed. A trailing reference-links
    section stays at the end, after the chapters.
    """
    references = ""
    match = REFERENCE_SECTION.search(description)
    if match:
        references = match.group(0)
        description = description[: match.start()]

    body = TIMESTAMP_LINE.sub("", description)
    body = re.sub(r"\n{3,}", "\n\n", body).strip()

    chapters = format_chapters(timeline)
    updated = f"{body}\n\n{chapters}" if body else chapters
    return updated + references
