"""Group timed words into caption lines with a hard cap on visible lines.

Lines are built as mutable drafts because opening a new line may shorten an
earlier one. Drafts become immutable :class:`CaptionLine` records only once
every end time is fixed.
"""

import re
from dataclasses import dataclass, field

from ..config import CaptionConfig
from ..models import CaptionLine, TimedWord

SENTENCE_END = re.compile(r"[.!?][\"')\]]*$")
PUNCTUATION_SPACING = re.compile(r"\s+([.,!?;:])")

# Shortest visible span left on a line that is cut back for the cap.
MIN_VISIBLE_SECONDS = 0.05


def ends_sentence(text: str) -> bool:
    return bool(SENTENCE_END.search(text.strip()))


def join_caption_words(words: list[TimedWord]) -> str:
    """Join display words with single spaces, keeping punctuation attached."""
    text = " ".join(w.display_text.strip() for w in words)
    return PUNCTUATION_SPACING.sub(r"\1", text)


@dataclass
class _LineDraft:
    start: float
    end: float
    words: list[TimedWord] = field(default_factory=list)

    def freeze(self) -> CaptionLine:
        return CaptionLine(
            start=self.start,
            end=self.end,
            text=join_caption_words(self.words),
            words=tuple(self.words),
        )


class CaptionLineBuilder:
    """Builds caption lines from reconciled words."""

    def __init__(
        self,
        max_words: int = 8,
        max_concurrent: int = 3,
        line_gap: float = 0.1,
        release_margin: float = 0.15,
        min_duration: float = 1.0,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if line_gap <= 0:
            raise ValueError("line_gap must be positive")
        self.max_words = max_words
        self.max_concurrent = max_concurrent
        self.line_gap = line_gap
        self.release_margin = release_margin
        self.min_duration = min_duration

    @classmethod
    def from_config(cls, config: CaptionConfig) -> "CaptionLineBuilder":
        return cls(
            max_words=config.max_words_per_line,
            max_concurrent=config.max_concurrent_lines,
            line_gap=config.line_gap,
            release_margin=config.release_margin,
            min_duration=config.min_line_duration,
        )

    def build(self, words: list[TimedWord]) -> list[CaptionLine]:
        """Group ``words`` into lines.

        A line closes after ``max_words`` words or on a word ending in
        ``.``, ``!`` or ``?``.
        """
        drafts: list[_LineDraft] = []
        current: list[TimedWord] = []

        for word in words:
            if not word.display_text.strip():
                continue
            current.append(word)
            if len(current) >= self.max_words or ends_sentence(word.display_text):
                self._close_line(current, drafts)
                current = []

        if current:
            self._close_line(current, drafts)

        return [draft.freeze() for draft in drafts]

    def _close_line(self, words: list[TimedWord], drafts: list[_LineDraft]) -> None:
        start = words[0].start
        if drafts:
            start = max(start, drafts[-1].start + self.line_gap)
        end = max(words[-1].end, start + self.min_duration)

        # Lines still on screen when the new one appears
        active = [d for d in drafts if d.end > start]
        while len(active) + 1 > self.max_concurrent:
            oldest = min(active, key=lambda d: d.start)
            floor = oldest.start + min(MIN_VISIBLE_SECONDS, (start - oldest.start) / 2)
            oldest.end = max(floor, start - self.release_margin)
            active.remove(oldest)

        drafts.append(_LineDraft(start=start, end=end, words=list(words)))


def build_caption_lines(words: list[TimedWord], config: CaptionConfig | None = None) -> list[CaptionLine]:
    """Build caption lines with the default or configured rules."""
    builder = CaptionLineBuilder.from_config(config or CaptionConfig())
    return builder.build(words)


def max_concurrent_lines(lines: list[CaptionLine]) -> int:
    """Largest number of lines visible at any single instant."""
    events = []
    for line in lines:
        events.append((line.start, 1))
        events.append((line.end, -1))
    # Ends sort before starts at the same instant: intervals are half-open.
    events.sort(key=lambda e: (e[0], e[1]))
    peak = visible = 0
    for _, delta in events:
        visible += delta
        peak = max(peak, visible)
    return peak
