"""
Timeline scheduling for overlays.

Maps the price, collectible and topic segments onto the narrated audio using
the position of keywords in the script as a proxy for when they are spoken.
Placement is best-effort; the no-overlap guarantee between topic banners is
not.
"""

import logging
import warnings
from typing import Optional

from ..captions.reconcile import normalize_token
from ..config import TimelineConfig
from ..errors import SchedulingInfeasible
from ..models import ScheduledTopic, Timeline, Topic, Window

logger = logging.getLogger(__name__)

# Smallest banner we are willing to show when topics are squeezed.
MIN_TITLE_SECONDS = 1.0


def script_words(script: str) -> list[str]:
    """Normalized script tokens, one per whitespace-separated word."""
    return [normalize_token(token) for token in script.split()]


def keyword_matches(word: str, keyword: str) -> bool:
    """A word matches a keyword exactly or as a prefix (``nft`` matches ``nfts``)."""
    return bool(word) and bool(keyword) and word.startswith(keyword)


def find_keyword_position(words: list[str], keywords: list[str], min_ratio: Optional[float] = None) -> Optional[int]:
    """Index of the first word matching any keyword.

    When ``min_ratio`` is given, only positions strictly beyond that fraction
    of the script are considered.
    """
    normalized = [normalize_token(k) for k in keywords]
    total = len(words)
    for i, word in enumerate(words):
        if min_ratio is not None and total and i / total <= min_ratio:
            continue
        if any(keyword_matches(word, k) for k in normalized):
            return i
    return None


def title_keywords(title: str) -> list[str]:
    """Keywords from the first three title words, ignoring short ones."""
    keywords = [normalize_token(w) for w in title.split()[:3]]
    return [k for k in keywords if len(k) > 2]


def locate_topic(title: str, words: list[str], window: int = 10) -> Optional[int]:
    """Find where a topic is first narrated.

    Prefers the first position where at least two title keywords appear
    within ``window`` words; falls back to the first single-keyword match.
    """
    keywords = title_keywords(title)
    if not keywords:
        return None

    if len(keywords) >= 2:
        for i, word in enumerate(words):
            if not any(keyword_matches(word, k) for k in keywords):
                continue
            span = words[i:i + window]
            found = {k for k in keywords if any(keyword_matches(w, k) for w in span)}
            if len(found) >= 2:
                return i

    for i, word in enumerate(words):
        if any(keyword_matches(word, k) for k in keywords):
            return i
    return None


class TimelineScheduler:
    """Computes the overlay timeline for one narrated video."""

    def __init__(self, config: TimelineConfig | None = None):
        self.config = config or TimelineConfig()

    def intro_end(self, duration: float) -> float:
        return min(self.config.intro_max_seconds, self.config.intro_ratio * duration)

    def outro_start(self, duration: float) -> float:
        return duration - min(self.config.outro_max_seconds, self.config.outro_ratio * duration)

    def price_window(self, duration: float, words: list[str], intro_end: float) -> Window:
        """Reserve the market-update band right after the intro.

        The start moves to where price keywords are first narrated when that
        is beyond ``price_keyword_ratio`` of the script, never before the
        intro ends. The window lasts ``price_window_seconds`` capped at
        ``price_cap_ratio`` of the duration.
        """
        cfg = self.config
        cap = cfg.price_cap_ratio * duration
        start = intro_end

        index = find_keyword_position(words, cfg.price_keywords)
        if index is not None and words:
            ratio = index / len(words)
            if ratio > cfg.price_keyword_ratio:
                start = max(intro_end, ratio * duration)

        start = min(start, max(intro_end, cap - cfg.price_min_window_seconds))
        end = min(start + cfg.price_window_seconds, cap)
        if end <= start:
            end = min(start + cfg.price_min_window_seconds, duration)
        return Window(start=start, end=end, label="prices")

    def collectible_window(self, duration: float, words: list[str], earliest: float) -> Optional[Window]:
        """Reserve the closing collectibles band.

        Sits in the final 30-45 seconds unless collectible keywords are
        narrated beyond ``collectible_keyword_ratio`` of the script, in which
        case it starts at that proportional position.
        """
        cfg = self.config
        if duration - earliest < MIN_TITLE_SECONDS:
            logger.warning("No room for collectibles after %.1fs of %.1fs", earliest, duration)
            return None

        length = min(cfg.collectible_max_seconds, max(cfg.collectible_min_seconds, 0.15 * duration))
        start = duration - length

        index = find_keyword_position(words, cfg.collectible_keywords, min_ratio=cfg.collectible_keyword_ratio)
        if index is not None and words:
            start = index / len(words) * duration

        start = max(earliest, min(start, duration - MIN_TITLE_SECONDS))
        end = min(start + length, duration)
        return Window(start=start, end=end, label="collectibles")

    def build(
        self,
        duration: float,
        script: str,
        topics: list[Topic],
        has_prices: bool = True,
        has_collectibles: bool = True,
    ) -> Timeline:
        """Compute all windows and topic banner slots."""
        if duration <= 0:
            raise ValueError(f"Audio duration must be positive, got {duration}")

        words = script_words(script)
        intro_end = self.intro_end(duration)
        price = self.price_window(duration, words, intro_end) if has_prices else None
        earliest = price.end if price else intro_end
        collectible = self.collectible_window(duration, words, earliest) if has_collectibles else None

        timeline = Timeline(
            intro_end=intro_end,
            total_duration=duration,
            price_window=price,
            collectible_window=collectible,
            outro_start=self.outro_start(duration),
        )

        band = timeline.main_band
        if band.duration <= 0:
            band = Window(start=intro_end, end=duration, label="main")
        timeline.topic_windows = self.schedule_topics(topics, words, duration, band, notes=timeline.notes)

        logger.info(
            "Timeline: duration=%.1fs intro=%.1fs prices=%s collectibles=%s topics=%d",
            duration, intro_end,
            f"{price.start:.1f}-{price.end:.1f}" if price else "none",
            f"{collectible.start:.1f}-{collectible.end:.1f}" if collectible else "none",
            len(timeline.topic_windows),
        )
        return timeline

    def schedule_topics(
        self,
        topics: list[Topic],
        words: list[str],
        duration: float,
        band: Window,
        notes: Optional[list[str]] = None,
    ) -> list[ScheduledTopic]:
        """Place one banner per topic inside ``band``.

        Each topic's ideal start is its narrated position as a fraction of the
        duration, clamped into the band. Topics without a keyword match are
        spread evenly. Banners are packed in ideal order with ``topic_gap``
        between them; when the rest no longer fit they are spread evenly over
        the remaining time. No topic is ever dropped.

        An overflow is reported as a :class:`SchedulingInfeasible` warning and,
        when ``notes`` is given, appended to it.
        """
        if not topics:
            return []

        cfg = self.config
        title_seconds = cfg.topic_title_seconds
        latest_start = max(band.start, band.end - title_seconds)
        count = len(topics)

        entries = []
        for i, topic in enumerate(topics):
            index = locate_topic(topic.title, words, cfg.keyword_window)
            if index is not None and words:
                ideal = index / len(words) * duration
            else:
                ideal = band.start + (i + 1) / (count + 1) * band.duration
            ideal = min(max(ideal, band.start), latest_start)
            entries.append((ideal, i, topic, index))
        entries.sort(key=lambda e: (e[0], e[1]))

        scheduled: list[ScheduledTopic] = []
        previous_end: Optional[float] = None
        for k, (ideal, _, topic, index) in enumerate(entries):
            start = ideal if previous_end is None else max(ideal, previous_end + cfg.topic_gap)
            end = start + title_seconds
            if end > band.end:
                message = (
                    f"{len(entries) - k} of {count} topic banners do not fit before "
                    f"{band.end:.1f}s; spreading them evenly"
                )
                logger.warning(message)
                warnings.warn(message, SchedulingInfeasible, stacklevel=2)
                if notes is not None:
                    notes.append(message)
                cursor = band.start if previous_end is None else previous_end + cfg.topic_gap
                spread = self._spread(entries[k:], cursor, band.end)
                if spread is None:
                    return self._spread(entries, band.start, band.end, force=True)
                scheduled.extend(spread)
                break
            scheduled.append(
                ScheduledTopic(title=topic.title, start=start, end=end, ideal_start=ideal, word_index=index)
            )
            previous_end = end

        return scheduled

    def _spread(self, entries, start: float, end: float, force: bool = False) -> Optional[list[ScheduledTopic]]:
        """Evenly space banners across ``[start, end)``.

        Returns None when the span cannot hold them with the configured gap,
        unless ``force`` is set, in which case gap and banner length shrink
        proportionally to the slot.
        """
        gap = self.config.topic_gap
        slot = (end - start) / len(entries)
        if slot - gap >= MIN_TITLE_SECONDS:
            title_seconds = min(self.config.topic_title_seconds, slot - gap)
        elif force:
            title_seconds = max(slot, 0.0) * 0.5
        else:
            return None

        return [
            ScheduledTopic(
                title=topic.title,
                start=start + j * slot,
                end=start + j * slot + title_seconds,
                ideal_start=ideal,
                word_index=index,
            )
            for j, (ideal, _, topic, index) in enumerate(entries)
        ]


def build_timeline(
    duration: float,
    script: str,
    topics: list[Topic],
    has_prices: bool = True,
    has_collectibles: bool = True,
    config: TimelineConfig | None = None,
) -> Timeline:
    """Convenience wrapper around :class:`TimelineScheduler`."""
    return TimelineScheduler(config).build(duration, script, topics, has_prices, has_collectibles)
