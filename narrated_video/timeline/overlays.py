"""Turn a timeline and its side-data into overlay events."""

import logging
from dataclasses import replace
from typing import Optional

from ..config import OverlayConfig
from ..models import (
    CollectibleSnapshot,
    OverlayEvent,
    OverlayKind,
    PriceMovement,
    PriceSnapshot,
    Sentiment,
    Timeline,
    Window,
)

logger = logging.getLogger(__name__)

SENTIMENT_LABELS = {
    Sentiment.BULLISH: "Market Sentiment: Bullish",
    Sentiment.BEARISH: "Market Sentiment: Bearish",
    Sentiment.NEUTRAL: "Market Sentiment: Neutral",
}


def format_price(price: float) -> str:
    """Format a price with precision that suits its magnitude."""
    if price >= 1000:
        return f"${price:,.0f}"
    if price >= 1:
        return f"${price:,.2f}"
    return f"${price:.4f}"


def format_change(change: float) -> str:
    return f"{change:+.2f}%"


def _price_row(movement: PriceMovement) -> dict:
    return {
        "symbol": movement.symbol,
        "name": movement.name,
        "price": format_price(movement.price),
        "change": format_change(movement.change_24h),
        "direction": "up" if movement.change_24h >= 0 else "down",
    }


def split_window(window: Window, parts: int) -> list[Window]:
    """Split a window into ``parts`` equal, touching sub-windows."""
    if parts <= 0:
        return []
    step = window.duration / parts
    return [
        Window(
            start=window.start + i * step,
            end=window.end if i == parts - 1 else window.start + (i + 1) * step,
            label=window.label,
        )
        for i in range(parts)
    ]


class OverlayPlanner:
    """Builds overlay events for each visual channel."""

    def __init__(self, config: OverlayConfig | None = None):
        self.config = config or OverlayConfig()

    def _event(self, kind: OverlayKind, start: float, end: float, payload: dict) -> OverlayEvent:
        half = max(end - start, 0.0) / 2
        return OverlayEvent(
            kind=kind,
            start=start,
            end=end,
            fade_in=min(self.config.fade_in, half),
            fade_out=min(self.config.fade_out, half),
            payload=payload,
        )

    def sentiment_events(self, timeline: Timeline, prices: Optional[PriceSnapshot]) -> list[OverlayEvent]:
        if prices is None or timeline.price_window is None:
            return []
        window = timeline.price_window
        return [
            self._event(
                OverlayKind.SENTIMENT,
                window.start,
                window.end,
                {"sentiment": prices.sentiment.value, "text": SENTIMENT_LABELS[prices.sentiment]},
            )
        ]

    def price_events(self, timeline: Timeline, prices: Optional[PriceSnapshot]) -> list[OverlayEvent]:
        """Gainers then losers, each page taking an equal share of the price window."""
        if prices is None or prices.is_empty or timeline.price_window is None:
            return []

        pages = []
        if prices.winners:
            pages.append(("Top Gainers", prices.winners))
        if prices.losers:
            pages.append(("Top Losers", prices.losers))

        events = []
        for (heading, movements), slot in zip(pages, split_window(timeline.price_window, len(pages))):
            rows = [_price_row(m) for m in movements[: self.config.rows_per_page]]
            events.append(self._event(OverlayKind.PRICE_ROW, slot.start, slot.end, {"heading": heading, "rows": rows}))
        return events

    def collectible_events(
        self, timeline: Timeline, collectibles: Optional[CollectibleSnapshot]
    ) -> list[OverlayEvent]:
        if collectibles is None or collectibles.is_empty or timeline.collectible_window is None:
            return []

        per_page = self.config.rows_per_page
        items = collectibles.collections
        pages = [items[i:i + per_page] for i in range(0, len(items), per_page)]

        events = []
        for page, slot in zip(pages, split_window(timeline.collectible_window, len(pages))):
            rows = [
                {
                    "name": c.name,
                    "floor": f"{c.floor_price:.3f} ETH",
                    "change": format_change(c.change_24h),
                    "direction": "up" if c.change_24h >= 0 else "down",
                }
                for c in page
            ]
            events.append(
                self._event(OverlayKind.COLLECTIBLE_ROW, slot.start, slot.end, {"heading": "NFT Floor Prices", "rows": rows})
            )
        return events

    def topic_events(self, timeline: Timeline) -> list[OverlayEvent]:
        return [
            self._event(OverlayKind.TOPIC_TITLE, topic.start, topic.end, {"title": topic.title})
            for topic in timeline.topic_windows
        ]

    def ticker_events(self, timeline: Timeline, prices: Optional[PriceSnapshot]) -> list[OverlayEvent]:
        if prices is None or not prices.movements:
            return []
        return [
            OverlayEvent(
                kind=OverlayKind.TICKER_CYCLE,
                start=0.0,
                end=timeline.total_duration,
                fade_in=0.0,
                fade_out=0.0,
                payload={"symbols": [m.symbol for m in prices.movements]},
            )
        ]

    def plan(
        self,
        timeline: Timeline,
        prices: Optional[PriceSnapshot] = None,
        collectibles: Optional[CollectibleSnapshot] = None,
    ) -> list[OverlayEvent]:
        """All overlay events for one video, collision-free per channel."""
        events = [
            *self.sentiment_events(timeline, prices),
            *self.price_events(timeline, prices),
            *self.collectible_events(timeline, collectibles),
            *self.topic_events(timeline),
            *self.ticker_events(timeline, prices),
        ]
        return resolve_collisions(events)


def resolve_collisions(events: list[OverlayEvent]) -> list[OverlayEvent]:
    """Make events of the same kind non-overlapping.

    The earlier event is trimmed to end where the later one starts. When both
    start together, the later one is shifted to begin after the earlier one
    instead, keeping its length.

    Returns:
        Events sorted by start time.
    """
    by_kind: dict[OverlayKind, list[OverlayEvent]] = {}
    for event in events:
        by_kind.setdefault(event.kind, []).append(event)

    resolved: list[OverlayEvent] = []
    for kind, group in by_kind.items():
        group.sort(key=lambda e: (e.start, e.end))
        kept: list[OverlayEvent] = []
        for event in group:
            if kept and kept[-1].end > event.start:
                previous = kept[-1]
                if event.start > previous.start:
                    kept[-1] = replace(previous, end=event.start)
                else:
                    length = event.end - event.start
                    event = replace(event, start=previous.end, end=previous.end + length)
                logger.debug("Resolved %s collision at %.2fs", kind.value, event.start)
            kept.append(event)
        resolved.extend(kept)

    resolved.sort(key=lambda e: (e.start, e.kind.value))
    return resolved


def plan_overlays(
    timeline: Timeline,
    prices: Optional[PriceSnapshot] = None,
    collectibles: Optional[CollectibleSnapshot] = None,
    config: OverlayConfig | None = None,
) -> list[OverlayEvent]:
    return OverlayPlanner(config).plan(timeline, prices, collectibles)
