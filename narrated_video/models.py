"""
Data models for narrated video synthesis.

Script chunks, timed words, caption lines, overlay events and the timeline all
live for a single job. Market and collectible snapshots are the structured
side-data the overlays are built from.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field


@dataclass
class ScriptChunk:
    """A speech-service-safe piece of the narration script."""

    index: int
    text: str
    audio_path: Optional[Path] = None


@dataclass(frozen=True)
class TimedWord:
    """A recognized (or estimated) word with its position in the audio."""

    text: str
    start: float
    end: float
    original_text: Optional[str] = None

    @property
    def display_text(self) -> str:
        """The punctuation-restored form when available."""
        return self.original_text if self.original_text is not None else self.text

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_dict(self) -> dict:
        data = {"text": self.text, "start": self.start, "end": self.end}
        if self.original_text is not None:
            data["original_text"] = self.original_text
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "TimedWord":
        return cls(
            text=data["text"],
            start=float(data["start"]),
            end=float(data["end"]),
            original_text=data.get("original_text"),
        )


@dataclass(frozen=True)
class CaptionLine:
    """A finalized caption line. ``end`` is always greater than ``start``."""

    start: float
    end: float
    text: str
    words: tuple[TimedWord, ...] = ()

    def is_visible_at(self, t: float) -> bool:
        return self.start <= t < self.end

    def to_dict(self) -> dict:
        return {
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "words": [w.to_dict() for w in self.words],
        }


class OverlayKind(str, Enum):
    """Visual channels. Events of one kind never overlap in time."""

    SENTIMENT = "sentiment"
    PRICE_ROW = "price_row"
    COLLECTIBLE_ROW = "collectible_row"
    TOPIC_TITLE = "topic_title"
    TICKER_CYCLE = "ticker_cycle"


@dataclass(frozen=True)
class OverlayEvent:
    """A timed on-screen element."""

    kind: OverlayKind
    start: float
    end: float
    fade_in: float = 0.5
    fade_out: float = 0.5
    payload: dict[str, Any] = field(default_factory=dict)

    def overlaps(self, other: "OverlayEvent") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class Window:
    """A half-open ``[start, end)`` band of the timeline."""

    start: float
    end: float
    label: str = ""

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass
class ScheduledTopic:
    """A topic banner placed on the timeline."""

    title: str
    start: float
    end: float
    ideal_start: float
    word_index: Optional[int] = None

    @property
    def matched(self) -> bool:
        return self.word_index is not None


@dataclass
class Timeline:
    """Overlay bands over the narrated audio."""

    intro_end: float
    total_duration: float
    price_window: Optional[Window] = None
    collectible_window: Optional[Window] = None
    topic_windows: list[ScheduledTopic] = field(default_factory=list)
    outro_start: Optional[float] = None
    notes: list[str] = field(default_factory=list)

    @property
    def main_band(self) -> Window:
        """The band topic banners are packed into."""
        start = self.price_window.end if self.price_window else self.intro_end
        if self.collectible_window:
            end = self.collectible_window.start
        elif self.outro_start is not None:
            end = self.outro_start
        else:
            end = self.total_duration
        return Window(start=start, end=max(start, end), label="main")

    def to_dict(self) -> dict:
        def _window(w: Optional[Window]) -> Optional[dict]:
            return None if w is None else {"start": w.start, "end": w.end}

        return {
            "intro_end": self.intro_end,
            "total_duration": self.total_duration,
            "price_window": _window(self.price_window),
            "collectible_window": _window(self.collectible_window),
            "topics": [
                {
                    "title": t.title,
                    "start": t.start,
                    "end": t.end,
                    "ideal_start": t.ideal_start,
                    "word_index": t.word_index,
                }
                for t in self.topic_windows
            ],
            "notes": list(self.notes),
        }


@dataclass(frozen=True)
class TickerSegment:
    """A coloured run of text within a ticker item."""

    text: str
    color: str
    width: float


@dataclass(frozen=True)
class TickerItem:
    """One symbol in the ticker: a neutral label and a sign-coloured change."""

    symbol: str
    segments: tuple[TickerSegment, ...]

    @property
    def width(self) -> float:
        return sum(s.width for s in self.segments)


@dataclass(frozen=True)
class TickerLayout:
    """Cumulative placement of ticker items within one cycle."""

    items: tuple[TickerItem, ...]
    offsets: tuple[float, ...]
    separator_width: float
    cycle_width: float


# ---------------------------------------------------------------------------
# Side-data snapshots
# ---------------------------------------------------------------------------


class Sentiment(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class PriceMovement:
    """24h market movement of a single asset."""

    symbol: str
    name: str
    price: float
    change_24h: float

    @classmethod
    def from_dict(cls, data: dict) -> "PriceMovement":
        return cls(
            symbol=str(data["symbol"]).upper(),
            name=data.get("name", data["symbol"]),
            price=float(data.get("price", 0.0)),
            change_24h=float(data.get("change_24h", 0.0)),
        )


@dataclass
class PriceSnapshot:
    """Top movers and overall market mood."""

    winners: list[PriceMovement] = field(default_factory=list)
    losers: list[PriceMovement] = field(default_factory=list)
    sentiment: Sentiment = Sentiment.NEUTRAL
    movements: list[PriceMovement] = field(default_factory=list)

    @classmethod
    def from_movements(cls, movements: list[PriceMovement], top_n: int = 5) -> "PriceSnapshot":
        winners = sorted((m for m in movements if m.change_24h > 0), key=lambda m: -m.change_24h)
        losers = sorted((m for m in movements if m.change_24h < 0), key=lambda m: m.change_24h)

        sentiment = Sentiment.NEUTRAL
        if movements:
            average = sum(m.change_24h for m in movements) / len(movements)
            if average > 2:
                sentiment = Sentiment.BULLISH
            elif average < -2:
                sentiment = Sentiment.BEARISH

        return cls(
            winners=winners[:top_n],
            losers=losers[:top_n],
            sentiment=sentiment,
            movements=list(movements),
        )

    @property
    def is_empty(self) -> bool:
        return not self.winners and not self.losers


@dataclass(frozen=True)
class CollectibleFloor:
    """Floor price of a collectible collection."""

    name: str
    floor_price: float
    change_24h: float


@dataclass
class CollectibleSnapshot:
    """Collections with the largest floor-price moves."""

    collections: list[CollectibleFloor] = field(default_factory=list)

    @classmethod
    def from_collections(cls, collections: list[CollectibleFloor], top_n: int = 5) -> "CollectibleSnapshot":
        priced = [c for c in collections if c.floor_price > 0]
        priced.sort(key=lambda c: abs(c.change_24h), reverse=True)
        return cls(collections=priced[:top_n])

    @property
    def is_empty(self) -> bool:
        return not self.collections


@dataclass(frozen=True)
class Topic:
    """A named topic segment of the narration."""

    title: str
    summary: str = ""


# ---------------------------------------------------------------------------
# Job request
# ---------------------------------------------------------------------------


class TopicInput(BaseModel):
    title: str
    summary: str = ""


class PriceInput(BaseModel):
    symbol: str
    name: str = ""
    price: float = 0.0
    change_24h: float = 0.0


class CollectibleInput(BaseModel):
    name: str
    floor_price: float = 0.0
    change_24h: float = 0.0


class VideoRequest(BaseModel):
    """Everything needed to synthesize one narrated video."""

    script: str
    title: str = "Untitled"
    description: str = ""
    topics: list[TopicInput] = Field(default_factory=list)
    prices: list[PriceInput] = Field(default_factory=list)
    collectibles: list[CollectibleInput] = Field(default_factory=list)
    background_image: Optional[str] = None

    def topic_list(self) -> list[Topic]:
        return [Topic(title=t.title, summary=t.summary) for t in self.topics]

    def price_snapshot(self) -> Optional[PriceSnapshot]:
        if not self.prices:
            return None
        movements = [
            PriceMovement(
                symbol=p.symbol.upper(),
                name=p.name or p.symbol,
                price=p.price,
                change_24h=p.change_24h,
            )
            for p in self.prices
        ]
        return PriceSnapshot.from_movements(movements)

    def collectible_snapshot(self) -> Optional[CollectibleSnapshot]:
        if not self.collectibles:
            return None
        snapshot = CollectibleSnapshot.from_collections(
            [
                CollectibleFloor(name=c.name, floor_price=c.floor_price, change_24h=c.change_24h)
                for c in self.collectibles
            ]
        )
        return None if snapshot.is_empty else snapshot
