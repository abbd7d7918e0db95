"""
Scrolling price ticker.

Items are laid out left to right with widths estimated from character count.
Several identical cycles are placed back to back and the whole strip moves at
one constant speed, wrapping every ``cycle_width`` pixels, so the band loops
without a visible seam.
"""

from dataclasses import dataclass

from ..config import OverlayConfig, TickerConfig
from ..models import PriceMovement, TickerItem, TickerLayout, TickerSegment
from ..timeline.overlays import format_change, format_price


def text_width(text: str, font_size: int, char_width_ratio: float) -> float:
    """Estimated rendered width of ``text`` in pixels."""
    return len(text) * font_size * char_width_ratio


def build_ticker_items(
    movements: list[PriceMovement],
    ticker: TickerConfig | None = None,
    overlays: OverlayConfig | None = None,
) -> list[TickerItem]:
    """One item per movement: neutral ``SYM $price`` then the signed change.

    Only the change segment carries the positive or negative colour.
    """
    ticker = ticker or TickerConfig()
    overlays = overlays or OverlayConfig()

    items = []
    for movement in movements:
        label = f"{movement.symbol} {format_price(movement.price)} "
        change = format_change(movement.change_24h)
        change_color = overlays.positive_color if movement.change_24h >= 0 else overlays.negative_color
        items.append(
            TickerItem(
                symbol=movement.symbol,
                segments=(
                    TickerSegment(label, overlays.neutral_color,
                                  text_width(label, ticker.font_size, ticker.char_width_ratio)),
                    TickerSegment(change, change_color,
                                  text_width(change, ticker.font_size, ticker.char_width_ratio)),
                ),
            )
        )
    return items


def layout_ticker(items: list[TickerItem], ticker: TickerConfig | None = None) -> TickerLayout:
    """Cumulative offsets of each item within one cycle.

    Every item is followed by a separator, including the last one, so that
    the next cycle starts exactly one separator after it.
    """
    ticker = ticker or TickerConfig()
    separator_width = text_width(ticker.separator, ticker.font_size, ticker.char_width_ratio)

    offsets = []
    cursor = 0.0
    for item in items:
        offsets.append(cursor)
        cursor += item.width + separator_width

    return TickerLayout(
        items=tuple(items),
        offsets=tuple(offsets),
        separator_width=separator_width,
        cycle_width=cursor,
    )


@dataclass(frozen=True)
class PlacedSegment:
    """A ticker segment at a fixed position on the unscrolled strip."""

    text: str
    color: str
    x: float
    cycle: int


def place_cycles(layout: TickerLayout, cycles: int = 3, separator: str = "   |   ") -> list[PlacedSegment]:
    """Position every segment and separator for ``cycles`` consecutive cycles."""
    placed = []
    for cycle in range(cycles):
        base = cycle * layout.cycle_width
        for item, offset in zip(layout.items, layout.offsets):
            x = base + offset
            for segment in item.segments:
                placed.append(PlacedSegment(segment.text, segment.color, x, cycle))
                x += segment.width
            placed.append(PlacedSegment(separator, "gray", x, cycle))
    return placed


def scroll_x_expression(x: float, cycle_width: float, speed: float, origin: float = 0.0) -> str:
    """Compositor expression for a segment's horizontal position at time ``t``."""
    return f"{origin + x:.2f}-mod(t*{speed:g},{cycle_width:.2f})"


def scroll_offset(t: float, cycle_width: float, speed: float) -> float:
    """How far the strip has scrolled at time ``t``; mirrors the expression."""
    if cycle_width <= 0:
        return 0.0
    return (t * speed) % cycle_width
