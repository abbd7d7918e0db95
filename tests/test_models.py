"""Tests for data models and side-data snapshots."""

import pytest

from narrated_video.models import (
    CaptionLine,
    CollectibleFloor,
    CollectibleSnapshot,
    OverlayEvent,
    OverlayKind,
    PriceMovement,
    PriceSnapshot,
    ScheduledTopic,
    Sentiment,
    TimedWord,
    Timeline,
    VideoRequest,
    Window,
)


class TestTimedWord:
    """Tests for TimedWord."""

    def test_display_text_prefers_original(self):
        assert TimedWord("bitcoin", 0, 1, "Bitcoin,").display_text == "Bitcoin,"
        assert TimedWord("bitcoin", 0, 1).display_text == "bitcoin"

    def test_dict_round_trip(self):
        word = TimedWord("eth", 1.0, 1.4, "ETH.")
        assert TimedWord.from_dict(word.to_dict()) == word


class TestPriceSnapshot:
    """Tests for ranking price movements."""

    def test_winners_and_losers(self, sample_prices):
        assert [m.symbol for m in sample_prices.winners] == ["BTC", "ETH"]
        assert [m.symbol for m in sample_prices.losers] == ["SOL", "DOGE"]

    def test_top_n(self):
        movements = [PriceMovement(f"C{i}", f"Coin {i}", 1.0, float(i + 1)) for i in range(8)]
        snapshot = PriceSnapshot.from_movements(movements, top_n=5)
        assert [m.change_24h for m in snapshot.winners] == [8, 7, 6, 5, 4]
        assert snapshot.losers == []

    @pytest.mark.parametrize(
        "changes, expected",
        [
            ([5.0, 3.0], Sentiment.BULLISH),
            ([-5.0, -3.0], Sentiment.BEARISH),
            ([2.0, 2.0], Sentiment.NEUTRAL),
            ([], Sentiment.NEUTRAL),
        ],
    )
    def test_sentiment(self, changes, expected):
        movements = [PriceMovement(f"C{i}", "", 1.0, c) for i, c in enumerate(changes)]
        assert PriceSnapshot.from_movements(movements).sentiment == expected

    def test_unchanged_asset_is_neither(self):
        snapshot = PriceSnapshot.from_movements([PriceMovement("USDT", "Tether", 1.0, 0.0)])
        assert snapshot.is_empty

    def test_from_dict(self):
        movement = PriceMovement.from_dict({"symbol": "btc", "price": "64250", "change_24h": 4.1})
        assert movement.symbol == "BTC"
        assert movement.name == "btc"
        assert movement.price == 64250.0


class TestCollectibleSnapshot:
    """Tests for ranking collectible floors."""

    def test_sorted_by_absolute_change(self):
        snapshot = CollectibleSnapshot.from_collections(
            [
                CollectibleFloor("Punks", 45.0, 2.0),
                CollectibleFloor("Apes", 12.0, -9.0),
                CollectibleFloor("Unpriced", 0.0, 50.0),
            ]
        )
        assert [c.name for c in snapshot.collections] == ["Apes", "Punks"]


class TestVideoRequest:
    """Tests for the job request model."""

    def test_snapshots(self):
        request = VideoRequest(
            script="Hello.",
            prices=[{"symbol": "eth", "price": 3120.5, "change_24h": -2.5}],
            collectibles=[{"name": "Unpriced", "floor_price": 0}],
        )

        prices = request.price_snapshot()

        assert prices.losers[0].symbol == "ETH"
        assert prices.losers[0].name == "eth"
        assert request.collectible_snapshot() is None

    def test_no_side_data(self):
        request = VideoRequest(script="Hello.")
        assert request.price_snapshot() is None
        assert request.topic_list() == []


class TestTimeline:
    """Tests for timeline bands."""

    def test_main_band_between_windows(self):
        timeline = Timeline(
            intro_end=15,
            total_duration=300,
            price_window=Window(15, 45),
            collectible_window=Window(255, 300),
        )
        assert (timeline.main_band.start, timeline.main_band.end) == (45, 255)

    def test_main_band_without_windows(self):
        timeline = Timeline(intro_end=10, total_duration=100, outro_start=95)
        assert (timeline.main_band.start, timeline.main_band.end) == (10, 95)

    def test_to_dict(self):
        timeline = Timeline(
            intro_end=15,
            total_duration=300,
            topic_windows=[ScheduledTopic("Bitcoin ETF", 60, 66, 60, word_index=200)],
        )
        data = timeline.to_dict()
        assert data["price_window"] is None
        assert data["topics"][0]["word_index"] == 200


class TestOverlapAndVisibility:
    """Tests for half-open interval semantics."""

    def test_touching_events_do_not_overlap(self):
        first = OverlayEvent(OverlayKind.TOPIC_TITLE, 0, 5)
        second = OverlayEvent(OverlayKind.TOPIC_TITLE, 5, 10)
        assert not first.overlaps(second)

    def test_line_visibility_excludes_end(self):
        line = CaptionLine(1.0, 2.0, "text")
        assert line.is_visible_at(1.0)
        assert not line.is_visible_at(2.0)
