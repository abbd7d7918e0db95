"""Tests for timeline scheduling, overlay planning and chapters."""

import pytest

from narrated_video.config import OverlayConfig, TimelineConfig
from narrated_video.errors import SchedulingInfeasible
from narrated_video.models import (
    CollectibleFloor,
    CollectibleSnapshot,
    OverlayEvent,
    OverlayKind,
    Topic,
    Window,
)
from narrated_video.timeline import (
    TimelineScheduler,
    build_timeline,
    format_chapters,
    format_timestamp,
    locate_topic,
    plan_overlays,
    resolve_collisions,
    update_description,
)
from narrated_video.timeline.overlays import split_window
from narrated_video.timeline.scheduler import script_words


def _script(length: int, placements: dict[int, str]) -> str:
    """Filler script with phrases inserted at given word positions."""
    words = ["filler"] * length
    for index, phrase in placements.items():
        for offset, token in enumerate(phrase.split()):
            words[index + offset] = token
    return " ".join(words)


THREE_TOPICS = [
    Topic("Bitcoin ETF Approval"),
    Topic("Solana Network Outage"),
    Topic("Dogecoin Meme Rally"),
]


@pytest.fixture
def three_topic_script() -> str:
    return _script(1000, {100: "bitcoin etf", 450: "solana network", 900: "dogecoin meme"})


class TestLocateTopic:
    """Tests for finding where a topic is narrated."""

    def test_prefers_keyword_co_occurrence(self):
        words = script_words(_script(60, {0: "bitcoin", 40: "the bitcoin etf"}))
        assert locate_topic("Bitcoin ETF Approval", words) == 41

    def test_falls_back_to_single_keyword(self):
        words = script_words(_script(20, {5: "approval"}))
        assert locate_topic("Bitcoin ETF Approval", words) == 5

    def test_prefix_matching(self):
        words = script_words("the nfts market")
        assert locate_topic("NFT Market Slump", words) == 1

    def test_short_title_words_are_ignored(self):
        assert locate_topic("A to Z", script_words("a to z")) is None

    def test_no_match(self):
        assert locate_topic("Bitcoin ETF", script_words("nothing here")) is None


class TestTimelineScheduler:
    """Tests for the proportional timeline heuristics."""

    def test_intro_end(self):
        scheduler = TimelineScheduler()
        assert scheduler.intro_end(300) == 15
        assert scheduler.intro_end(100) == 10

    def test_default_price_window(self):
        timeline = build_timeline(300, _script(100, {}), [], has_collectibles=False)
        assert timeline.price_window.start == 15
        assert timeline.price_window.end == 45

    def test_price_window_follows_late_keyword(self):
        timeline = build_timeline(300, _script(100, {20: "prices"}), [], has_collectibles=False)
        assert timeline.price_window.start == pytest.approx(60)
        assert timeline.price_window.end == pytest.approx(90)

    def test_early_price_keyword_keeps_intro_start(self):
        timeline = build_timeline(300, _script(100, {5: "prices"}), [], has_collectibles=False)
        assert timeline.price_window.start == 15

    def test_price_window_stays_under_cap(self):
        timeline = build_timeline(300, _script(100, {80: "prices"}), [], has_collectibles=False)
        assert timeline.price_window.end <= 90
        assert timeline.price_window.start < timeline.price_window.end

    def test_default_collectible_window_is_at_the_end(self):
        timeline = build_timeline(300, _script(100, {}), [], has_prices=False)
        assert timeline.collectible_window.start == 255
        assert timeline.collectible_window.end == 300

    def test_collectible_window_follows_late_keyword(self):
        timeline = build_timeline(300, _script(100, {80: "nft"}), [], has_prices=False)
        assert timeline.collectible_window.start == pytest.approx(240)

    def test_early_collectible_keyword_is_ignored(self):
        timeline = build_timeline(300, _script(100, {50: "nft"}), [], has_prices=False)
        assert timeline.collectible_window.start == 255

    def test_rejects_non_positive_duration(self):
        with pytest.raises(ValueError):
            build_timeline(0, "script", [])

    def test_three_topics_in_main_band(self, three_topic_script):
        timeline = build_timeline(300, three_topic_script, THREE_TOPICS)
        band = timeline.main_band
        topics = timeline.topic_windows

        assert [t.title for t in topics] == [t.title for t in THREE_TOPICS]
        assert all(band.start <= t.start and t.end <= band.end for t in topics)
        for previous, current in zip(topics, topics[1:]):
            assert current.start >= previous.end + 1.0

    def test_topics_start_at_narrated_position(self, three_topic_script):
        timeline = build_timeline(300, three_topic_script, THREE_TOPICS, has_prices=False, has_collectibles=False)
        assert [t.start for t in timeline.topic_windows] == pytest.approx([30, 135, 270])
        assert all(t.matched for t in timeline.topic_windows)

    def test_colliding_topics_are_pushed_forward(self):
        script = _script(1000, {450: "solana network"})
        topics = [Topic("Solana Network Outage"), Topic("Solana Network Upgrade"), Topic("Solana Network Fees")]

        timeline = build_timeline(300, script, topics, has_prices=False, has_collectibles=False)

        assert [t.start for t in timeline.topic_windows] == pytest.approx([135, 142, 149])

    def test_unmatched_topics_are_spread_evenly(self):
        timeline = build_timeline(300, _script(100, {}), [Topic("Alpha"), Topic("Bravo")], has_prices=False,
                                  has_collectibles=False)
        band = timeline.main_band
        starts = [t.start for t in timeline.topic_windows]
        assert starts == pytest.approx([band.start + band.duration / 3, band.start + 2 * band.duration / 3])
        assert not any(t.matched for t in timeline.topic_windows)

    def test_overflowing_topics_are_redistributed(self):
        topics = [Topic(f"Topic{i} Story") for i in range(10)]

        with pytest.warns(SchedulingInfeasible):
            timeline = build_timeline(60, _script(100, {}), topics)

        scheduled = timeline.topic_windows
        band = timeline.main_band
        assert len(scheduled) == 10
        assert timeline.notes and "do not fit" in timeline.notes[0]
        assert all(band.start <= t.start < t.end <= band.end for t in scheduled)
        for previous, current in zip(scheduled, scheduled[1:]):
            assert current.start >= previous.end

    def test_custom_config(self):
        config = TimelineConfig(intro_max_seconds=5)
        timeline = build_timeline(300, _script(100, {}), [], config=config)
        assert timeline.intro_end == 5


class TestOverlayPlanning:
    """Tests for overlay event construction."""

    @pytest.fixture
    def timeline(self, three_topic_script):
        return build_timeline(300, three_topic_script, THREE_TOPICS)

    def test_events_per_channel(self, timeline, sample_prices):
        events = plan_overlays(timeline, sample_prices)
        kinds = [e.kind for e in events]

        assert kinds.count(OverlayKind.SENTIMENT) == 1
        assert kinds.count(OverlayKind.PRICE_ROW) == 2
        assert kinds.count(OverlayKind.TOPIC_TITLE) == 3
        assert kinds.count(OverlayKind.TICKER_CYCLE) == 1

    def test_sentiment_spans_price_window(self, timeline, sample_prices):
        sentiment = next(e for e in plan_overlays(timeline, sample_prices) if e.kind == OverlayKind.SENTIMENT)
        assert (sentiment.start, sentiment.end) == (timeline.price_window.start, timeline.price_window.end)
        assert sentiment.payload["sentiment"] == "neutral"

    def test_price_pages_split_window(self, timeline, sample_prices):
        pages = [e for e in plan_overlays(timeline, sample_prices) if e.kind == OverlayKind.PRICE_ROW]
        assert pages[0].payload["heading"] == "Top Gainers"
        assert pages[1].payload["heading"] == "Top Losers"
        assert pages[0].end == pytest.approx(pages[1].start)
        assert pages[0].payload["rows"][0]["symbol"] == "BTC"
        assert pages[1].payload["rows"][0]["change"] == "-3.60%"

    def test_collectible_pages(self, timeline):
        collections = CollectibleSnapshot(
            collections=[CollectibleFloor(f"Collection {i}", 1.0 + i, i - 3.0) for i in range(7)]
        )
        events = plan_overlays(timeline, None, collections, OverlayConfig(rows_per_page=5))
        pages = [e for e in events if e.kind == OverlayKind.COLLECTIBLE_ROW]
        assert [len(p.payload["rows"]) for p in pages] == [5, 2]
        assert pages[-1].end == timeline.collectible_window.end

    def test_no_side_data_means_topics_only(self, timeline):
        events = plan_overlays(timeline)
        assert {e.kind for e in events} == {OverlayKind.TOPIC_TITLE}

    def test_same_channel_never_overlaps(self, timeline, sample_prices):
        events = plan_overlays(timeline, sample_prices)
        for kind in OverlayKind:
            group = sorted((e for e in events if e.kind == kind), key=lambda e: e.start)
            for previous, current in zip(group, group[1:]):
                assert not previous.overlaps(current)

    def test_split_window_ends_at_window_end(self):
        window = Window(0, 0.6)
        assert split_window(window, 2)[1].end == 0.6


class TestResolveCollisions:
    """Tests for per-channel collision resolution."""

    def test_trims_earlier_event(self):
        events = resolve_collisions([
            OverlayEvent(OverlayKind.TOPIC_TITLE, 0, 5),
            OverlayEvent(OverlayKind.TOPIC_TITLE, 3, 8),
        ])
        assert [(e.start, e.end) for e in events] == [(0, 3), (3, 8)]

    def test_shifts_event_with_same_start(self):
        events = resolve_collisions([
            OverlayEvent(OverlayKind.TOPIC_TITLE, 0, 5),
            OverlayEvent(OverlayKind.TOPIC_TITLE, 0, 4),
        ])
        assert [(e.start, e.end) for e in events] == [(0, 4), (4, 9)]

    def test_different_channels_may_overlap(self):
        events = resolve_collisions([
            OverlayEvent(OverlayKind.TOPIC_TITLE, 0, 5),
            OverlayEvent(OverlayKind.SENTIMENT, 1, 4),
        ])
        assert sorted((e.start, e.end) for e in events) == [(0, 5), (1, 4)]


class TestChapters:
    """Tests for description chapter markers."""

    @pytest.fixture
    def timeline(self, three_topic_script):
        return build_timeline(300, three_topic_script, THREE_TOPICS)

    def test_format_timestamp(self):
        assert format_timestamp(0) == "0:00"
        assert format_timestamp(135.7) == "2:15"
        assert format_timestamp(3725) == "1:02:05"

    def test_chapter_block(self, timeline):
        lines = format_chapters(timeline).splitlines()
        assert lines[0] == "0:00 - Intro"
        assert lines[1] == "0:15 - Market Update"
        assert "2:15 - Solana Network Outage" in lines
        assert lines[-2] == "4:15 - NFT Floor Prices"
        assert lines[-1] == "5:00 - Outro"

    def test_update_description_replaces_old_chapters(self, timeline):
        description = (
            "Today's news.\n\n0:00 - Old Intro\n1:00 - Old topic\n\n"
            "📚 REFERENCE LINKS\n- https://example.com"
        )
        updated = update_description(description, timeline)

        assert updated.startswith("Today's news.\n\n0:00 - Intro")
        assert "Old topic" not in updated
        assert updated.endswith("REFERENCE LINKS\n- https://example.com")

    def test_update_empty_description(self, timeline):
        assert update_description("", timeline) == format_chapters(timeline)
