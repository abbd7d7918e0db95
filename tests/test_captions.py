"""Tests for punctuation reconciliation, caption lines and the ASS track."""

import random

import pytest

from narrated_video.captions import (
    CaptionLineBuilder,
    ReconcileStats,
    build_caption_lines,
    format_ass_time,
    karaoke_text,
    max_concurrent_lines,
    reconcile,
    render_ass,
    write_ass,
)
from narrated_video.captions.ass import escape_ass_text, format_dialogue
from narrated_video.captions.reconcile import match_score, normalize_token
from narrated_video.config import CaptionConfig
from narrated_video.errors import ReconciliationLowConfidence
from narrated_video.models import CaptionLine, TimedWord


class TestMatchScore:
    """Tests for token similarity scoring."""

    def test_scores(self):
        assert match_score("bitcoin", "bitcoin") == 100
        assert match_score("eth", "ethereum") == 80
        assert match_score("ethereum", "eth") == 80
        assert match_score("coin", "bitcoin") == 50
        assert match_score("solana", "bitcoin") == 0
        assert match_score("", "bitcoin") == 0

    def test_normalize_token(self):
        assert normalize_token("Bitcoin's,") == "bitcoins"
        assert normalize_token("4.5%") == "45"


class TestReconcile:
    """Tests for restoring script punctuation onto recognized words."""

    def test_restores_punctuation_and_casing(self, make_words):
        asr = make_words(["bitcoin", "rallied", "four", "percent"])
        result = reconcile(asr, "Bitcoin rallied four percent!")
        assert [w.display_text for w in result] == ["Bitcoin", "rallied", "four", "percent!"]

    def test_timings_are_unchanged(self, make_words):
        asr = make_words(["hello", "world"])
        result = reconcile(asr, "Hello, world.")
        assert [(w.start, w.end) for w in result] == [(w.start, w.end) for w in asr]

    def test_prefix_match_is_accepted(self, make_words):
        result = reconcile(make_words(["eth"]), "Ethereum's rally")
        assert result[0].original_text == "Ethereum's"

    def test_unmatched_word_keeps_recognized_text(self, make_words):
        with pytest.warns(ReconciliationLowConfidence):
            result = reconcile(make_words(["banana"]), "Bitcoin rallied.")
        assert result[0].original_text is None
        assert result[0].display_text == "banana"

    def test_search_window_is_bounded(self, make_words):
        script = " ".join(f"x{i}" for i in range(12)) + " target."
        with pytest.warns(ReconciliationLowConfidence):
            result = reconcile(make_words(["target"]), script, window=10)
        assert result[0].original_text is None

    def test_cursor_advances_past_match(self, make_words):
        result = reconcile(make_words(["the", "dog"]), "The cat. The dog.")
        assert [w.display_text for w in result] == ["The", "dog."]

    def test_stats_are_collected(self, make_words):
        stats = ReconcileStats()
        reconcile(make_words(["hello", "there", "world"]), "Hello world.", stats=stats)
        assert stats.matched == 2
        assert stats.unmatched == 1
        assert stats.total == 3

    def test_output_starts_are_monotonic(self, make_words):
        rng = random.Random(7)
        vocabulary = ["bitcoin", "price", "etf", "sec", "staking", "record", "floor"]
        tokens = [rng.choice(vocabulary) for _ in range(200)]
        result = reconcile(make_words(tokens), " ".join(tokens))
        starts = [w.start for w in result]
        assert starts == sorted(starts)


class TestCaptionLineBuilder:
    """Tests for grouping words into lines under the concurrency cap."""

    def test_eight_word_limit(self, make_words):
        lines = build_caption_lines(make_words([f"w{i}" for i in range(20)]))
        assert [len(line.words) for line in lines] == [8, 8, 4]

    def test_sentence_end_closes_line(self, make_words):
        lines = build_caption_lines(make_words(["Hello", "there.", "How", "are", "you?"]))
        assert [line.text for line in lines] == ["Hello there.", "How are you?"]

    def test_line_text_keeps_punctuation_attached(self):
        words = [TimedWord("hello", 0, 0.3, "Hello,"), TimedWord("world", 0.4, 0.8, "world.")]
        assert build_caption_lines(words)[0].text == "Hello, world."

    def test_start_gap_between_lines(self):
        words = [TimedWord(f"w{i}.", 0.0, 0.05) for i in range(3)]
        lines = build_caption_lines(words)
        for previous, current in zip(lines, lines[1:]):
            assert current.start >= previous.start + 0.1 - 1e-9

    def test_oldest_line_is_released_before_fourth(self):
        words = [TimedWord(f"w{i}.", i * 0.3, i * 0.3 + 0.2) for i in range(4)]
        lines = build_caption_lines(words)

        assert lines[0].end == pytest.approx(0.9 - 0.15)
        assert max_concurrent_lines(lines) <= 3

    def test_rejects_zero_gap(self):
        with pytest.raises(ValueError):
            CaptionLineBuilder(line_gap=0)

    def test_from_config(self):
        builder = CaptionLineBuilder.from_config(CaptionConfig(max_words_per_line=4, max_concurrent_lines=2))
        assert builder.max_words == 4
        assert builder.max_concurrent == 2

    @pytest.mark.parametrize("seed", range(20))
    def test_concurrency_cap_holds_for_random_input(self, seed):
        rng = random.Random(seed)
        words = []
        t = 0.0
        for i in range(rng.randint(1, 150)):
            t += rng.choice([0.0, 0.01, 0.05, 0.2, 1.5])
            duration = rng.choice([0.0, 0.02, 0.3, 2.0])
            text = f"w{i}" + rng.choice(["", "", "", ".", "?", ","])
            words.append(TimedWord(text, t, t + duration))

        lines = build_caption_lines(words)

        assert max_concurrent_lines(lines) <= 3
        assert all(line.end > line.start for line in lines)
        assert sum(len(line.words) for line in lines) == len(words)

    @pytest.mark.parametrize("cap", [2, 4])
    def test_configured_cap_is_respected(self, cap):
        words = [TimedWord(f"w{i}.", i * 0.1, i * 0.1 + 0.05) for i in range(30)]
        lines = build_caption_lines(words, CaptionConfig(max_concurrent_lines=cap))
        assert max_concurrent_lines(lines) <= cap


class TestMaxConcurrentLines:
    """Tests for the visibility sweep."""

    def test_touching_lines_do_not_overlap(self):
        lines = [CaptionLine(0, 1, "a"), CaptionLine(1, 2, "b")]
        assert max_concurrent_lines(lines) == 1

    def test_overlapping_lines(self):
        lines = [CaptionLine(0, 2, "a"), CaptionLine(0.5, 2, "b"), CaptionLine(1, 3, "c")]
        assert max_concurrent_lines(lines) == 3


class TestAssFormatting:
    """Tests for the subtitle track."""

    @pytest.fixture
    def line(self):
        words = (TimedWord("hello", 0.0, 0.5, "Hello,"), TimedWord("world", 0.8, 1.2, "world."))
        return CaptionLine(start=0.0, end=1.2, text="Hello, world.", words=words)

    def test_format_time(self):
        assert format_ass_time(0) == "0:00:00.00"
        assert format_ass_time(3661.239) == "1:01:01.23"
        assert format_ass_time(1.999) == "0:00:01.99"

    def test_escapes_line_breaks_commas_and_braces(self):
        assert escape_ass_text("a,b\nc{d}") == "a\\,b\\Nc(d)"

    def test_karaoke_tokens_and_pause(self, line):
        text = karaoke_text(line, "&H1A93F7")

        assert text.startswith("{\\k50\\c&H1A93F7&}Hello\\,{\\c&HFFFFFF&}")
        assert "{\\k30} {\\k40\\c&H1A93F7&}world." in text
        assert text.count("\\k") == 3

    def test_no_pause_for_short_gap(self):
        words = (TimedWord("a", 0.0, 0.3), TimedWord("b", 0.35, 0.6))
        text = karaoke_text(CaptionLine(0.0, 1.0, "a b", words), "&H1A93F7")
        assert text.count("\\k") == 2

    def test_dialogue_line(self, line):
        dialogue = format_dialogue(line, "&H1A93F7")
        assert dialogue.startswith("Dialogue: 0,0:00:00.00,0:00:01.20,Default,,0,0,0,,")

    def test_render_header_and_events(self, line):
        track = render_ass([line], CaptionConfig(), title="Daily Briefing")
        assert "[Script Info]" in track
        assert "Title: Daily Briefing" in track
        assert "PlayResX: 1280" in track
        assert "Style: Default,Arial,52,&Hffffff,&H1A93F7" in track
        assert track.count("Dialogue:") == 1

    def test_write_ass(self, line, tmp_path):
        path = write_ass([line], tmp_path / "subs" / "captions.ass")
        assert path.read_text(encoding="utf-8").count("Dialogue:") == 1
