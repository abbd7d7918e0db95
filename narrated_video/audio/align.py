"""Word-level alignment with a heuristic fallback.

Backends are tried in priority order. Each attempt comes back as an
:class:`AlignmentAttempt`; the first one with words wins. When none succeed,
timings are estimated from a fixed speaking rate.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..config import TranscriptionConfig
from ..errors import AlignmentUnavailable
from ..models import TimedWord
from .transcribe import MODEL_ERRORS, Transcriber, get_transcriber

logger = logging.getLogger(__name__)

ESTIMATE_SOURCE = "estimate"


@dataclass
class AlignmentAttempt:
    """Outcome of asking one backend for word timestamps."""

    backend: str
    words: list[TimedWord] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.words)


@dataclass
class AlignmentResult:
    """Words chosen for caption building and where they came from."""

    words: list[TimedWord]
    source: str
    attempts: list[AlignmentAttempt] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.source == ESTIMATE_SOURCE


def normalize_words(words: list[TimedWord]) -> list[TimedWord]:
    """Drop empty tokens and force ``start <= end`` and non-decreasing starts."""
    normalized: list[TimedWord] = []
    previous_start = 0.0
    for word in words:
        text = word.text.strip()
        if not text:
            continue
        start = max(word.start, previous_start, 0.0)
        end = max(word.end, start)
        normalized.append(TimedWord(text=text, start=start, end=end, original_text=word.original_text))
        previous_start = start
    return normalized


def estimate_word_timings(script: str, words_per_minute: float = 150.0, offset: float = 0.0) -> list[TimedWord]:
    """Space script words evenly at ``words_per_minute``.

    Every word gets the same duration and words never overlap.
    """
    if words_per_minute <= 0:
        raise ValueError(f"words_per_minute must be positive, got {words_per_minute}")

    seconds_per_word = 60.0 / words_per_minute
    return [
        TimedWord(
            text=token,
            start=offset + i * seconds_per_word,
            end=offset + (i + 1) * seconds_per_word,
        )
        for i, token in enumerate(script.split())
    ]


def try_transcribe(transcriber: Transcriber, audio_path: Path) -> AlignmentAttempt:
    """Run one backend and report the outcome as a value."""
    try:
        result = transcriber.transcribe(audio_path)
    except AlignmentUnavailable as e:
        return AlignmentAttempt(backend=transcriber.name, error=e.diagnostic)
    except MODEL_ERRORS as e:
        return AlignmentAttempt(backend=transcriber.name, error=f"{type(e).__name__}: {e}")

    words = normalize_words(result.words)
    if not words:
        return AlignmentAttempt(backend=transcriber.name, error="no words returned")
    return AlignmentAttempt(backend=transcriber.name, words=words)


class Aligner:
    """Fallback chain of transcription backends ending in the estimator."""

    def __init__(self, transcribers: list[Transcriber], words_per_minute: float = 150.0):
        self.transcribers = list(transcribers)
        self.words_per_minute = words_per_minute

    @classmethod
    def from_config(cls, config: TranscriptionConfig) -> "Aligner":
        transcribers = [
            get_transcriber(backend, config)
            for backend in config.backends
            if backend != "none"
        ]
        return cls(transcribers, words_per_minute=config.words_per_minute)

    def align(self, audio_path: Path, script: str) -> AlignmentResult:
        """Get word timestamps for ``audio_path``, estimating them if every backend fails."""
        attempts: list[AlignmentAttempt] = []
        for transcriber in self.transcribers:
            attempt = try_transcribe(transcriber, Path(audio_path))
            attempts.append(attempt)
            if attempt.ok:
                logger.info("Aligned %d words with %s", len(attempt.words), attempt.backend)
                return AlignmentResult(words=attempt.words, source=attempt.backend, attempts=attempts)
            logger.warning("Alignment backend %s unavailable: %s", attempt.backend, attempt.error)

        words = estimate_word_timings(script, self.words_per_minute)
        logger.warning(
            "Word alignment degraded: estimated %d words at %.0f wpm",
            len(words), self.words_per_minute,
        )
        return AlignmentResult(words=words, source=ESTIMATE_SOURCE, attempts=attempts)
