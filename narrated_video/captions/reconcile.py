"""Restore script punctuation and casing onto recognized words.

Speech recognizers drop punctuation and normalize casing. Each recognized word
is matched against a bounded window of upcoming script tokens; a confident
match carries the script's spelling into ``original_text``.
"""

import logging
import warnings
from dataclasses import dataclass, replace

from ..errors import ReconciliationLowConfidence
from ..models import TimedWord

logger = logging.getLogger(__name__)

EXACT_SCORE = 100
PREFIX_SCORE = 80
OVERLAP_SCORE = 50
MATCH_THRESHOLD = 50


def normalize_token(token: str) -> str:
    """Lowercase a token and keep only letters and digits."""
    return "".join(ch for ch in token.lower() if ch.isalnum())


def match_score(recognized: str, scripted: str) -> int:
    """Score two normalized tokens: exact 100, prefix 80, substring 50, else 0."""
    if not recognized or not scripted:
        return 0
    if recognized == scripted:
        return EXACT_SCORE
    if scripted.startswith(recognized) or recognized.startswith(scripted):
        return PREFIX_SCORE
    if recognized in scripted or scripted in recognized:
        return OVERLAP_SCORE
    return 0


@dataclass
class ReconcileStats:
    matched: int = 0
    unmatched: int = 0

    @property
    def total(self) -> int:
        return self.matched + self.unmatched


def reconcile(
    asr_words: list[TimedWord],
    script: str,
    window: int = 10,
    stats: ReconcileStats | None = None,
) -> list[TimedWord]:
    """Match recognized words back to script tokens.

    For every recognized word, the next ``window`` script tokens after the
    cursor are scored and the best candidate scoring at least 50 is taken
    (ties go to the nearest token). The cursor then moves past it. Words
    without a match keep their recognized text. Timings are never changed.

    Args:
        asr_words: Timestamped words from the aligner.
        script: Original narration text.
        window: Number of script tokens searched ahead of the cursor.
        stats: Optional counters filled in while matching.

    Returns:
        New words with ``original_text`` set where a match was found.
    """
    stats = stats if stats is not None else ReconcileStats()
    tokens = script.split()
    normalized = [normalize_token(t) for t in tokens]
    cursor = 0
    result: list[TimedWord] = []

    for word in asr_words:
        key = normalize_token(word.text)
        best_index = -1
        best_score = 0
        for j in range(cursor, min(cursor + window, len(tokens))):
            score = match_score(key, normalized[j])
            if score > best_score:
                best_index, best_score = j, score
                if score == EXACT_SCORE:
                    break

        if best_score >= MATCH_THRESHOLD:
            result.append(replace(word, original_text=tokens[best_index]))
            cursor = best_index + 1
            stats.matched += 1
        else:
            result.append(replace(word, original_text=None))
            stats.unmatched += 1

    if stats.total and stats.unmatched * 2 > stats.total:
        message = (
            f"Only {stats.matched} of {stats.total} recognized words matched the script; "
            "captions keep recognizer text"
        )
        logger.warning(message)
        warnings.warn(message, ReconciliationLowConfidence, stacklevel=2)

    return result
