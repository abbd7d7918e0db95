"""Split narration scripts into speech-service-safe chunks."""

import re

from ..models import ScriptChunk

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def split_sentences(text: str) -> list[str]:
    """Split text after ``.``, ``!`` or ``?`` followed by whitespace."""
    return [s for s in SENTENCE_BOUNDARY.split(text.strip()) if s]


def _split_words(sentence: str, max_chars: int) -> list[str]:
    """Split an over-long sentence at word boundaries.

    A single word longer than ``max_chars`` is cut into fixed-size pieces.
    """
    pieces: list[str] = []
    current = ""
    for word in sentence.split():
        while len(word) > max_chars:
            if current:
                pieces.append(current)
                current = ""
            pieces.append(word[:max_chars])
            word = word[max_chars:]
        if not word:
            continue
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= max_chars:
            current = f"{current} {word}"
        else:
            pieces.append(current)
            current = word
    if current:
        pieces.append(current)
    return pieces


def chunk_script(script: str, max_chars: int = 4096) -> list[ScriptChunk]:
    """Split a script into ordered chunks of at most ``max_chars`` characters.

    Sentences are packed greedily so each split lands on the sentence boundary
    nearest the limit. A sentence longer than the limit falls back to
    word-boundary splitting. Always returns at least one chunk: a blank script
    comes back whole as a single chunk.

    Args:
        script: Narration text.
        max_chars: Synthesis input limit.

    Returns:
        Chunks indexed from 0 in script order.
    """
    if max_chars <= 0:
        raise ValueError(f"max_chars must be positive, got {max_chars}")

    text = script.strip()
    if len(text) <= max_chars:
        return [ScriptChunk(index=0, text=text if text else script)]

    pieces: list[str] = []
    current = ""
    for sentence in split_sentences(text):
        if len(sentence) > max_chars:
            if current:
                pieces.append(current)
                current = ""
            pieces.extend(_split_words(sentence, max_chars))
            continue

        if not current:
            current = sentence
        elif len(current) + 1 + len(sentence) <= max_chars:
            current = f"{current} {sentence}"
        else:
            pieces.append(current)
            current = sentence

    if current:
        pieces.append(current)

    return [ScriptChunk(index=i, text=piece) for i, piece in enumerate(pieces)]
