"""Speech synthesis, stitching and word alignment."""

from .align import AlignmentAttempt, AlignmentResult, Aligner, estimate_word_timings
from .chunker import chunk_script, split_sentences
from .stitcher import stitch_audio, synthesize_chunks
from .transcribe import TranscriptionResult, get_audio_duration, get_transcriber
from .tts import MockTTS, OpenAITTS, TTSProvider, get_tts_provider

__all__ = [
    "AlignmentAttempt",
    "AlignmentResult",
    "Aligner",
    "MockTTS",
    "OpenAITTS",
    "TTSProvider",
    "TranscriptionResult",
    "chunk_script",
    "estimate_word_timings",
    "get_audio_duration",
    "get_transcriber",
    "get_tts_provider",
    "split_sentences",
    "stitch_audio",
    "synthesize_chunks",
]
