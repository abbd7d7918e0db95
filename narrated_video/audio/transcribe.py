"""Audio transcription with word-level timestamps."""

import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from ..config import TranscriptionConfig
from ..errors import AlignmentUnavailable
from ..models import TimedWord

# Errors a local model raises when it cannot load or decode audio.
MODEL_ERRORS = (OSError, RuntimeError, ValueError)


@dataclass
class TranscriptionResult:
    """Result of audio transcription."""

    text: str
    words: list[TimedWord] = field(default_factory=list)
    duration_seconds: float = 0.0
    language: str = "en"


class Transcriber:
    """Base class for word-timestamp backends."""

    name = "base"

    def transcribe(self, audio_path: Path | str) -> TranscriptionResult:
        raise NotImplementedError


def _words_from_segments(segments) -> list[TimedWord]:
    words = []
    for segment in segments:
        for word_info in segment.get("words", []):
            words.append(
                TimedWord(
                    text=word_info["word"].strip(),
                    start=float(word_info["start"]),
                    end=float(word_info["end"]),
                )
            )
    return words


class OpenAITranscriber(Transcriber):
    """Hosted Whisper (``whisper-1``) with word granularity."""

    name = "openai"

    def __init__(self, model: str = "whisper-1", api_key: str | None = None, client=None):
        self.model_name = model
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise AlignmentUnavailable("Transcription service is not configured", "OPENAI_API_KEY is not set")
            import openai

            self._client = openai.OpenAI(api_key=self.api_key)
        return self._client

    def transcribe(self, audio_path: Path | str) -> TranscriptionResult:
        """Transcribe audio file and extract word-level timestamps.

        Args:
            audio_path: Path to the audio file (mp3, wav, etc.)

        Returns:
            TranscriptionResult with text, word timestamps, and duration
        """
        audio_path = Path(audio_path)
        if not audio_path.exists():
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        client = self._get_client()
        import openai

        try:
            with open(audio_path, "rb") as f:
                response = client.audio.transcriptions.create(
                    file=f,
                    model=self.model_name,
                    response_format="verbose_json",
                    timestamp_granularities=["word"],
                )
        except openai.OpenAIError as e:
            raise AlignmentUnavailable("Transcription service failed", diagnostic=str(e)) from e

        words = [
            TimedWord(text=w.word.strip(), start=float(w.start), end=float(w.end))
            for w in (getattr(response, "words", None) or [])
        ]
        duration = float(getattr(response, "duration", 0.0) or (words[-1].end if words else 0.0))

        return TranscriptionResult(
            text=(getattr(response, "text", "") or "").strip(),
            words=words,
            duration_seconds=duration,
            language=getattr(response, "language", "en") or "en",
        )


class WhisperTranscriber(Transcriber):
    """Transcribe audio using local OpenAI Whisper for word-level timestamps."""

    name = "whisper"

    def __init__(self, model: str = "base", device: str = "auto"):
        """Initialize Whisper transcriber.

        Args:
            model: Whisper model size. Options: tiny, base, small, medium, large
            device: Device to run on. "auto", "cpu", "cuda", or "mps"
        """
        self.model_name = model
        self.device = device
        self._model = None

    def _load_model(self):
        """Lazy load the Whisper model."""
        if self._model is not None:
            return self._model

        try:
            import whisper
        except ImportError as e:
            raise AlignmentUnavailable(
                "Local transcription is not installed",
                "openai-whisper is required. Install it with: pip install openai-whisper",
            ) from e

        # MPS has float64 issues with Whisper, so "auto" only picks CUDA or CPU
        device = self.device
        try:
            if device == "auto":
                import torch

                device = "cuda" if torch.cuda.is_available() else "cpu"

            self._model = whisper.load_model(self.model_name, device=device)
        except MODEL_ERRORS as e:
            raise AlignmentUnavailable(
                "Transcription model could not be loaded", diagnostic=f"whisper {self.model_name}: {e}"
            ) from e
        return self._model

    def transcribe(self, audio_path: Path | str) -> TranscriptionResult:
        audio_path = Path(audio_path)
        if not audio_path.exists():
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        model = self._load_model()
        try:
            result = model.transcribe(str(audio_path), word_timestamps=True, language="en")
        except MODEL_ERRORS as e:
            raise AlignmentUnavailable("Local transcription failed", diagnostic=str(e)) from e

        words = _words_from_segments(result.get("segments", []))

        duration = 0.0
        if words:
            duration = words[-1].end
        elif result.get("segments"):
            duration = result["segments"][-1]["end"]

        return TranscriptionResult(
            text=result.get("text", "").strip(),
            words=words,
            duration_seconds=duration,
            language=result.get("language", "en"),
        )


class FasterWhisperTranscriber(Transcriber):
    """Transcribe audio using faster-whisper for improved performance."""

    name = "faster-whisper"

    def __init__(self, model: str = "base", device: str = "auto"):
        self.model_name = model
        self.device = device
        self._model = None

    def _load_model(self):
        """Lazy load the faster-whisper model."""
        if self._model is not None:
            return self._model

        try:
            from faster_whisper import WhisperModel
        except ImportError as e:
            raise AlignmentUnavailable(
                "Local transcription is not installed",
                "faster-whisper is required. Install it with: pip install faster-whisper",
            ) from e

        device = self.device
        compute_type = "float16"
        if device == "auto":
            try:
                import torch

                device = "cuda" if torch.cuda.is_available() else "cpu"
            except ImportError:
                device = "cpu"
        if device == "cpu":
            compute_type = "int8"

        try:
            self._model = WhisperModel(self.model_name, device=device, compute_type=compute_type)
        except MODEL_ERRORS as e:
            raise AlignmentUnavailable(
                "Transcription model could not be loaded", diagnostic=f"faster-whisper {self.model_name}: {e}"
            ) from e
        return self._model

    def transcribe(self, audio_path: Path | str) -> TranscriptionResult:
        audio_path = Path(audio_path)
        if not audio_path.exists():
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        model = self._load_model()
        words = []
        text_parts = []
        duration = 0.0
        try:
            segments, info = model.transcribe(str(audio_path), word_timestamps=True, language="en")
            # segments is a lazy generator; decoding happens while iterating
            for segment in segments:
                text_parts.append(segment.text)
                duration = max(duration, segment.end)
                for word in segment.words or []:
                    words.append(TimedWord(text=word.word.strip(), start=word.start, end=word.end))
        except MODEL_ERRORS as e:
            raise AlignmentUnavailable("Local transcription failed", diagnostic=str(e)) from e

        return TranscriptionResult(
            text=" ".join(text_parts).strip(),
            words=words,
            duration_seconds=duration,
            language=info.language if info else "en",
        )


def get_audio_duration(audio_path: Path | str, ffprobe_path: str = "ffprobe") -> float:
    """Get audio duration using ffprobe.

    Args:
        audio_path: Path to the audio file

    Returns:
        Duration in seconds
    """
    audio_path = Path(audio_path)
    if not audio_path.exists():
        raise FileNotFoundError(f"Audio file not found: {audio_path}")

    try:
        result = subprocess.run(
            [
                ffprobe_path,
                "-v", "error",
                "-show_entries", "format=duration",
                "-of", "default=noprint_wrappers=1:nokey=1",
                str(audio_path),
            ],
            capture_output=True,
            text=True,
            timeout=10,
        )
        if result.returncode == 0:
            return float(result.stdout.strip())
    except (subprocess.TimeoutExpired, ValueError, FileNotFoundError) as e:
        raise RuntimeError(f"Failed to get audio duration: {e}")

    raise RuntimeError(f"ffprobe failed for {audio_path}")


def get_transcriber(backend: str, config: TranscriptionConfig | None = None) -> Transcriber:
    """Get a transcriber instance.

    Args:
        backend: "openai", "whisper" or "faster-whisper"
        config: Transcription settings (model names, device)

    Returns:
        A transcriber instance
    """
    config = config or TranscriptionConfig()
    if backend == "openai":
        return OpenAITranscriber(model=config.model)
    if backend == "faster-whisper":
        return FasterWhisperTranscriber(model=config.local_model, device=config.device)
    if backend == "whisper":
        return WhisperTranscriber(model=config.local_model, device=config.device)
    raise ValueError(f"Unknown transcription backend: {backend}")
