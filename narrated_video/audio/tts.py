"""Text-to-speech providers."""

import io
import logging
import os
import wave
from abc import ABC, abstractmethod
from pathlib import Path

from ..config import Config, TTSConfig
from ..errors import ExternalServiceError, InputTooLong

logger = logging.getLogger(__name__)


class TTSProvider(ABC):
    """Turns one text chunk into audio bytes."""

    name: str = "base"
    max_input_chars: int = 4096

    def __init__(self, config: TTSConfig):
        self.config = config

    @abstractmethod
    def synthesize(self, text: str) -> bytes:
        """Synthesize speech for ``text``.

        Raises:
            InputTooLong: If ``text`` exceeds ``max_input_chars``.
            ExternalServiceError: If the speech service fails.
        """

    @property
    def file_extension(self) -> str:
        """Extension of the files this provider writes."""
        return self.config.output_format

    def generate(self, text: str, output_path: Path) -> Path:
        """Synthesize ``text`` and write the audio to ``output_path``."""
        audio = self.synthesize(text)
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(audio)
        return output_path

    def _check_length(self, text: str) -> None:
        if len(text) > self.max_input_chars:
            raise InputTooLong(len(text), self.max_input_chars)


class OpenAITTS(TTSProvider):
    """OpenAI speech endpoint (``tts-1`` by default)."""

    name = "openai"
    max_input_chars = 4096

    def __init__(self, config: TTSConfig, api_key: str | None = None, client=None):
        super().__init__(config)
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key and client is None:
            raise ValueError("API key required. Set OPENAI_API_KEY or pass api_key.")
        self._client = client

    def _get_client(self):
        if self._client is None:
            import openai

            self._client = openai.OpenAI(api_key=self.api_key)
        return self._client

    def synthesize(self, text: str) -> bytes:
        self._check_length(text)
        import openai

        try:
            response = self._get_client().audio.speech.create(
                model=self.config.model,
                voice=self.config.voice,
                input=text,
                response_format=self.config.output_format,
            )
        except openai.OpenAIError as e:
            raise ExternalServiceError("Speech synthesis failed", diagnostic=str(e)) from e
        return response.content


class MockTTS(TTSProvider):
    """Offline provider that writes silence lasting as long as the text takes to read.

    Output is 16-bit mono PCM WAV, so the stitcher, ffprobe and the
    compositor all handle it like real narration.
    """

    name = "mock"
    sample_rate = 24000
    min_seconds = 0.5

    def __init__(self, config: TTSConfig, max_input_chars: int | None = None, words_per_minute: float = 150.0):
        super().__init__(config)
        if max_input_chars is not None:
            self.max_input_chars = max_input_chars
        self.words_per_minute = words_per_minute

    @property
    def file_extension(self) -> str:
        return "wav"

    def duration_for(self, text: str) -> float:
        """Seconds of audio for ``text`` at the configured speaking rate."""
        return max(self.min_seconds, len(text.split()) / self.words_per_minute * 60)

    def synthesize(self, text: str) -> bytes:
        self._check_length(text)
        frames = int(round(self.duration_for(text) * self.sample_rate))
        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wav:
            wav.setnchannels(1)
            wav.setsampwidth(2)
            wav.setframerate(self.sample_rate)
            wav.writeframes(b"\x00\x00" * frames)
        return buffer.getvalue()


def get_tts_provider(config: Config) -> TTSProvider:
    """Get the TTS provider named by ``config.tts.provider``."""
    provider = config.tts.provider.lower()
    if provider == "openai":
        return OpenAITTS(config.tts)
    if provider == "mock":
        return MockTTS(config.tts, words_per_minute=config.transcription.words_per_minute)
    raise ValueError(f"Unknown TTS provider: {config.tts.provider}")
