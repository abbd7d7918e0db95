"""Shared test fixtures."""

import pytest

from narrated_video.config import Config
from narrated_video.models import PriceMovement, PriceSnapshot, TimedWord, Topic


@pytest.fixture
def test_config() -> Config:
    """Provide a test configuration."""
    return Config()


@pytest.fixture
def mock_config(tmp_path) -> Config:
    """Provide a configuration with mock TTS and no transcription service."""
    config = Config()
    config.tts.provider = "mock"
    config.transcription.backends = ["none"]
    config.paths.work_dir = str(tmp_path / "work")
    config.paths.output_dir = str(tmp_path / "output")
    return config


@pytest.fixture
def sample_script() -> str:
    """A short market recap in the shape the pipeline narrates."""
    return (
        "Welcome back to the daily crypto briefing. "
        "Let's start with prices: Bitcoin rallied four percent while Solana dropped. "
        "In regulation news, the SEC delayed its decision on spot ETF applications. "
        "Meanwhile, Ethereum staking withdrawals hit a new record this week. "
        "Finally, NFT floor prices on OpenSea were mixed. "
        "Thanks for watching!"
    )


@pytest.fixture
def sample_topics() -> list[Topic]:
    return [
        Topic(title="SEC Delays ETF Decision"),
        Topic(title="Ethereum Staking Withdrawals Record"),
    ]


@pytest.fixture
def sample_prices() -> PriceSnapshot:
    return PriceSnapshot.from_movements(
        [
            PriceMovement("BTC", "Bitcoin", 64250.0, 4.1),
            PriceMovement("ETH", "Ethereum", 3120.5, 2.3),
            PriceMovement("SOL", "Solana", 142.8, -3.6),
            PriceMovement("DOGE", "Dogecoin", 0.1234, -1.2),
        ]
    )


def _make_words(texts: list[str], start: float = 0.0, duration: float = 0.3, gap: float = 0.05) -> list[TimedWord]:
    """Evenly spaced timed words."""
    words = []
    t = start
    for text in texts:
        words.append(TimedWord(text=text, start=t, end=t + duration))
        t += duration + gap
    return words


@pytest.fixture
def make_words():
    """Factory for evenly spaced timed words."""
    return _make_words
