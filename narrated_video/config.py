"""Configuration loading and management."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field


class VideoConfig(BaseModel):
    """Video output configuration."""

    width: int = 1280
    height: int = 720
    fps: int = 30
    crf: int = 18
    preset: str = "slow"
    audio_bitrate: str = "256k"
    audio_sample_rate: int = 48000


class TTSConfig(BaseModel):
    """Text-to-speech configuration."""

    provider: str = "openai"
    model: str = "tts-1"
    voice: str = "nova"
    output_format: str = "mp3"
    max_chunk_chars: int = Field(default=4096, gt=0)
    max_workers: int = Field(default=4, ge=1)


class TranscriptionConfig(BaseModel):
    """Word-level alignment configuration.

    Backends are attempted in order; when all of them fail the timings are
    estimated from the speaking rate.
    """

    backends: list[str] = Field(default_factory=lambda: ["openai"])
    model: str = "whisper-1"
    local_model: str = "base"
    device: str = "auto"
    words_per_minute: float = Field(default=150.0, gt=0)


class CaptionConfig(BaseModel):
    """Caption line building and subtitle style."""

    max_words_per_line: int = Field(default=8, ge=1)
    max_concurrent_lines: int = Field(default=3, ge=2)
    line_gap: float = Field(default=0.1, gt=0)
    release_margin: float = 0.15
    min_line_duration: float = 1.0
    search_window: int = Field(default=10, ge=1)
    font_name: str = "Arial"
    font_size: int = 52
    primary_color: str = "&Hffffff"
    highlight_color: str = "&H1A93F7"
    outline_color: str = "&H000000"
    back_color: str = "&HC0000000"
    margin_v: int = 80


class TimelineConfig(BaseModel):
    """Overlay timeline heuristics."""

    intro_max_seconds: float = 15.0
    intro_ratio: float = 0.10
    price_window_seconds: float = 30.0
    price_cap_ratio: float = 0.30
    price_keyword_ratio: float = 0.10
    price_min_window_seconds: float = 5.0
    collectible_min_seconds: float = 30.0
    collectible_max_seconds: float = 45.0
    collectible_keyword_ratio: float = 0.70
    topic_gap: float = 1.0
    topic_title_seconds: float = 6.0
    keyword_window: int = 10
    outro_max_seconds: float = 10.0
    outro_ratio: float = 0.05
    price_keywords: list[str] = Field(
        default_factory=lambda: [
            "price", "prices", "gainers", "losers", "pumping", "dumping",
            "rallied", "surged", "dropped", "percent",
        ]
    )
    collectible_keywords: list[str] = Field(
        default_factory=lambda: ["nft", "nfts", "collectible", "collectibles", "floor", "opensea"]
    )


class OverlayConfig(BaseModel):
    """Static overlay styling."""

    fade_in: float = 0.5
    fade_out: float = 0.5
    title_font_size: int = 44
    row_font_size: int = 32
    rows_per_page: int = Field(default=5, ge=1)
    neutral_color: str = "white"
    positive_color: str = "0x16C784"
    negative_color: str = "0xEA3943"
    accent_color: str = "0xF7931A"
    font_file: str | None = None


class TickerConfig(BaseModel):
    """Scrolling ticker band."""

    font_size: int = 28
    char_width_ratio: float = 0.6
    speed: float = 120.0
    cycles: int = Field(default=3, ge=1)
    separator: str = "   |   "
    band_height: int = 48
    band_color: str = "black@0.6"


class CompositorConfig(BaseModel):
    """External compositor (ffmpeg) invocation."""

    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    timeout_seconds: float = 600.0


class PathsConfig(BaseModel):
    """Path configuration."""

    work_dir: str = "output/work"
    output_dir: str = "output"


class Config(BaseModel):
    """Main application configuration."""

    video: VideoConfig = Field(default_factory=VideoConfig)
    tts: TTSConfig = Field(default_factory=TTSConfig)
    transcription: TranscriptionConfig = Field(default_factory=TranscriptionConfig)
    captions: CaptionConfig = Field(default_factory=CaptionConfig)
    timeline: TimelineConfig = Field(default_factory=TimelineConfig)
    overlays: OverlayConfig = Field(default_factory=OverlayConfig)
    ticker: TickerConfig = Field(default_factory=TickerConfig)
    compositor: CompositorConfig = Field(default_factory=CompositorConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "Config":
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f)

        if data is None:
            return cls()

        # Flatten nested resolution config
        if "video" in data and "resolution" in data["video"]:
            res = data["video"].pop("resolution")
            data["video"]["width"] = res.get("width", 1280)
            data["video"]["height"] = res.get("height", 720)

        return cls(**data)

    def to_yaml(self, path: Path | str) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump()
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)


def load_config(config_path: Path | str | None = None) -> Config:
    """Load configuration from file or use defaults."""
    if config_path is None:
        # Look for config.yaml in current directory or project root
        candidates = [Path("config.yaml"), Path(__file__).parent.parent / "config.yaml"]
        for candidate in candidates:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is not None:
        return Config.from_yaml(config_path)

    return Config()
