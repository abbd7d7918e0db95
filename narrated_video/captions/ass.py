"""Serialize caption lines into an ASS track with karaoke highlighting."""

import math
import re
from pathlib import Path

from ..config import CaptionConfig
from ..errors import EncodingFailure
from ..models import CaptionLine

PAUSE_THRESHOLD = 0.1
LEADING_PUNCTUATION = re.compile(r"^[.,!?;:]")
BASE_TEXT_COLOR = "&HFFFFFF"


def format_ass_time(seconds: float) -> str:
    """Format seconds as ``H:MM:SS.cc`` (centiseconds, truncated)."""
    centis = math.floor(max(seconds, 0.0) * 100 + 1e-6)
    hours, centis = divmod(centis, 360000)
    minutes, centis = divmod(centis, 6000)
    secs, centis = divmod(centis, 100)
    return f"{hours}:{minutes:02d}:{secs:02d}.{centis:02d}"


def escape_ass_text(text: str) -> str:
    """Escape line breaks and commas; braces would open override blocks."""
    text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\n", "\\N")
    text = text.replace(",", "\\,")
    return text.replace("{", "(").replace("}", ")")


def _centis(seconds: float) -> int:
    return max(0, round(seconds * 100))


def karaoke_text(line: CaptionLine, highlight_color: str, base_color: str = BASE_TEXT_COLOR) -> str:
    """Build the progressive per-word reveal for one line.

    Each word gets a ``\\k`` token lasting its spoken duration. A pause token
    precedes a word whose gap since the previous word (or the line start)
    exceeds 0.1s.
    """
    if not line.words:
        return escape_ass_text(line.text)

    parts: list[str] = []
    previous_end = line.start
    for i, word in enumerate(line.words):
        text = escape_ass_text(word.display_text.strip())
        word_start = max(word.start, line.start)
        gap = word_start - previous_end
        if gap > PAUSE_THRESHOLD:
            parts.append(f"{{\\k{_centis(gap)}}}")
        if i > 0 and not LEADING_PUNCTUATION.match(text):
            parts.append(" ")
        duration = max(0.0, word.end - word_start)
        parts.append(f"{{\\k{_centis(duration)}\\c{highlight_color}&}}{text}{{\\c{base_color}&}}")
        previous_end = max(previous_end, word.end)

    return "".join(parts)


def format_dialogue(line: CaptionLine, highlight_color: str) -> str:
    return (
        f"Dialogue: 0,{format_ass_time(line.start)},{format_ass_time(line.end)},"
        f"Default,,0,0,0,,{karaoke_text(line, highlight_color)}"
    )


def ass_header(config: CaptionConfig, title: str = "Narrated Video Subtitles",
               width: int = 1280, height: int = 720) -> str:
    style = ",".join(
        str(v)
        for v in (
            "Default", config.font_name, config.font_size,
            config.primary_color, config.highlight_color, config.outline_color, config.back_color,
            1, 0, 0, 0, 100, 100, 0, 0, 1, 4, 2, 2, 10, 10, config.margin_v, 1,
        )
    )
    return (
        "[Script Info]\n"
        f"Title: {title.replace(chr(10), ' ')}\n"
        "ScriptType: v4.00+\n"
        f"PlayResX: {width}\n"
        f"PlayResY: {height}\n"
        "\n"
        "[V4+ Styles]\n"
        "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, "
        "BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, "
        "BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding\n"
        f"Style: {style}\n"
        "\n"
        "[Events]\n"
        "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text\n"
    )


def render_ass(
    lines: list[CaptionLine],
    config: CaptionConfig | None = None,
    title: str = "Narrated Video Subtitles",
    width: int = 1280,
    height: int = 720,
) -> str:
    config = config or CaptionConfig()
    events = "\n".join(format_dialogue(line, config.highlight_color) for line in lines)
    return ass_header(config, title, width, height) + events + ("\n" if events else "")


def write_ass(
    lines: list[CaptionLine],
    path: Path,
    config: CaptionConfig | None = None,
    title: str = "Narrated Video Subtitles",
    width: int = 1280,
    height: int = 720,
) -> Path:
    """Write the subtitle track to ``path``."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_ass(lines, config, title, width, height), encoding="utf-8")
    except OSError as e:
        raise EncodingFailure("Failed to write subtitle track", diagnostic=str(e)) from e
    return path
