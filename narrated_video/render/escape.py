"""
Escaping for text embedded in compositor draw instructions.

A ``drawtext`` value is read three times before it is drawn: the filter graph
parser splits filters, the option parser splits ``key=value`` pairs, and
drawtext expands its own ``\\``/``%`` sequences. Each reader consumes one
layer of backslashes, so text is escaped once per layer, innermost first, and
never wrapped in single quotes (inside quotes a backslash is literal).

Characters the rule cannot represent make it fail closed with
:class:`EscapingViolation` instead of emitting raw text.
"""

import unicodedata
from pathlib import Path

from ..errors import EscapingViolation

# Applied in this order; backslash must come first.
DRAWTEXT_SPECIAL = ("\\", "'", '"', ":", "[", "]", "%")

# Characters that end or quote a token for the option parser and the graph parser.
OPTION_SPECIAL = "\\':"
GRAPH_SPECIAL = "\\'[],;"

WHITESPACE = " \t\r\n"


def _check_representable(text: str) -> None:
    for position, ch in enumerate(text):
        if unicodedata.category(ch) in ("Cc", "Cs"):
            raise EscapingViolation(
                "Overlay text contains a character that cannot be displayed",
                diagnostic=f"Control character U+{ord(ch):04X} at position {position} in {text[:40]!r}",
            )


def escape_drawtext(text: str) -> str:
    """Escape text for a draw instruction.

    Backslash, single quote, double quote, colon, square brackets and percent
    are each prefixed with a backslash.

    Raises:
        EscapingViolation: If the text contains control characters, including
            line breaks.
    """
    _check_representable(text)
    for ch in DRAWTEXT_SPECIAL:
        text = text.replace(ch, "\\" + ch)
    return text


def unescape_drawtext(escaped: str) -> str:
    """Reverse :func:`escape_drawtext`: a backslash takes the next character literally."""
    out = []
    chars = iter(escaped)
    for ch in chars:
        if ch == "\\":
            out.append(next(chars, ""))
        else:
            out.append(ch)
    return "".join(out)


def _escape_token(value: str, special: str) -> str:
    """Backslash-escape ``special`` characters and any leading or trailing whitespace.

    The token reader skips leading whitespace and trims trailing whitespace
    unless it is escaped; inner whitespace is kept as is.
    """
    stripped = value.strip(WHITESPACE)
    lead = len(value) - len(value.lstrip(WHITESPACE))
    tail = len(value) - len(value.rstrip(WHITESPACE)) if stripped else 0

    out = []
    for position, ch in enumerate(value):
        edge = position < lead or position >= len(value) - tail
        if ch in special or (edge and ch in WHITESPACE):
            out.append("\\")
        out.append(ch)
    return "".join(out)


def escape_option_value(value: str) -> str:
    """Escape a value for the ``key=value:key=value`` option parser."""
    return _escape_token(value, OPTION_SPECIAL)


def escape_graph_value(value: str) -> str:
    """Escape filter arguments for the filter graph parser."""
    return _escape_token(value, GRAPH_SPECIAL)


def drawtext_value(text: str) -> str:
    """The ``text=`` option value for ``text``, escaped for every parser layer."""
    return escape_graph_value(escape_option_value(escape_drawtext(text)))


def escape_filter_path(path: Path | str) -> str:
    """Escape a file path used as a filter option value (subtitles, fontfile)."""
    value = Path(path).as_posix()
    _check_representable(value)
    return escape_graph_value(escape_option_value(value))
