"""Error taxonomy for video synthesis.

Every error carries two messages: ``user_message`` is safe to surface in a job
status, ``diagnostic`` holds the full detail for logs.
"""

import re


class NarratedVideoError(Exception):
    """Base class for synthesis failures."""

    def __init__(self, user_message: str, diagnostic: str | None = None):
        super().__init__(user_message)
        self.user_message = user_message
        self.diagnostic = diagnostic if diagnostic is not None else user_message


class ExternalServiceError(NarratedVideoError):
    """A speech, transcription or image backend failed.

    ``completed`` is the number of chunks that synthesized before the failure,
    so a caller can retry the remaining ones individually.
    """

    def __init__(self, user_message: str, diagnostic: str | None = None, completed: int = 0):
        super().__init__(user_message, diagnostic)
        self.completed = completed


class InputTooLong(ExternalServiceError):
    """A text chunk exceeds the synthesis adapter's input limit."""

    def __init__(self, length: int, limit: int):
        super().__init__(
            f"Text chunk of {length} characters exceeds the {limit} character limit",
        )
        self.length = length
        self.limit = limit


class AlignmentUnavailable(ExternalServiceError):
    """Word-level timestamps could not be obtained from a backend."""


class EncodingFailure(NarratedVideoError):
    """Audio, subtitle or video encoding failed."""


class AudioStitchError(EncodingFailure):
    """Concatenating chunk audio failed; chunk files are kept for a retry."""

    def __init__(self, user_message: str, diagnostic: str | None = None, synthesized: int = 0):
        super().__init__(user_message, diagnostic)
        self.synthesized = synthesized


class EscapingViolation(EncodingFailure):
    """Text cannot be represented safely inside a compositor instruction."""


class CompositorFailure(EncodingFailure):
    """The external compositor failed or timed out."""


class JobCancelled(NarratedVideoError):
    """A job's cancellation token was set before the next stage began."""


class NarratedVideoWarning(UserWarning):
    """Base category for degraded-quality conditions."""


class ReconciliationLowConfidence(NarratedVideoWarning):
    """Most recognized words could not be matched back to the script."""


class SchedulingInfeasible(NarratedVideoWarning):
    """Topics could not be packed at their narrated positions."""


_PATH_RE = re.compile(r"(?:[A-Za-z]:)?(?:[\\/][^\s\\/:'\"]+){2,}")


def sanitize_message(text: str, limit: int = 160) -> str:
    """Reduce tool output to a short message without filesystem paths."""
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    message = lines[-1] if lines else ""
    message = _PATH_RE.sub("<path>", message)
    if len(message) > limit:
        message = message[: limit - 3].rstrip() + "..."
    return message
