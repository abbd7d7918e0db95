"""Run ffmpeg against a compositing instruction set."""

import logging
import subprocess
from pathlib import Path

from ..config import CompositorConfig
from ..errors import CompositorFailure, sanitize_message
from .drawing import CompositorInstructions

logger = logging.getLogger(__name__)


class FFmpegCompositor:
    """Single blocking ffmpeg invocation with an enforced timeout."""

    def __init__(self, config: CompositorConfig | None = None):
        self.config = config or CompositorConfig()

    def compose(self, instructions: CompositorInstructions, output_path: Path) -> Path:
        """Render the final video.

        The filter graph is written next to the output and passed with
        ``-filter_complex_script`` so that overlay text never appears on a
        command line.

        Args:
            instructions: Layered instruction set.
            output_path: Destination video file.

        Returns:
            Path to the rendered video.

        Raises:
            CompositorFailure: If ffmpeg is missing, times out, or exits non-zero.
                ``user_message`` is short and path-free; ``diagnostic`` keeps
                the full stderr.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        filter_script = instructions.write_filter_script(output_path.with_suffix(".filters.txt"))
        cmd = instructions.to_args(output_path, filter_script, self.config.ffmpeg_path)

        logger.info("Compositing %s", output_path.name)
        logger.debug("ffmpeg command: %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.config.timeout_seconds)
        except FileNotFoundError as e:
            raise CompositorFailure(
                "Video compositor is not installed",
                diagnostic=f"{self.config.ffmpeg_path}: {e}",
            ) from e
        except subprocess.TimeoutExpired as e:
            raise CompositorFailure(
                f"Video compositing timed out after {self.config.timeout_seconds:g}s",
                diagnostic=str(e),
            ) from e
        finally:
            filter_script.unlink(missing_ok=True)

        if result.returncode != 0:
            stderr = result.stderr or result.stdout or "Unknown compositor error"
            logger.error("ffmpeg exited with %d: %s", result.returncode, stderr)
            raise CompositorFailure(
                f"Video compositing failed: {sanitize_message(stderr)}",
                diagnostic=stderr,
            )

        return output_path
