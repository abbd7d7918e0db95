"""Chunk-level speech synthesis and audio stitching.

Chunks are synthesized on a bounded thread pool. Results are keyed by chunk
index, never by completion order, so the stitched track always follows the
script.
"""

import logging
import subprocess
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Optional

from ..cancellation import CancellationToken
from ..errors import AudioStitchError, ExternalServiceError, InputTooLong
from ..models import ScriptChunk
from .chunker import chunk_script
from .tts import TTSProvider

logger = logging.getLogger(__name__)


def _chunk_path(output_dir: Path, index: int, ext: str, part: Optional[int] = None) -> Path:
    if part is None:
        return output_dir / f"chunk_{index:04d}.{ext}"
    return output_dir / f"chunk_{index:04d}_{part:02d}.{ext}"


def _synthesize_chunk(
    chunk: ScriptChunk,
    provider: TTSProvider,
    output_dir: Path,
    cancel: Optional[CancellationToken],
) -> list[Path]:
    """Synthesize one chunk, splitting it further if the provider rejects its length."""
    if cancel is not None:
        cancel.raise_if_cancelled()

    ext = provider.file_extension
    try:
        return [provider.generate(chunk.text, _chunk_path(output_dir, chunk.index, ext))]
    except InputTooLong as e:
        limit = max(1, e.limit // 2)
        logger.warning(
            "Chunk %d (%d chars) rejected by %s, re-splitting at %d chars",
            chunk.index, e.length, provider.name, limit,
        )
        return [
            provider.generate(sub.text, _chunk_path(output_dir, chunk.index, ext, sub.index))
            for sub in chunk_script(chunk.text, limit)
        ]


def synthesize_chunks(
    chunks: list[ScriptChunk],
    provider: TTSProvider,
    output_dir: Path,
    max_workers: int = 4,
    cancel: Optional[CancellationToken] = None,
) -> list[Path]:
    """Synthesize all chunks with bounded concurrency.

    Args:
        chunks: Chunks from :func:`chunk_script`.
        provider: Speech synthesis adapter.
        output_dir: Where per-chunk audio files are written.
        max_workers: Upper bound on simultaneous synthesis calls.
        cancel: Optional token checked before each chunk starts.

    Returns:
        Audio file paths in chunk index order.

    Raises:
        ExternalServiceError: With ``completed`` set to the number of chunks
            that synthesized before the failure.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    executor = ThreadPoolExecutor(max_workers=max_workers)
    futures: dict[Future, ScriptChunk] = {
        executor.submit(_synthesize_chunk, chunk, provider, output_dir, cancel): chunk
        for chunk in chunks
    }
    failure: Optional[BaseException] = None
    try:
        for future in as_completed(futures):
            failure = future.exception()
            if failure is not None:
                break
    finally:
        for future in futures:
            future.cancel()
        executor.shutdown(wait=True)

    if failure is not None:
        completed = sum(
            1 for f in futures if not f.cancelled() and f.exception() is None
        )
        if isinstance(failure, ExternalServiceError):
            raise ExternalServiceError(
                f"{failure.user_message} ({completed} of {len(chunks)} chunks synthesized)",
                diagnostic=failure.diagnostic,
                completed=completed,
            ) from failure
        raise failure

    paths: list[Path] = []
    for future, chunk in sorted(futures.items(), key=lambda item: item[1].index):
        chunk_paths = future.result()
        if len(chunk_paths) == 1:
            chunk.audio_path = chunk_paths[0]
        paths.extend(chunk_paths)

    logger.info("Synthesized %d chunk(s) into %d audio file(s)", len(chunks), len(paths))
    return paths


def _concat_entry(path: Path) -> str:
    quoted = str(Path(path).resolve()).replace("'", "'\\''")
    return f"file '{quoted}'\n"


def stitch_audio(
    chunk_paths: list[Path],
    output_path: Path,
    ffmpeg_path: str = "ffmpeg",
    cleanup: bool = True,
    timeout: float = 300.0,
) -> Path:
    """Concatenate chunk audio files in the given order.

    A single chunk is returned as-is. After a successful stitch the chunk files
    are deleted; on failure they are kept so chunks can be retried.

    Raises:
        AudioStitchError: With ``synthesized`` set to the number of chunk files.
    """
    if not chunk_paths:
        raise AudioStitchError("No audio chunks to stitch", synthesized=0)
    if len(chunk_paths) == 1:
        return Path(chunk_paths[0])

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    list_file = output_path.with_suffix(".concat.txt")
    list_file.write_text("".join(_concat_entry(p) for p in chunk_paths))

    cmd = [
        ffmpeg_path, "-y",
        "-loglevel", "error",
        "-f", "concat",
        "-safe", "0",
        "-i", str(list_file),
        "-c", "copy",
        str(output_path),
    ]
    try:
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            raise AudioStitchError(
                f"Audio stitching failed after {len(chunk_paths)} chunks synthesized",
                diagnostic=str(e),
                synthesized=len(chunk_paths),
            ) from e

        if result.returncode != 0:
            raise AudioStitchError(
                f"Audio stitching failed after {len(chunk_paths)} chunks synthesized",
                diagnostic=result.stderr or result.stdout or "ffmpeg concat failed",
                synthesized=len(chunk_paths),
            )
    finally:
        list_file.unlink(missing_ok=True)

    if cleanup:
        for path in chunk_paths:
            Path(path).unlink(missing_ok=True)

    return output_path
