"""
Video synthesis pipeline.

Stages run in order because each consumes the previous one's output:

1. Chunk the script, synthesize speech and stitch the audio
2. Align words, restore punctuation and build caption lines
3. Schedule overlays and assemble the compositing instructions
4. Run the compositor

All intermediate files live in a job-scoped working directory that is removed
when the run ends, whether it succeeded or not.
"""

import logging
import shutil
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..audio import Aligner, TTSProvider, chunk_script, get_audio_duration, get_tts_provider
from ..audio.stitcher import stitch_audio, synthesize_chunks
from ..cancellation import CancellationToken
from ..captions import ReconcileStats, build_caption_lines, reconcile, write_ass
from ..config import Config
from ..errors import EncodingFailure
from ..models import Timeline, VideoRequest
from ..render import FFmpegCompositor, build_instructions, default_renderers, render_background
from ..render.images import BackgroundRenderer
from ..timeline import build_timeline, format_chapters, plan_overlays, update_description
from .jobs import JobHandle, JobRunner, JobStatus

logger = logging.getLogger(__name__)


@dataclass
class SynthesisContext:
    """Owns the working directory of a single job."""

    job_id: str
    work_dir: Path
    keep_intermediates: bool = False

    @classmethod
    def create(cls, base_dir: Path | str, job_id: str | None = None, keep_intermediates: bool = False):
        job_id = job_id or uuid.uuid4().hex[:12]
        work_dir = Path(base_dir) / job_id
        work_dir.mkdir(parents=True, exist_ok=True)
        return cls(job_id=job_id, work_dir=work_dir, keep_intermediates=keep_intermediates)

    def path(self, name: str) -> Path:
        return self.work_dir / name

    def cleanup(self) -> None:
        if self.keep_intermediates or not self.work_dir.exists():
            return
        shutil.rmtree(self.work_dir, ignore_errors=True)
        logger.debug("Removed working directory %s", self.work_dir)


@dataclass
class SynthesisResult:
    """Outputs of a finished synthesis run."""

    video_path: Path
    duration: float
    timeline: Timeline
    caption_lines: int
    overlay_events: int
    alignment_source: str
    chapters: str
    description: str
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "video_path": str(self.video_path),
            "duration": self.duration,
            "timeline": self.timeline.to_dict(),
            "caption_lines": self.caption_lines,
            "overlay_events": self.overlay_events,
            "alignment_source": self.alignment_source,
            "chapters": self.chapters,
            "description": self.description,
            "warnings": list(self.warnings),
        }


class _Progress:
    """Progress reporting with or without a job handle."""

    def __init__(self, handle: Optional[JobHandle], token: CancellationToken):
        self.handle = handle
        self.token = token

    def __call__(self, status: JobStatus, progress: int, message: str) -> None:
        self.token.raise_if_cancelled()
        if self.handle is not None:
            self.handle.report(status, progress, message)
        else:
            logger.info("[%s] (%d%%) %s", status.value, progress, message)


class VideoSynthesisPipeline:
    """Turns a :class:`VideoRequest` into a narrated, captioned video."""

    def __init__(
        self,
        config: Config | None = None,
        tts: TTSProvider | None = None,
        aligner: Aligner | None = None,
        compositor: FFmpegCompositor | None = None,
        renderers: list[BackgroundRenderer] | None = None,
    ):
        """Initialize the pipeline.

        Args:
            config: Configuration. Uses defaults if not provided.
            tts: Speech synthesis adapter. Built from config if not provided.
            aligner: Word alignment chain. Built from config if not provided.
            compositor: Compositor. Built from config if not provided.
            renderers: Background backends in priority order. Defaults to the
                request's image, then a generated gradient, then a flat frame.
        """
        self.config = config or Config()
        self.tts = tts or get_tts_provider(self.config)
        self.aligner = aligner or Aligner.from_config(self.config.transcription)
        self.compositor = compositor or FFmpegCompositor(self.config.compositor)
        self.renderers = renderers

    def run(
        self,
        request: VideoRequest,
        output_path: Path | str,
        handle: JobHandle | None = None,
        context: SynthesisContext | None = None,
    ) -> SynthesisResult:
        """Synthesize one video.

        Args:
            request: Script and side-data.
            output_path: Destination video file.
            handle: Job handle for progress and cancellation, if run as a job.
            context: Working directory owner. A fresh one is created under
                ``config.paths.work_dir`` when omitted.

        Returns:
            SynthesisResult describing the rendered video.

        Raises:
            NarratedVideoError: Any non-recoverable stage failure.
        """
        cfg = self.config
        token = handle.token if handle is not None else CancellationToken()
        report = _Progress(handle, token)
        context = context or SynthesisContext.create(cfg.paths.work_dir)
        output_path = Path(output_path)
        notes: list[str] = []

        try:
            # Stage 1: speech
            report(JobStatus.SYNTHESIZING_AUDIO, 5, "Chunking script")
            chunks = chunk_script(request.script, cfg.tts.max_chunk_chars)
            report(JobStatus.SYNTHESIZING_AUDIO, 10, f"Synthesizing {len(chunks)} chunk(s)")
            chunk_paths = synthesize_chunks(
                chunks, self.tts, context.path("chunks"), cfg.tts.max_workers, cancel=token
            )
            report(JobStatus.SYNTHESIZING_AUDIO, 35, "Stitching audio")
            audio_path = stitch_audio(
                chunk_paths,
                context.path(f"narration.{self.tts.file_extension}"),
                ffmpeg_path=cfg.compositor.ffmpeg_path,
            )
            try:
                duration = get_audio_duration(audio_path, cfg.compositor.ffprobe_path)
            except (RuntimeError, FileNotFoundError) as e:
                raise EncodingFailure("Could not read narration length", diagnostic=str(e)) from e

            # Stage 2: captions
            report(JobStatus.ALIGNING_CAPTIONS, 40, f"Aligning {duration:.1f}s of narration")
            alignment = self.aligner.align(audio_path, request.script)
            if alignment.degraded:
                notes.append("Caption timing estimated from speaking rate")
                words = alignment.words
            else:
                stats = ReconcileStats()
                words = reconcile(alignment.words, request.script, cfg.captions.search_window, stats)
                if stats.total and stats.unmatched * 2 > stats.total:
                    notes.append("Caption punctuation partially restored")
            lines = build_caption_lines(words, cfg.captions)
            subtitle_path = write_ass(
                lines, context.path("captions.ass"), cfg.captions,
                title=request.title, width=cfg.video.width, height=cfg.video.height,
            )
            report(JobStatus.ALIGNING_CAPTIONS, 55, f"Built {len(lines)} caption line(s)")

            # Stage 3: overlays
            report(JobStatus.SCHEDULING_OVERLAYS, 60, "Scheduling overlays")
            prices = request.price_snapshot()
            collectibles = request.collectible_snapshot()
            timeline = build_timeline(
                duration,
                request.script,
                request.topic_list(),
                has_prices=prices is not None,
                has_collectibles=collectibles is not None,
                config=cfg.timeline,
            )
            notes.extend(timeline.notes)
            events = plan_overlays(timeline, prices, collectibles, cfg.overlays)

            renderers = self.renderers or default_renderers(request.background_image, cfg.compositor.ffmpeg_path)
            background = render_background(
                renderers, context.path("background.png"), cfg.video.width, cfg.video.height, request.title
            )
            if background.backend != renderers[0].name:
                notes.append(f"Background rendered with {background.backend}")

            instructions = build_instructions(cfg, background.path, audio_path, subtitle_path, events, prices)
            # Escaping runs here so bad overlay text fails before the compositor starts.
            instructions.filter_graph()
            report(JobStatus.SCHEDULING_OVERLAYS, 70, f"Scheduled {len(events)} overlay event(s)")

            # Stage 4: composite
            report(JobStatus.COMPOSITING, 75, "Compositing video")
            video_path = self.compositor.compose(instructions, output_path)
            token.raise_if_cancelled()

            return SynthesisResult(
                video_path=video_path,
                duration=duration,
                timeline=timeline,
                caption_lines=len(lines),
                overlay_events=len(events),
                alignment_source=alignment.source,
                chapters=format_chapters(timeline),
                description=update_description(request.description, timeline),
                warnings=notes,
            )
        finally:
            context.cleanup()

    def submit(self, runner: JobRunner, request: VideoRequest, output_path: Path | str) -> str:
        """Run :meth:`run` as a background job.

        Returns:
            The job ID.
        """
        context = SynthesisContext.create(self.config.paths.work_dir)

        def task(handle: JobHandle) -> dict[str, Any]:
            return self.run(request, output_path, handle=handle, context=context).to_dict()

        return runner.submit(task, context=context)
