"""Command-line entry point for narrated video synthesis.

Usage:
    python -m narrated_video.cli render request.yaml -o video.mp4     # Render a video
    python -m narrated_video.cli render request.json --tts mock       # Render without API calls
    python -m narrated_video.cli chunk script.txt --max-chars 4096    # Show speech chunks
    python -m narrated_video.cli timeline script.txt --duration 300   # Show overlay schedule

A request file holds the script plus optional title, description, topics,
prices, collectibles and background image.
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_data(path: Path) -> dict:
    """Read a YAML or JSON mapping."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    return yaml.safe_load(text) or {}


def _load_request(path: Path):
    from ..models import VideoRequest

    return VideoRequest(**_load_data(path))


def cmd_render(args: argparse.Namespace) -> int:
    """Render a narrated video from a request file."""
    from ..config import load_config
    from ..pipeline import JobRunner, JobStatus, VideoSynthesisPipeline

    request_path = Path(args.request)
    if not request_path.exists():
        console.print(f"[red]Request file not found: {request_path}[/red]")
        return 1

    try:
        request = _load_request(request_path)
    except (ValidationError, yaml.YAMLError, json.JSONDecodeError) as e:
        console.print(f"[red]Invalid request file:[/red] {e}")
        return 1

    config = load_config(args.config)
    if args.tts:
        config.tts.provider = args.tts
    if args.tts == "mock":
        config.tts.output_format = "wav"
        config.transcription.backends = ["none"]

    output = Path(args.output) if args.output else Path(config.paths.output_dir) / f"{request_path.stem}.mp4"

    try:
        pipeline = VideoSynthesisPipeline(config)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    runner = JobRunner(max_jobs=1)
    try:
        job_id = pipeline.submit(runner, request, output)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            console=console,
        ) as progress:
            task = progress.add_task("Queued", total=100)
            while True:
                job = runner.get(job_id)
                progress.update(task, completed=job.progress, description=job.message)
                if job.status.is_terminal:
                    break
                time.sleep(0.2)
    except KeyboardInterrupt:
        runner.cancel(job_id)
        console.print("[yellow]Cancelling...[/yellow]")
        job = runner.wait(job_id)
    finally:
        runner.shutdown(wait=True)

    if job.status != JobStatus.READY:
        console.print(f"[red]Failed:[/red] {job.error or job.message}")
        return 1

    result = job.result
    console.print(f"[green]Video ready:[/green] {result['video_path']} ({result['duration']:.1f}s)")
    for note in result["warnings"]:
        console.print(f"[yellow]Note:[/yellow] {note}")
    console.print("\n[bold]Chapters[/bold]")
    console.print(result["chapters"], markup=False)
    return 0


def cmd_chunk(args: argparse.Namespace) -> int:
    """Show how a script is split for speech synthesis."""
    from ..audio import chunk_script

    script_path = Path(args.script)
    if not script_path.exists():
        console.print(f"[red]Script not found: {script_path}[/red]")
        return 1

    try:
        chunks = chunk_script(script_path.read_text(encoding="utf-8"), args.max_chars)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    table = Table(title=f"{len(chunks)} chunk(s), limit {args.max_chars} chars")
    table.add_column("#", justify="right")
    table.add_column("Chars", justify="right")
    table.add_column("Starts with")
    for chunk in chunks:
        preview = chunk.text[:60] + ("..." if len(chunk.text) > 60 else "")
        table.add_row(str(chunk.index), str(len(chunk.text)), preview)
    console.print(table)
    return 0


def cmd_timeline(args: argparse.Namespace) -> int:
    """Show the overlay timeline for a script of known duration."""
    from ..config import load_config
    from ..models import Topic
    from ..timeline import build_timeline, format_chapters, format_timestamp

    script_path = Path(args.script)
    if not script_path.exists():
        console.print(f"[red]Script not found: {script_path}[/red]")
        return 1

    topics = []
    if args.topics:
        data = _load_data(Path(args.topics))
        entries = data.get("topics", []) if isinstance(data, dict) else data
        topics = [Topic(title=t["title"], summary=t.get("summary", "")) if isinstance(t, dict) else Topic(str(t))
                  for t in entries]

    config = load_config(args.config)
    try:
        timeline = build_timeline(
            args.duration,
            script_path.read_text(encoding="utf-8"),
            topics,
            has_prices=not args.no_prices,
            has_collectibles=not args.no_collectibles,
            config=config.timeline,
        )
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    table = Table(title=f"Timeline ({format_timestamp(args.duration)})")
    table.add_column("Segment")
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    table.add_column("Note")
    table.add_row("Intro", "0.0", f"{timeline.intro_end:.1f}", "")
    if timeline.price_window:
        table.add_row("Prices", f"{timeline.price_window.start:.1f}", f"{timeline.price_window.end:.1f}", "")
    for topic in timeline.topic_windows:
        note = f"ideal {topic.ideal_start:.1f}" if topic.matched else "no keyword match"
        table.add_row(topic.title, f"{topic.start:.1f}", f"{topic.end:.1f}", note)
    if timeline.collectible_window:
        table.add_row(
            "Collectibles", f"{timeline.collectible_window.start:.1f}", f"{timeline.collectible_window.end:.1f}", ""
        )
    console.print(table)
    console.print(format_chapters(timeline), markup=False)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Narrated video synthesis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to config.yaml (default: ./config.yaml if present)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # render command
    render_parser = subparsers.add_parser("render", help="Render a narrated video")
    render_parser.add_argument("request", help="Request file (.yaml or .json)")
    render_parser.add_argument("--output", "-o", help="Output video path")
    render_parser.add_argument("--tts", choices=["openai", "mock"], help="Override the TTS provider")
    render_parser.set_defaults(func=cmd_render)

    # chunk command
    chunk_parser = subparsers.add_parser("chunk", help="Split a script into speech chunks")
    chunk_parser.add_argument("script", help="Script text file")
    chunk_parser.add_argument("--max-chars", type=int, default=4096, help="Chunk size limit (default: 4096)")
    chunk_parser.set_defaults(func=cmd_chunk)

    # timeline command
    timeline_parser = subparsers.add_parser("timeline", help="Compute the overlay timeline")
    timeline_parser.add_argument("script", help="Script text file")
    timeline_parser.add_argument("--duration", type=float, required=True, help="Narration length in seconds")
    timeline_parser.add_argument("--topics", help="Topics file (.yaml or .json)")
    timeline_parser.add_argument("--no-prices", action="store_true", help="Omit the price window")
    timeline_parser.add_argument("--no-collectibles", action="store_true", help="Omit the collectibles window")
    timeline_parser.set_defaults(func=cmd_timeline)

    args = parser.parse_args(argv)
    load_dotenv()

    if not args.command:
        parser.print_help()
        return 0

    _setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
