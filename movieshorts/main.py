#!/usr/bin/env python3
"""
movieshorts: narrated vertical shorts from full-length movies.

Usage:
    python -m movieshorts.main                    # Process every movie in movies/
    python -m movieshorts.main run --clips 24     # Same, with a fixed clip count
    python -m movieshorts.main run --clean        # Empty clips/ first, then process
    python -m movieshorts.main movie PATH         # Process one movie file
    python -m movieshorts.main status             # Show each movie's checkpoints
"""

import sys
from contextlib import contextmanager
from pathlib import Path

import anthropic
import click
import httpx
import yaml
from elevenlabs import ElevenLabs
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from movieshorts.config import CONFIG_PATH, Config, load_config
from movieshorts.media.ffmpeg import MediaEngine
from movieshorts.media.voiceover import Narrator
from movieshorts.pipeline import MoviePipeline, run_batch
from movieshorts.planner import Planner
from movieshorts.reporter import Reporter
from movieshorts.scripts import ScriptFetcher
from movieshorts.subtitles import USER_AGENT, SubtitleFetcher
from movieshorts.workspace import Workspace

console = Console()

NARRATION_TIMEOUT = 300


def _load_config_or_exit() -> Config:
    try:
        return load_config(CONFIG_PATH)
    except (EnvironmentError, yaml.YAMLError, ValueError) as e:
        console.print(f"[bold red]Configuration error:[/] {e}")
        sys.exit(1)


@contextmanager
def _pipeline(config: Config):
    """Wire the clients and the media engine into a MoviePipeline."""
    workspace = Workspace(config.workspace_root)
    workspace.ensure()
    reporter = Reporter(console=console, log_dir=workspace.logs)

    with httpx.Client(
        follow_redirects=True, timeout=30, headers={"User-Agent": USER_AGENT}
    ) as http:
        planner = Planner(
            anthropic.Anthropic(api_key=config.anthropic_api_key),
            reporter,
            model=config.planner_model,
        )
        narrator = Narrator(
            ElevenLabs(api_key=config.elevenlabs_api_key, timeout=NARRATION_TIMEOUT),
            voice_id=config.voice_id,
            model_id=config.voice_model,
            output_format=config.voice_output_format,
            reporter=reporter,
        )
        yield MoviePipeline(
            workspace=workspace,
            subtitles=SubtitleFetcher(http, reporter),
            scripts=ScriptFetcher(http, reporter),
            planner=planner,
            narrator=narrator,
            media=MediaEngine(reporter, config.ffmpeg_bin, config.ffprobe_bin),
            reporter=reporter,
            min_clips=config.min_clips,
            max_clips=config.max_clips,
            min_total_seconds=config.min_total_seconds,
            max_total_seconds=config.max_total_seconds,
        )


@click.group(invoke_without_command=True)
@click.pass_context
def cli(ctx):
    """movieshorts: turn movies into narrated vertical shorts"""
    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
@click.option("--clips", "num_clips", type=click.IntRange(min=1), default=None,
              help="Clips to request per movie (default: random in the configured range)")
@click.option("--clean", is_flag=True, help="Empty clips/ before processing")
def run(num_clips, clean):
    """Process every movie in movies/ that has no output yet"""
    config = _load_config_or_exit()

    console.print(Panel.fit(
        "[bold cyan]movieshorts[/bold cyan]\n"
        f"Workspace: {config.workspace_root}",
        border_style="cyan"
    ))

    with _pipeline(config) as pipeline:
        if clean:
            pipeline.reporter.info("Clearing clips/ folder...")
            pipeline.workspace.clear_clips()
        processed = run_batch(pipeline, num_clips)

    console.print(f"\n[bold green]Processed: {processed}[/bold green]")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--clips", "num_clips", type=click.IntRange(min=1), default=None,
              help="Clips to request (default: random in the configured range)")
def movie(path, num_clips):
    """Process a single movie file"""
    config = _load_config_or_exit()

    with _pipeline(config) as pipeline:
        job = pipeline.workspace.job(path)
        if num_clips is None:
            num_clips = pipeline.pick_clip_count()
        pipeline.reporter.stage(f"=== Processing: {job.title} ===")
        ok = pipeline.process(job, num_clips)

    if ok:
        console.print(f"\n[bold green]Done: {job.title}[/bold green]")
    else:
        console.print(f"\n[bold red]Failed: {job.title}[/bold red]")
        sys.exit(1)


@cli.command()
def status():
    """Show which stages each movie in movies/ has completed"""
    config = _load_config_or_exit()
    workspace = Workspace(config.workspace_root)

    movies = workspace.list_movies()
    if not movies:
        console.print(f"[yellow]No movies found in {workspace.movies}[/yellow]")
        return

    table = Table(title="Movie Checkpoints")
    table.add_column("Movie", style="bold")
    for heading in ("Subtitles", "Normalized", "Script", "Plan", "Output", "Vertical"):
        table.add_column(heading, justify="center")

    for source in movies:
        job = workspace.job(source)
        checkpoints = (
            job.raw_subtitles, job.normalized_subtitles, job.script,
            job.plan, job.final_output, job.vertical_output,
        )
        cells = [
            "[green]✓[/green]" if cp.validate() else "[dim]-[/dim]"
            for cp in checkpoints
        ]
        table.add_row(job.title, *cells)

    console.print(table)


if __name__ == "__main__":
    cli()
