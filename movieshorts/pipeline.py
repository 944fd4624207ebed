"""
Per-movie production pipeline and the batch driver around it.

A movie moves through nine stages: subtitles, normalization, screenplay,
plan, per-clip narration and cutting, concatenation, music, vertical
render, retirement. Every stage first asks its checkpoint whether the
work is already on disk, so a crashed or repeated run only redoes what
is missing.

Hard failures (no subtitles, no plan, no clips, concat failure) stop the
movie. Soft failures (no screenplay, no music, no vertical render) are
reported and the movie still counts as done.
"""

import random
from pathlib import Path

from movieshorts import config
from movieshorts.media.ffmpeg import MediaEngine, write_concat_manifest
from movieshorts.media.voiceover import Narrator
from movieshorts.music import MusicAssembler
from movieshorts.planner import ClipPlan, Planner, check_plan_bounds, load_plan, save_plan
from movieshorts.reporter import Reporter
from movieshorts.scripts import ScriptFetcher
from movieshorts.subtitles import SubtitleFetcher, normalize_subtitles
from movieshorts.workspace import MovieJob, Workspace


class MoviePipeline:
    def __init__(
        self,
        workspace: Workspace,
        subtitles: SubtitleFetcher,
        scripts: ScriptFetcher,
        planner: Planner,
        narrator: Narrator,
        media: MediaEngine,
        reporter: Reporter,
        min_clips: int = config.MIN_NUM_CLIPS,
        max_clips: int = config.MAX_NUM_CLIPS,
        min_total_seconds: float = config.MIN_TOTAL_SECONDS,
        max_total_seconds: float = config.MAX_TOTAL_SECONDS,
        rng: random.Random | None = None,
    ):
        self.workspace = workspace
        self.subtitles = subtitles
        self.scripts = scripts
        self.planner = planner
        self.narrator = narrator
        self.media = media
        self.reporter = reporter
        self.min_clips = min_clips
        self.max_clips = max_clips
        self.min_total_seconds = min_total_seconds
        self.max_total_seconds = max_total_seconds
        self.rng = rng or random.Random()
        self.music = MusicAssembler(
            probe=media.probe_duration, trim=media.trim_audio, rng=self.rng
        )

    def pick_clip_count(self) -> int:
        return self.rng.randint(self.min_clips, self.max_clips)

    def process(self, job: MovieJob, num_clips: int) -> bool:
        """Run every stage for one movie. Returns True if an output exists at the end."""
        r = self.reporter
        self.workspace.ensure()

        if job.final_output.validate():
            r.success(f"Output already exists: {job.final_output.path}")
            self._render_vertical(job)
            self._retire(job)
            return True

        if not self._acquire_subtitles(job):
            return False
        if not self._normalize_subtitles(job):
            return False

        try:
            subtitle_text = job.normalized_subtitles.path.read_text(
                encoding="utf-8", errors="replace"
            )
        except OSError as e:
            r.warn(f"Could not read {job.normalized_subtitles.path}: {e}")
            return False
        r.success(
            f"Loaded subtitles for planning: {job.normalized_subtitles.path.name} "
            f"({len(subtitle_text)} chars)"
        )

        script_text = self._acquire_script(job)

        clips = self._plan(job, subtitle_text, script_text, num_clips)
        if not clips:
            r.warn(f"No plan returned for {job.title}")
            return False

        produced = self._produce_clips(job, clips)
        if not produced:
            r.warn(f"No clips produced for {job.title}")
            return False
        write_concat_manifest(job.concat_manifest, produced)
        r.success(f"Clips produced: {len(produced)} (concat list: {job.concat_manifest.name})")

        r.info(f"Concatenating clips -> {job.concat_video.name}")
        if not self.media.concat_videos(job.concat_manifest, job.concat_video):
            job.concat_video.unlink(missing_ok=True)
            r.warn(f"Concat failed for {job.title}")
            return False
        r.success(f"Concat OK: {job.concat_video.name}")

        self._finish_audio(job)
        if not job.final_output.validate():
            r.warn(f"No final output written for {job.title}")
            return False

        self._render_vertical(job)
        self._retire(job)
        return True

    # -- stages ---------------------------------------------------------

    def _acquire_subtitles(self, job: MovieJob) -> bool:
        r = self.reporter
        raw = job.raw_subtitles
        if raw.exists():
            r.success(f"Found subtitles: {raw.path}")
            return True
        r.info(f"No subtitles found for {job.title}; attempting download...")
        if not self.subtitles.fetch(job.title, raw.path) or not raw.exists():
            r.warn(f"Subtitle download failed for {job.title}. Place the .srt at: {raw.path}")
            return False
        r.success(f"Downloaded subtitles: {raw.path}")
        return True

    def _normalize_subtitles(self, job: MovieJob) -> bool:
        r = self.reporter
        normalized = job.normalized_subtitles
        if normalized.exists():
            r.success(f"Using cached converted subtitles: {normalized.path}")
            return True
        r.info(f"Converting subtitle timestamps to seconds -> {normalized.path.name}")
        if not normalize_subtitles(job.raw_subtitles.path, normalized.path):
            normalized.path.unlink(missing_ok=True)
            r.warn(f"Failed to convert subtitles for {job.title}")
            return False
        r.success(f"Converted subtitles: {normalized.path}")
        return True

    def _acquire_script(self, job: MovieJob) -> str | None:
        r = self.reporter
        script = job.script
        discarded = script.discard_if_invalid()
        if discarded is not None:
            r.warn(f"Script file looks too small ({discarded} bytes), deleted to retry: {script.path}")

        if script.validate():
            r.success(f"Found cached script: {script.path} ({script.size()} bytes)")
        else:
            r.info(f"Attempting IMSDb script scrape for {job.title} (optional context)...")
            url = self.scripts.fetch(job.title, script.path)
            if url is None or not script.exists():
                r.warn(f"IMSDb scrape failed for {job.title}; continuing with subtitles only")
                return None
            r.success(f"Script saved: {script.path} (source: {url})")

        try:
            text = script.path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            r.warn(f"Script file unreadable, continuing with subtitles only: {e}")
            return None
        return text or None

    def _plan(
        self, job: MovieJob, subtitle_text: str, script_text: str | None, num_clips: int
    ) -> list[ClipPlan]:
        r = self.reporter
        if job.plan.validate():
            clips = load_plan(job.plan.path)
            if clips:
                r.success(f"Using saved plan: {job.plan.path.name} ({len(clips)} clips)")
                return clips
            r.warn(f"Saved plan {job.plan.path.name} is unreadable; requesting a new one")

        r.info(f"Requesting clip plan ({num_clips} clips target)...")
        result = self.planner.request(job.title, subtitle_text, script_text, num_clips)
        if not result.ok and result.retry_without_script and script_text:
            r.warn(f"Plan request failed with script context; retrying without script for {job.title}")
            result = self.planner.request(job.title, subtitle_text, None, num_clips)
        if not result.ok:
            return []

        for warning in check_plan_bounds(
            result.clips, self.min_clips, self.max_clips,
            self.min_total_seconds, self.max_total_seconds,
        ):
            r.warn(warning)
        save_plan(result.clips, job.plan.path)
        return result.clips

    def _produce_clips(self, job: MovieJob, clips: list[ClipPlan]) -> list[Path]:
        r = self.reporter
        produced = []
        total = len(clips)
        for index, clip in enumerate(clips, start=1):
            if clip.start <= 0:
                r.warn(f"Skipping clip {index} (start<=0)")
                continue
            if clip.end <= clip.start:
                r.warn(f"Skipping clip {index} (end<=start)")
                continue

            out = job.clip(index)
            if out.validate():
                r.success(f"Reusing clip {index}: {out.path.name}")
                produced.append(out.path)
                continue

            narration = job.narration(index)
            if narration.validate():
                r.info(f"Reusing narration {index}/{total}: {narration.path.name}")
            else:
                r.info(f"Narration {index}/{total} -> {narration.path.name}")
                if self.narrator.synthesize(clip.narration, narration.path) is None:
                    r.warn(f"Narration failed for clip {index} of {job.title}")
                    continue

            duration = self.media.probe_duration(narration.path)
            if duration is None:
                r.warn(f"Bad narration duration for clip {index}")
                continue

            r.info(
                f"Building clip {index}: {clip.start} -> {clip.end} sec "
                f"(narration {duration:.2f}s) -> {out.path.name}"
            )
            if not self.media.cut_and_retime(
                job.source, clip.start, clip.end, narration.path, duration, out.path
            ):
                out.path.unlink(missing_ok=True)
                r.warn(f"Failed to build clip {index}")
                continue

            produced.append(out.path)
            r.success(f"Built clip {index}: {out.path.name}")
        return produced

    def _finish_audio(self, job: MovieJob) -> None:
        """Mix background music under the narration track into the final output.

        Any failure falls back to the narration-only track.
        """
        r = self.reporter
        final = job.final_output.path
        final.parent.mkdir(parents=True, exist_ok=True)

        songs = self.workspace.list_songs()
        if not songs:
            r.warn("No background music found; output will be narration-only.")
            self._use_narration_only(job)
            return

        duration = self.media.probe_duration(job.concat_video)
        if duration is None:
            r.warn("Could not read the concatenated duration; output will be narration-only.")
            self._use_narration_only(job)
            return
        r.success(f"Final duration: {duration:.2f} seconds")

        r.info(f"Building music bed ({len(songs)} songs available)...")
        bed = self.music.assemble(songs, duration, job.music_part)
        if not bed.fragments:
            r.warn("No usable background music; output will be narration-only.")
            self._use_narration_only(job)
            return
        if not bed.complete:
            r.warn(f"Music bed stopped short at {bed.covered:.2f}s of {bed.target:.2f}s")
        r.success(
            f"Music parts created: {len(bed.fragments)} "
            f"(covered {bed.covered:.2f}s / {bed.target:.2f}s)"
        )

        write_concat_manifest(job.music_manifest, [f.path for f in bed.fragments])
        if not self.media.concat_audio(job.music_manifest, job.music_bed):
            r.warn("Music concat failed; output will be narration-only.")
            self._use_narration_only(job)
            return

        r.info(f"Mixing narration and music -> {final}")
        if not self.media.mix(job.concat_video, job.music_bed, final):
            final.unlink(missing_ok=True)
            r.warn("Mix failed; output will be narration-only.")
            self._use_narration_only(job)
            return

        job.concat_video.unlink(missing_ok=True)
        r.success(f"Wrote output: {final}")

    def _use_narration_only(self, job: MovieJob) -> None:
        final = job.final_output.path
        try:
            job.concat_video.replace(final)
        except OSError as e:
            self.reporter.warn(f"Could not move {job.concat_video.name} to {final}: {e}")
            return
        self.reporter.success(f"Wrote output (no music): {final}")

    def _render_vertical(self, job: MovieJob) -> None:
        r = self.reporter
        vertical = job.vertical_output
        if vertical.validate():
            r.success(f"Vertical render already exists: {vertical.path}")
            return
        vertical.path.parent.mkdir(parents=True, exist_ok=True)
        r.info(f"Rendering vertical -> {vertical.path}")
        if not self.media.reformat_vertical(job.final_output.path, vertical.path):
            vertical.path.unlink(missing_ok=True)
            r.warn(f"Vertical render failed for {job.title}")
            return
        r.success(f"Vertical render OK: {vertical.path}")

    def _retire(self, job: MovieJob) -> None:
        if not job.source.exists():
            return
        retired = job.retired_source
        retired.parent.mkdir(parents=True, exist_ok=True)
        try:
            job.source.replace(retired)
        except OSError as e:
            self.reporter.warn(f"Could not retire {job.source}: {e}")
            return
        self.reporter.success(f"Retired source movie -> {retired}")


def run_batch(pipeline: MoviePipeline, num_clips: int | None = None) -> int:
    """Process every movie in movies/ that has no output yet.

    The clip count is drawn once per batch unless given. Returns the
    number of movies that finished.
    """
    workspace = pipeline.workspace
    reporter = pipeline.reporter
    workspace.ensure()
    if num_clips is None:
        num_clips = pipeline.pick_clip_count()

    movies = workspace.list_movies()
    succeeded, failed, skipped = [], [], []
    for source in movies:
        job = workspace.job(source)
        if job.final_output.validate():
            reporter.info(f"Skipping {job.title} (already in output/)")
            skipped.append(job.title)
            continue

        reporter.stage(f"=== Processing: {job.title} ===")
        try:
            ok = pipeline.process(job, num_clips)
        except Exception as e:
            reporter.error(f"{job.title} failed with an unexpected error: {e}")
            ok = False

        if ok:
            succeeded.append(job.title)
            reporter.success(f"DONE: {job.title}")
        else:
            failed.append(job.title)
            reporter.warn(f"FAILED: {job.title}")

    reporter.info(f"All done. Processed: {len(succeeded)}")
    reporter.record("batch", {
        "movies": len(movies),
        "num_clips": num_clips,
        "succeeded": succeeded,
        "failed": failed,
        "skipped": skipped,
    })
    return len(succeeded)
