"""ffmpeg/ffprobe wrapper: the media primitives the movie pipeline is built from."""

import subprocess
from pathlib import Path

from movieshorts.checkpoints import part_path
from movieshorts.reporter import Reporter
from movieshorts.retiming import MAX_VIDEO_SPEEDUP, plan_retime

FFMPEG_BIN = "ffmpeg"
FFPROBE_BIN = "ffprobe"
COMMAND_TIMEOUT = 1800

MIN_PROBED_DURATION = 0.1

# Mix gains: narration boosted, music bed pushed well under it.
NARRATION_GAIN = 2.5
MUSIC_GAIN = 0.1

# Horizontal share of the frame kept by the vertical centre crop.
VERTICAL_CROP_FRACTION = 0.6

VIDEO_ENCODE = [
    "-c:v", "libx264", "-pix_fmt", "yuv420p", "-preset", "veryfast", "-crf", "22",
]
AUDIO_ENCODE = ["-c:a", "aac", "-b:a", "192k"]


def write_concat_manifest(manifest: Path, files: list[Path | str]) -> Path:
    """Write an ffmpeg concat list, one quoted file name per line.

    Names are written relative to the manifest's directory when possible,
    which is how ffmpeg resolves them.
    """
    manifest = Path(manifest)
    manifest.parent.mkdir(parents=True, exist_ok=True)
    lines = []
    for f in files:
        path = Path(f)
        if path.parent == manifest.parent or path.parent.resolve() == manifest.parent.resolve():
            name = path.name
        else:
            name = str(path.resolve())
        escaped = name.replace("'", "'\\''")
        lines.append(f"file '{escaped}'\n")
    manifest.write_text("".join(lines), encoding="utf-8")
    return manifest


def vertical_canvas(width: int, height: int) -> tuple[int, int]:
    """9:16 output size for a source of the given height, both sides even."""
    out_w = int(height * 9 / 16 + 0.5) & ~1
    out_h = height & ~1
    return out_w, out_h


class MediaEngine:
    """Runs ffmpeg/ffprobe for each media primitive.

    Every operation returns success/failure (probes return None on
    failure) and reports the reason; nothing here raises into the caller.
    """

    def __init__(
        self,
        reporter: Reporter,
        ffmpeg_bin: str = FFMPEG_BIN,
        ffprobe_bin: str = FFPROBE_BIN,
        timeout: int = COMMAND_TIMEOUT,
        max_speedup: float = MAX_VIDEO_SPEEDUP,
    ):
        self.reporter = reporter
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin
        self.timeout = timeout
        self.max_speedup = max_speedup

    # -- probes ---------------------------------------------------------

    def probe_duration(self, path: Path) -> float | None:
        out = self._probe([
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(path),
        ])
        if out is None:
            return None
        try:
            duration = float(out.splitlines()[0].strip())
        except (ValueError, IndexError):
            self.reporter.warn(f"Unreadable duration for {Path(path).name}: {out!r}")
            return None
        if duration <= MIN_PROBED_DURATION:
            return None
        return duration

    def probe_dimensions(self, path: Path) -> tuple[int, int] | None:
        out = self._probe([
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height",
            "-of", "csv=s=x:p=0",
            str(path),
        ])
        if out is None:
            return None
        try:
            w, h = out.splitlines()[0].strip().split("x")[:2]
            width, height = int(w), int(h)
        except (ValueError, IndexError):
            self.reporter.warn(f"Unreadable dimensions for {Path(path).name}: {out!r}")
            return None
        if width <= 0 or height <= 0:
            return None
        return width, height

    # -- video ----------------------------------------------------------

    def cut_and_retime(
        self,
        source: Path,
        start: int,
        end: int,
        narration: Path,
        narration_duration: float,
        out_path: Path,
    ) -> bool:
        """Cut [start, end] from the source, retimed to the narration's length."""
        plan = plan_retime(start, end, narration_duration, self.max_speedup)
        if plan is None:
            self.reporter.warn(
                f"Cannot retime {start}-{end}s to {narration_duration:.2f}s narration"
            )
            return False
        if plan.capped:
            self.reporter.info(
                f"Speed capped at {self.max_speedup}x: using {plan.start}-{plan.end}s "
                f"of {start}-{end}s"
            )

        cmd = [
            self.ffmpeg_bin, "-y", "-hide_banner", "-loglevel", "error",
            "-ss", str(plan.start), "-to", str(plan.end),
            "-i", str(source),
            "-i", str(narration),
            "-filter_complex", f"[0:v]setpts={plan.pts_factor:.10f}*PTS[v]",
            "-map", "[v]", "-map", "1:a",
            *VIDEO_ENCODE, *AUDIO_ENCODE,
            "-shortest",
        ]
        return self._write(cmd, out_path, f"cut {Path(out_path).name}")

    def concat_videos(self, manifest: Path, out_path: Path) -> bool:
        cmd = [
            self.ffmpeg_bin, "-y", "-hide_banner", "-loglevel", "error",
            "-f", "concat", "-safe", "0", "-i", str(manifest),
            *VIDEO_ENCODE, *AUDIO_ENCODE,
            "-movflags", "+faststart",
        ]
        return self._write(cmd, out_path, f"concat {Path(out_path).name}")

    def mix(self, video: Path, music_bed: Path, out_path: Path) -> bool:
        """Lay the music bed under the video's narration, bounded by the video."""
        graph = (
            f"[0:a]volume={NARRATION_GAIN}[a0];"
            f"[1:a]volume={MUSIC_GAIN}[a1];"
            "[a0][a1]amix=inputs=2:duration=first:dropout_transition=2[a]"
        )
        cmd = [
            self.ffmpeg_bin, "-y", "-hide_banner", "-loglevel", "error",
            "-i", str(video), "-i", str(music_bed),
            "-filter_complex", graph,
            "-map", "0:v", "-map", "[a]",
            "-c:v", "copy", *AUDIO_ENCODE,
            "-movflags", "+faststart",
        ]
        return self._write(cmd, out_path, f"mix {Path(out_path).name}")

    def reformat_vertical(self, video: Path, out_path: Path) -> bool:
        """Centre-crop and pad the video onto a 9:16 canvas."""
        dims = self.probe_dimensions(video)
        if dims is None:
            self.reporter.warn(f"Vertical: could not read dimensions of {Path(video).name}")
            return False
        duration = self.probe_duration(video)
        if duration is None:
            self.reporter.warn(f"Vertical: could not read duration of {Path(video).name}")
            return False

        out_w, out_h = vertical_canvas(*dims)
        offset = (1 - VERTICAL_CROP_FRACTION) / 2
        graph = (
            f"[0:v]crop=iw*{VERTICAL_CROP_FRACTION}:ih:iw*{offset:.1f}:0,"
            f"scale={out_w}:{out_h}:force_original_aspect_ratio=decrease,"
            f"pad={out_w}:{out_h}:(ow-iw)/2:(oh-ih)/2:black[v]"
        )
        cmd = [
            self.ffmpeg_bin, "-y", "-hide_banner", "-loglevel", "error",
            "-i", str(video),
            "-t", f"{duration:.3f}",
            "-filter_complex", graph,
            "-map", "[v]", "-map", "0:a?",
            *VIDEO_ENCODE, *AUDIO_ENCODE,
            "-movflags", "+faststart",
        ]
        return self._write(cmd, out_path, f"vertical {Path(out_path).name}")

    # -- audio ----------------------------------------------------------

    def trim_audio(self, source: Path, offset: float, duration: float, out_path: Path) -> bool:
        cmd = [
            self.ffmpeg_bin, "-y", "-hide_banner", "-loglevel", "error",
            "-ss", f"{offset:.3f}", "-i", str(source),
            "-t", f"{duration:.3f}",
            *AUDIO_ENCODE,
        ]
        return self._write(cmd, out_path, f"trim {Path(source).name}")

    def concat_audio(self, manifest: Path, out_path: Path) -> bool:
        cmd = [
            self.ffmpeg_bin, "-y", "-hide_banner", "-loglevel", "error",
            "-f", "concat", "-safe", "0", "-i", str(manifest),
            "-c", "copy",
        ]
        return self._write(cmd, out_path, f"concat {Path(out_path).name}")

    # -- plumbing -------------------------------------------------------

    def _write(self, cmd: list[str], out_path: Path, label: str) -> bool:
        """Run an ffmpeg command into a .part sibling, then move it onto out_path.

        out_path only ever holds a finished file; a killed or failed run
        leaves at most the .part file behind.
        """
        out_path = Path(out_path)
        part = part_path(out_path)
        if not self._run([*cmd, str(part)], label):
            part.unlink(missing_ok=True)
            return False
        try:
            part.replace(out_path)
        except OSError as e:
            self.reporter.warn(f"ffmpeg {label}: could not move {part.name} into place: {e}")
            part.unlink(missing_ok=True)
            return False
        return True

    def _run(self, cmd: list[str], label: str) -> bool:
        try:
            subprocess.run(cmd, check=True, capture_output=True, timeout=self.timeout)
        except subprocess.CalledProcessError as e:
            self.reporter.warn(f"ffmpeg {label} failed (exit {e.returncode}): {_tail(e.stderr)}")
            return False
        except subprocess.TimeoutExpired:
            self.reporter.warn(f"ffmpeg {label} timed out after {self.timeout}s")
            return False
        except OSError as e:
            self.reporter.warn(f"ffmpeg {label} could not start: {e}")
            return False
        return True

    def _probe(self, args: list[str]) -> str | None:
        cmd = [self.ffprobe_bin, *args]
        try:
            result = subprocess.run(
                cmd, check=True, capture_output=True, text=True, timeout=self.timeout
            )
        except subprocess.CalledProcessError as e:
            self.reporter.warn(f"ffprobe failed for {args[-1]}: {_tail(e.stderr)}")
            return None
        except (subprocess.TimeoutExpired, OSError) as e:
            self.reporter.warn(f"ffprobe failed for {args[-1]}: {e}")
            return None
        out = (result.stdout or "").strip()
        return out or None


def _tail(stderr: bytes | str | None, limit: int = 300) -> str:
    if not stderr:
        return "no output"
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    return stderr.strip()[-limit:]
