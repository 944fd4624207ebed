"""
Workspace folders and per-movie artifact paths.

Every derived path is a pure function of the movie title, which is what
lets a crashed or repeated run pick up where the last one stopped.
"""

import shutil
from dataclasses import dataclass
from pathlib import Path

from movieshorts.checkpoints import Checkpoint

MIN_SCRIPT_BYTES = 200
MOVIE_EXTENSIONS = {".mp4"}
MUSIC_EXTENSIONS = {".mp3", ".m4a"}


@dataclass(frozen=True)
class Workspace:
    """The directory tree a batch run reads from and writes to."""

    root: Path

    @property
    def movies(self) -> Path:
        return self.root / "movies"

    @property
    def retired(self) -> Path:
        return self.root / "movies_retired"

    @property
    def music(self) -> Path:
        return self.root / "backgroundmusic"

    @property
    def clips(self) -> Path:
        return self.root / "clips"

    @property
    def clip_audio(self) -> Path:
        return self.clips / "audio"

    @property
    def subtitles(self) -> Path:
        return self.root / "scripts" / "srt_files"

    @property
    def output(self) -> Path:
        return self.root / "output"

    @property
    def vertical_output(self) -> Path:
        return self.root / "tiktok_output"

    @property
    def logs(self) -> Path:
        return self.root / "logs"

    def ensure(self) -> None:
        for path in (
            self.movies, self.retired, self.music, self.clips, self.clip_audio,
            self.subtitles, self.output, self.vertical_output, self.logs,
        ):
            path.mkdir(parents=True, exist_ok=True)

    def clear_clips(self) -> None:
        """Empty clips/ (per-clip audio, clips, manifests, plans)."""
        if self.clips.exists():
            shutil.rmtree(self.clips)
        self.clip_audio.mkdir(parents=True, exist_ok=True)

    def list_movies(self) -> list[Path]:
        """Source movies in directory (name) order."""
        if not self.movies.is_dir():
            return []
        return sorted(
            p for p in self.movies.iterdir()
            if p.is_file() and p.suffix.lower() in MOVIE_EXTENSIONS
        )

    def list_songs(self) -> list[Path]:
        if not self.music.is_dir():
            return []
        return sorted(
            p for p in self.music.iterdir()
            if p.is_file() and p.suffix.lower() in MUSIC_EXTENSIONS
        )

    def job(self, source: Path) -> "MovieJob":
        return MovieJob(title=Path(source).stem, source=Path(source), workspace=self)


@dataclass(frozen=True)
class MovieJob:
    """Processing context for one movie: its title, source file and artifacts."""

    title: str
    source: Path
    workspace: Workspace

    @property
    def raw_subtitles(self) -> Checkpoint:
        return Checkpoint("subtitles", self.workspace.subtitles / f"{self.title}.srt")

    @property
    def normalized_subtitles(self) -> Checkpoint:
        return Checkpoint(
            "normalized subtitles", self.workspace.subtitles / f"{self.title}_modified.srt"
        )

    @property
    def script(self) -> Checkpoint:
        return Checkpoint(
            "script", self.workspace.subtitles / f"{self.title}_summary.txt",
            min_bytes=MIN_SCRIPT_BYTES,
        )

    @property
    def plan(self) -> Checkpoint:
        return Checkpoint("plan", self.workspace.clips / f"{self.title}_plan.json", min_bytes=1)

    def narration(self, index: int) -> Checkpoint:
        return Checkpoint(
            f"narration {index}",
            self.workspace.clip_audio / f"{self.title}_audio_{index}.mp3",
            min_bytes=1,
        )

    def clip_name(self, index: int) -> str:
        return f"{self.title}_clip_{index}.mp4"

    def clip(self, index: int) -> Checkpoint:
        return Checkpoint(
            f"clip {index}", self.workspace.clips / self.clip_name(index), min_bytes=1
        )

    @property
    def concat_manifest(self) -> Path:
        return self.workspace.clips / f"{self.title}_concat_list.txt"

    @property
    def concat_video(self) -> Path:
        return self.workspace.clips / f"{self.title}_concat_tmp.mp4"

    @property
    def music_manifest(self) -> Path:
        return self.workspace.clips / f"{self.title}_bgm_list.txt"

    def music_part(self, index: int) -> Path:
        return self.workspace.clips / f"{self.title}_bgm_part_{index}.m4a"

    @property
    def music_bed(self) -> Path:
        return self.workspace.clips / f"{self.title}_bgm.m4a"

    @property
    def final_output(self) -> Checkpoint:
        return Checkpoint("output", self.workspace.output / f"{self.title}.mp4", min_bytes=1)

    @property
    def vertical_output(self) -> Checkpoint:
        return Checkpoint(
            "vertical", self.workspace.vertical_output / f"{self.title}_vertical.mp4",
            min_bytes=1,
        )

    @property
    def retired_source(self) -> Path:
        return self.workspace.retired / f"{self.title}.mp4"
