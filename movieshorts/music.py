"""
Background music bed assembly.

Covers a target duration with fragments cut from a pool of songs whose
lengths are only known once probed. Songs are drawn at random with
replacement; each usable draw contributes the part of the song after a
fixed skip-in offset (intros are skipped), trimmed to whatever is still
needed. No single song has to be as long as the video.
"""

import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

SKIP_IN_SECONDS = 40.0
MIN_SONG_SECONDS = 60.0
MIN_AVAILABLE_SECONDS = 1.0
COVERAGE_EPSILON = 0.01
MAX_FRAGMENTS = 200
MAX_DRAWS = 2000

ProbeFn = Callable[[Path], float | None]
TrimFn = Callable[[Path, float, float, Path], bool]


@dataclass(frozen=True)
class MusicFragment:
    song: Path
    offset: float
    duration: float
    path: Path


@dataclass
class MusicBed:
    """Ordered fragments whose concatenation covers `target` seconds."""

    target: float
    fragments: list[MusicFragment] = field(default_factory=list)
    covered: float = 0.0

    @property
    def complete(self) -> bool:
        return self.covered >= self.target - COVERAGE_EPSILON


class MusicAssembler:
    """Draws, probes and trims songs until the target duration is covered."""

    def __init__(
        self,
        probe: ProbeFn,
        trim: TrimFn,
        rng: random.Random | None = None,
        max_fragments: int = MAX_FRAGMENTS,
        max_draws: int = MAX_DRAWS,
    ):
        self._probe = probe
        self._trim = trim
        self._rng = rng or random.Random()
        self.max_fragments = max_fragments
        self.max_draws = max_draws

    def assemble(
        self,
        songs: list[Path],
        target: float,
        fragment_path: Callable[[int], Path],
    ) -> MusicBed:
        """Build a bed of at least `target - COVERAGE_EPSILON` seconds.

        Stops early after `max_fragments` fragments, after `max_draws`
        random draws, or once every song in the pool has been rejected.
        `fragment_path(n)` names the n-th fragment file (1-based).
        """
        bed = MusicBed(target=target)
        if not songs or target <= 0:
            return bed

        durations: dict[Path, float] = {}
        unusable: set[Path] = set()
        pool_size = len(set(songs))
        draws = 0

        while bed.covered < target - COVERAGE_EPSILON:
            if len(bed.fragments) >= self.max_fragments:
                break
            if draws >= self.max_draws or len(unusable) >= pool_size:
                break
            draws += 1

            song = self._rng.choice(songs)
            if song in unusable:
                continue

            song_duration = durations.get(song)
            if song_duration is None:
                song_duration = self._probe(song)
                if song_duration is None:
                    continue
                durations[song] = song_duration
            if song_duration <= MIN_SONG_SECONDS:
                unusable.add(song)
                continue

            available = song_duration - SKIP_IN_SECONDS
            if available <= MIN_AVAILABLE_SECONDS:
                unusable.add(song)
                continue

            take = min(available, target - bed.covered)
            out_path = fragment_path(len(bed.fragments) + 1)
            if not self._trim(song, SKIP_IN_SECONDS, take, out_path):
                continue

            bed.fragments.append(MusicFragment(song, SKIP_IN_SECONDS, take, out_path))
            bed.covered += take

        return bed
