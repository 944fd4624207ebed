import random
from pathlib import Path

import pytest

from movieshorts.music import (
    COVERAGE_EPSILON,
    MAX_FRAGMENTS,
    SKIP_IN_SECONDS,
    MusicAssembler,
)


class _FakeMedia:
    def __init__(
        self,
        durations: dict[str, float | None],
        failing_trims: int = 0,
        failing_probes: int = 0,
    ):
        self.durations = durations
        self.failing_trims = failing_trims
        self.failing_probes = failing_probes
        self.probes: list[str] = []
        self.trims: list[tuple[str, float, float, Path]] = []

    def probe(self, path: Path) -> float | None:
        self.probes.append(path.name)
        if self.failing_probes:
            self.failing_probes -= 1
            return None
        return self.durations[path.name]

    def trim(self, song: Path, offset: float, duration: float, out: Path) -> bool:
        if self.failing_trims:
            self.failing_trims -= 1
            return False
        self.trims.append((song.name, offset, duration, out))
        return True


def _part(n: int) -> Path:
    return Path(f"part_{n}.m4a")


def test_single_song_pool_covers_target_in_fragments():
    media = _FakeMedia({"a.mp3": 90.0})
    assembler = MusicAssembler(media.probe, media.trim, rng=random.Random(1))

    bed = assembler.assemble([Path("a.mp3")], 130.0, _part)

    assert [f.duration for f in bed.fragments] == pytest.approx([50.0, 50.0, 30.0])
    assert bed.covered == pytest.approx(130.0)
    assert bed.complete
    assert all(f.offset == SKIP_IN_SECONDS for f in bed.fragments)
    assert [f.path for f in bed.fragments] == [_part(1), _part(2), _part(3)]


def test_each_song_probed_once():
    media = _FakeMedia({"a.mp3": 90.0})
    assembler = MusicAssembler(media.probe, media.trim, rng=random.Random(1))

    assembler.assemble([Path("a.mp3")], 400.0, _part)

    assert media.probes == ["a.mp3"]


def test_failed_probe_only_rejects_that_draw():
    media = _FakeMedia({"a.mp3": 90.0}, failing_probes=2)
    assembler = MusicAssembler(media.probe, media.trim, rng=random.Random(1))

    bed = assembler.assemble([Path("a.mp3")], 80.0, _part)

    assert media.probes == ["a.mp3", "a.mp3", "a.mp3"]
    assert [f.duration for f in bed.fragments] == pytest.approx([50.0, 30.0])
    assert bed.complete


def test_mixed_pool_skips_unusable_songs_and_reaches_target():
    media = _FakeMedia({
        "short.mp3": 45.0,
        "edge.mp3": 60.0,
        "broken.m4a": None,
        "long.mp3": 200.0,
        "mid.m4a": 95.0,
    })
    songs = [Path(name) for name in media.durations]
    assembler = MusicAssembler(media.probe, media.trim, rng=random.Random(7))

    bed = assembler.assemble(songs, 523.4, _part)

    assert bed.covered >= 523.4 - COVERAGE_EPSILON
    used = {song for song, *_ in media.trims}
    assert used <= {"long.mp3", "mid.m4a"}
    for song, offset, duration, _ in media.trims:
        assert offset == SKIP_IN_SECONDS
        assert duration <= media.durations[song] - SKIP_IN_SECONDS


def test_pool_with_no_usable_song_terminates_empty():
    media = _FakeMedia({"a.mp3": 30.0, "b.mp3": None, "c.mp3": 60.0})
    songs = [Path(name) for name in media.durations]
    assembler = MusicAssembler(media.probe, media.trim, rng=random.Random(3))

    bed = assembler.assemble(songs, 100.0, _part)

    assert bed.fragments == []
    assert bed.covered == 0.0
    assert not bed.complete
    assert media.probes.count("a.mp3") == 1
    assert media.probes.count("c.mp3") == 1
    assert "b.mp3" in media.probes


def test_failed_trims_do_not_count_towards_coverage():
    media = _FakeMedia({"a.mp3": 100.0}, failing_trims=3)
    assembler = MusicAssembler(media.probe, media.trim, rng=random.Random(1))

    bed = assembler.assemble([Path("a.mp3")], 75.0, _part)

    assert [f.duration for f in bed.fragments] == pytest.approx([60.0, 15.0])
    assert bed.fragments[0].path == _part(1)


def test_trim_that_always_fails_stops_at_draw_limit():
    media = _FakeMedia({"a.mp3": 100.0}, failing_trims=10**6)
    assembler = MusicAssembler(media.probe, media.trim, max_draws=50)

    bed = assembler.assemble([Path("a.mp3")], 75.0, _part)

    assert bed.fragments == []
    assert 10**6 - media.failing_trims == 50


def test_fragment_ceiling_bounds_the_bed():
    media = _FakeMedia({"a.mp3": 61.0})
    assembler = MusicAssembler(media.probe, media.trim, rng=random.Random(1))

    bed = assembler.assemble([Path("a.mp3")], 100_000.0, _part)

    assert len(bed.fragments) == MAX_FRAGMENTS
    assert bed.covered == pytest.approx(MAX_FRAGMENTS * 21.0)
    assert not bed.complete


def test_empty_pool_or_zero_target_is_empty_bed():
    media = _FakeMedia({"a.mp3": 90.0})
    assembler = MusicAssembler(media.probe, media.trim)

    assert assembler.assemble([], 50.0, _part).fragments == []
    assert assembler.assemble([Path("a.mp3")], 0.0, _part).fragments == []
    assert media.probes == []
