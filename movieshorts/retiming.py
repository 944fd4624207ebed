"""
Segment retiming.

Narration length is fixed by the voiceover, so it decides how long each
clip lasts. The planned source range is played faster or slower to fit.
When fitting would need more than MAX_VIDEO_SPEEDUP, a shorter window
centred on the planned range is used instead, so motion never looks
unnaturally fast.

Only the video stream is retimed (setpts). The narration track is laid
under it unchanged and the cut is truncated to the shorter stream.
"""

import math
from dataclasses import dataclass

MAX_VIDEO_SPEEDUP = 1.75
MIN_SPEED = 0.05
MAX_SPEED = 20.0
MIN_DURATION = 0.1
MIN_WINDOW_SECONDS = 1.0


@dataclass(frozen=True)
class RetimePlan:
    """Where to cut the source and how fast to play it."""

    start: int
    end: int
    speed: float
    capped: bool = False

    @property
    def pts_factor(self) -> float:
        """Presentation-timestamp multiplier for the video stream."""
        return 1.0 / self.speed


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _shrink_window(start: int, end: int, desired: float) -> tuple[int, int]:
    """Centre a window of `desired` seconds inside [start, end], in whole seconds."""
    center = (start + end) / 2.0
    half = desired / 2.0
    ns = center - half
    ne = center + half

    if ns < start:
        ns = float(start)
        ne = ns + desired
    if ne > end:
        ne = float(end)
        ns = ne - desired
    ns = max(ns, float(start))
    ne = min(ne, float(end))

    use_start = _round_half_up(ns)
    use_end = _round_half_up(ne)
    if use_end <= use_start:
        use_end = use_start + 1
    return use_start, use_end


def plan_retime(
    start: int,
    end: int,
    narration_duration: float,
    max_speedup: float = MAX_VIDEO_SPEEDUP,
) -> RetimePlan | None:
    """Fit the source range [start, end] to a narration of the given length.

    Returns None when either duration is too short to retime.
    """
    segment = float(end - start)
    if segment <= MIN_DURATION or narration_duration <= MIN_DURATION:
        return None

    use_start, use_end = start, end
    speed = segment / narration_duration
    capped = False

    if speed > max_speedup:
        desired = min(narration_duration * max_speedup, segment)
        desired = max(desired, MIN_WINDOW_SECONDS)
        use_start, use_end = _shrink_window(start, end, desired)
        speed = min((use_end - use_start) / narration_duration, max_speedup)
        capped = True

    speed = min(max(speed, MIN_SPEED), MAX_SPEED)
    return RetimePlan(start=use_start, end=use_end, speed=speed, capped=capped)
