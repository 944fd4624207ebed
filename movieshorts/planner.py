"""
Clip planning with Claude.

The model reads the movie's subtitles (timestamps already in whole seconds)
plus an optional screenplay, and returns the time ranges to show with a
narration line for each.
"""

import json
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path

import anthropic

from movieshorts.reporter import Reporter

DEFAULT_MODEL = "claude-sonnet-4-20250514"
MAX_TOKENS = 8192
MAX_SUB_CHARS = 320_000
MAX_SCRIPT_CHARS = 80_000
TIMEOUT_WITH_SCRIPT = 14_400
TIMEOUT_SUBTITLES_ONLY = 3_600

RETRY_CODES = {
    "context_length_exceeded",
    "invalid_json",
    "invalid_request_body",
    "request_too_large",
}
RETRY_PHRASES = (
    "too large",
    "too long",
    "message is too long",
    "prompt is too long",
    "maximum context length",
    "context length",
    "reduce",
    "token",
    "request is too large",
    "exceeds the maximum",
    "unicode decode error",
    "invalid unicode",
    "invalid body",
)

PROMPT_TEMPLATE = """You are given TWO inputs.
Movie: {title}

INPUT A (Subtitles with timestamps in SECONDS):
{subtitles}

INPUT B (Optional script text WITHOUT timestamps; may be empty):
{script}

TASK:
- Choose {num_clips} non-overlapping time ranges that best cover the full plot arc.
- ONLY use INPUT A for selecting start/end times (seconds). INPUT B is for story context.
- Each time range should usually be 8-16 seconds long (end-start). Avoid >20 seconds.
- Keep narrations punchy but not tiny: about 20-35 words total, in 3-5 short sentences.
- Prefer ranges with clear visual action (reveals, confrontations, entrances, big moments).
- Skip any range that starts at 0.
- Return STRICT JSON with this shape ONLY:
  {{"clips":[{{"start":120,"end":145,"narration":"..."}}, ...]}}
- Clips must be increasing by start time.
- Each narration must be at least 3 full sentences, casual commentator vibe.
- The first narration must start with: "Here we go, let's go over the movie {title}.".
Return ONLY valid JSON. No markdown, no explanation."""


@dataclass(frozen=True)
class ClipPlan:
    start: int
    end: int
    narration: str


@dataclass
class PlanResult:
    """Outcome of one plan request."""

    clips: list[ClipPlan] = field(default_factory=list)
    retry_without_script: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return bool(self.clips)


def _clean_text(text: str) -> str:
    return text.encode("utf-8", errors="replace").decode("utf-8")


def _strip_fences(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```"):
        raw = re.sub(r"^```(?:json)?\s*", "", raw)
        raw = re.sub(r"\s*```$", "", raw)
    return raw


def _as_int(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def parse_plan(text: str) -> tuple[list[ClipPlan], int]:
    """Parse a `{"clips": [...]}` document.

    Returns the usable entries in order plus the number of malformed
    entries that were dropped. Raises ValueError if the document itself
    cannot be read. Range sanity (start > 0, end > start) is left to the
    caller.
    """
    try:
        data = json.loads(_strip_fences(text))
    except json.JSONDecodeError as e:
        raise ValueError(f"plan is not valid JSON: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("clips"), list):
        raise ValueError("plan has no clips list")

    clips = []
    dropped = 0
    for entry in data["clips"]:
        if not isinstance(entry, dict):
            dropped += 1
            continue
        start = _as_int(entry.get("start"))
        end = _as_int(entry.get("end"))
        narration = entry.get("narration")
        if start is None or end is None or not isinstance(narration, str):
            dropped += 1
            continue
        clips.append(ClipPlan(start=start, end=end, narration=narration))
    return clips, dropped


def save_plan(clips: list[ClipPlan], path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump({"clips": [asdict(c) for c in clips]}, f, indent=2)


def load_plan(path: Path) -> list[ClipPlan] | None:
    """Read a saved plan; None if it is missing, unreadable or empty."""
    try:
        clips, _ = parse_plan(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return clips or None


def should_retry_without_script(payload) -> bool:
    """True if an error payload says the request was too big or badly encoded."""
    if not isinstance(payload, dict):
        return False
    err = payload.get("error")
    if not isinstance(err, dict):
        return False

    code = err.get("code") or err.get("type")
    if isinstance(code, str):
        code = code.lower()
        if code in RETRY_CODES or "context" in code:
            return True

    message = err.get("message")
    if isinstance(message, str):
        message = message.lower()
        if any(phrase in message for phrase in RETRY_PHRASES):
            return True
    return False


def check_plan_bounds(
    clips: list[ClipPlan],
    min_clips: int,
    max_clips: int,
    min_total_seconds: float,
    max_total_seconds: float,
) -> list[str]:
    """Warnings for a plan whose size falls outside the configured ranges."""
    warnings = []
    if not min_clips <= len(clips) <= max_clips:
        warnings.append(
            f"Plan has {len(clips)} clips, outside the {min_clips}-{max_clips} range"
        )
    total = sum(max(c.end - c.start, 0) for c in clips)
    if not min_total_seconds <= total <= max_total_seconds:
        warnings.append(
            f"Plan covers {total}s of source, outside the "
            f"{min_total_seconds:g}-{max_total_seconds:g}s range"
        )
    return warnings


class Planner:
    def __init__(self, client: anthropic.Anthropic, reporter: Reporter, model: str = DEFAULT_MODEL):
        self.client = client
        self.reporter = reporter
        self.model = model

    def build_prompt(self, title: str, subtitles: str, script: str | None, num_clips: int) -> str:
        title = _clean_text(title)
        return PROMPT_TEMPLATE.format(
            title=title,
            subtitles=_clean_text(subtitles)[:MAX_SUB_CHARS],
            script=_clean_text(script or "")[:MAX_SCRIPT_CHARS],
            num_clips=num_clips,
        )

    def request(
        self, title: str, subtitles: str, script: str | None, num_clips: int
    ) -> PlanResult:
        """Ask for `num_clips` clips. Never raises for API failures."""
        has_script = bool(script)
        timeout = TIMEOUT_WITH_SCRIPT if has_script else TIMEOUT_SUBTITLES_ONLY
        prompt = self.build_prompt(title, subtitles, script, num_clips)

        try:
            response = self.client.with_options(timeout=timeout).messages.create(
                model=self.model,
                max_tokens=MAX_TOKENS,
                system="You are a helpful assistant designed to output JSON.",
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIStatusError as e:
            self.reporter.warn(f"Planner HTTP {e.status_code}: {e.message}")
            retry = has_script and should_retry_without_script(e.body)
            return PlanResult(retry_without_script=retry, error=str(e))
        except anthropic.APIError as e:
            self.reporter.warn(f"Planner request failed: {e}")
            return PlanResult(error=str(e))

        raw = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        try:
            clips, dropped = parse_plan(raw)
        except ValueError as e:
            self.reporter.warn(f"Planner returned an unusable plan: {e}")
            return PlanResult(error=str(e))

        if dropped:
            self.reporter.warn(f"Dropped {dropped} malformed plan entries")
        self.reporter.info(f"Plan received: {len(clips)} clips")
        return PlanResult(clips=clips)
