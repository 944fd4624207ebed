"""
Run configuration for movieshorts.

Secrets and voice/model identifiers come from the environment (.env via
python-dotenv). Pipeline settings come from config.yaml at the project
root; every key there is optional.

Required environment variables (in .env):
    ANTHROPIC_API_KEY   - Planner (Claude) API key
    ELEVENLABS_API_KEY  - Narration (ElevenLabs) API key

Optional:
    ELEVENLABS_VOICE_ID, ELEVENLABS_MODEL, ELEVENLABS_OUTPUT_FORMAT,
    PLANNER_MODEL, FFMPEG_BIN, FFPROBE_BIN
"""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_PATH = PROJECT_ROOT / "config.yaml"

DEFAULT_VOICE_ID = "JBFqnCBsd6RMkjVDRZzb"
DEFAULT_VOICE_MODEL = "eleven_multilingual_v2"
DEFAULT_OUTPUT_FORMAT = "mp3_44100_128"
DEFAULT_PLANNER_MODEL = "claude-sonnet-4-20250514"

MIN_NUM_CLIPS = 20
MAX_NUM_CLIPS = 30
MIN_TOTAL_SECONDS = int(2.5 * 60)
MAX_TOTAL_SECONDS = int(4.5 * 60)

_REQUIRED_VARS = [
    "ANTHROPIC_API_KEY",
    "ELEVENLABS_API_KEY",
]


@dataclass(frozen=True)
class Config:
    """Read-only settings for one run."""

    anthropic_api_key: str
    elevenlabs_api_key: str
    workspace_root: Path
    voice_id: str = DEFAULT_VOICE_ID
    voice_model: str = DEFAULT_VOICE_MODEL
    voice_output_format: str = DEFAULT_OUTPUT_FORMAT
    planner_model: str = DEFAULT_PLANNER_MODEL
    min_clips: int = MIN_NUM_CLIPS
    max_clips: int = MAX_NUM_CLIPS
    min_total_seconds: int = MIN_TOTAL_SECONDS
    max_total_seconds: int = MAX_TOTAL_SECONDS
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"


def _read_yaml(config_path: Path) -> dict:
    """Load config.yaml; a missing file means all defaults."""
    if not config_path.exists():
        return {}
    with open(config_path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise EnvironmentError(f"{config_path} must contain a mapping at the top level.")
    return data


def load_config(config_path: Path = CONFIG_PATH) -> Config:
    """Build the run configuration from .env and config.yaml.

    Raises:
        EnvironmentError: a required API key is missing or config.yaml is
            not a mapping.
        yaml.YAMLError: config.yaml is not valid YAML.
    """
    load_dotenv()

    missing = [v for v in _REQUIRED_VARS if not os.getenv(v)]
    if missing:
        raise EnvironmentError(
            f"Missing required env vars: {', '.join(missing)}. "
            f"Set them in .env (see .env.example)."
        )

    config_path = Path(config_path)
    cfg = _read_yaml(config_path)
    workspace_cfg = cfg.get("workspace", {}) or {}
    plan_cfg = cfg.get("plan", {}) or {}

    root = Path(workspace_cfg.get("root", "."))
    if not root.is_absolute():
        root = config_path.parent / root

    min_clips = int(plan_cfg.get("min_clips", MIN_NUM_CLIPS))
    max_clips = int(plan_cfg.get("max_clips", MAX_NUM_CLIPS))
    if min_clips < 1 or max_clips < min_clips:
        raise EnvironmentError(
            f"config.yaml: plan.min_clips/max_clips must satisfy 1 <= min <= max "
            f"(got {min_clips}, {max_clips})."
        )

    return Config(
        anthropic_api_key=os.environ["ANTHROPIC_API_KEY"],
        elevenlabs_api_key=os.environ["ELEVENLABS_API_KEY"],
        workspace_root=root.resolve(),
        voice_id=os.getenv("ELEVENLABS_VOICE_ID") or DEFAULT_VOICE_ID,
        voice_model=os.getenv("ELEVENLABS_MODEL") or DEFAULT_VOICE_MODEL,
        voice_output_format=os.getenv("ELEVENLABS_OUTPUT_FORMAT") or DEFAULT_OUTPUT_FORMAT,
        planner_model=os.getenv("PLANNER_MODEL") or DEFAULT_PLANNER_MODEL,
        min_clips=min_clips,
        max_clips=max_clips,
        min_total_seconds=int(plan_cfg.get("min_total_seconds", MIN_TOTAL_SECONDS)),
        max_total_seconds=int(plan_cfg.get("max_total_seconds", MAX_TOTAL_SECONDS)),
        ffmpeg_bin=os.getenv("FFMPEG_BIN") or "ffmpeg",
        ffprobe_bin=os.getenv("FFPROBE_BIN") or "ffprobe",
    )
