import pytest

from movieshorts import config
from movieshorts.config import load_config


@pytest.fixture(autouse=True)
def env(monkeypatch):
    monkeypatch.setattr(config, "load_dotenv", lambda *a, **k: False)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    monkeypatch.setenv("ELEVENLABS_API_KEY", "el-test")
    for var in ("ELEVENLABS_VOICE_ID", "ELEVENLABS_MODEL", "ELEVENLABS_OUTPUT_FORMAT", "PLANNER_MODEL"):
        monkeypatch.delenv(var, raising=False)


def test_defaults_without_config_file(tmp_path):
    cfg = load_config(tmp_path / "config.yaml")

    assert cfg.workspace_root == tmp_path.resolve()
    assert cfg.voice_id == config.DEFAULT_VOICE_ID
    assert cfg.voice_model == "eleven_multilingual_v2"
    assert cfg.voice_output_format == "mp3_44100_128"
    assert (cfg.min_clips, cfg.max_clips) == (20, 30)
    assert (cfg.min_total_seconds, cfg.max_total_seconds) == (150, 270)


def test_yaml_and_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("ELEVENLABS_VOICE_ID", "voice-123")
    monkeypatch.setenv("PLANNER_MODEL", "claude-test")
    path = tmp_path / "config.yaml"
    path.write_text(
        "workspace:\n"
        "  root: data\n"
        "plan:\n"
        "  min_clips: 5\n"
        "  max_clips: 8\n"
        "  max_total_seconds: 120\n"
    )

    cfg = load_config(path)

    assert cfg.workspace_root == (tmp_path / "data").resolve()
    assert cfg.voice_id == "voice-123"
    assert cfg.planner_model == "claude-test"
    assert (cfg.min_clips, cfg.max_clips) == (5, 8)
    assert cfg.min_total_seconds == 150
    assert cfg.max_total_seconds == 120


def test_missing_keys_are_reported_together(tmp_path, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY")
    monkeypatch.delenv("ELEVENLABS_API_KEY")

    with pytest.raises(EnvironmentError, match="ANTHROPIC_API_KEY, ELEVENLABS_API_KEY"):
        load_config(tmp_path / "config.yaml")


def test_inverted_clip_range_is_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("plan:\n  min_clips: 9\n  max_clips: 4\n")

    with pytest.raises(EnvironmentError, match="min_clips"):
        load_config(path)


def test_non_mapping_config_is_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(EnvironmentError):
        load_config(path)
