from click.testing import CliRunner

from movieshorts import main
from movieshorts.config import Config
from movieshorts.workspace import Workspace


def _config(root):
    return Config(anthropic_api_key="a", elevenlabs_api_key="e", workspace_root=root)


def test_status_lists_checkpoints(tmp_path, monkeypatch):
    monkeypatch.setattr(main, "load_config", lambda *_: _config(tmp_path))
    ws = Workspace(tmp_path)
    ws.ensure()
    (ws.movies / "Heat.mp4").write_bytes(b"movie")
    ws.job(ws.movies / "Heat.mp4").raw_subtitles.path.write_text("1\n")

    result = CliRunner().invoke(main.cli, ["status"])

    assert result.exit_code == 0
    assert "Heat" in result.output
    assert "Movie Checkpoints" in result.output


def test_status_with_no_movies(tmp_path, monkeypatch):
    monkeypatch.setattr(main, "load_config", lambda *_: _config(tmp_path))

    result = CliRunner().invoke(main.cli, ["status"])

    assert result.exit_code == 0
    assert "No movies found" in result.output


def test_missing_credentials_abort_before_processing(monkeypatch):
    def fail(*_):
        raise EnvironmentError("Missing required env vars: ANTHROPIC_API_KEY")

    monkeypatch.setattr(main, "load_config", fail)

    result = CliRunner().invoke(main.cli, ["run"])

    assert result.exit_code == 1
    assert "ANTHROPIC_API_KEY" in result.output
