"""Tests for the CLI entry point."""

import json

from PIL import Image
from typer.testing import CliRunner

from avatartrack import __version__
from avatartrack.cli import app
from avatartrack.models import RigSource, RigState

runner = CliRunner()


def test_version_flag():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == f"avatartrack {__version__}"


def test_no_command_shows_help():
    result = runner.invoke(app, [])
    assert result.exit_code == 0
    assert "snapshot" in result.output


def test_bad_log_level():
    result = runner.invoke(app, ["--log-level", "chatty", "config"])
    assert result.exit_code == 2


def test_config_prints_json():
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["smoothing"]["level"] == 0.7
    assert data["session"]["target_fps"] == 60.0


def test_config_from_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[smoothing]\nlevel = 0.25\n")
    result = runner.invoke(app, ["--config", str(path), "config"])
    assert result.exit_code == 0
    assert json.loads(result.output)["smoothing"]["level"] == 0.25


def test_config_missing_file(tmp_path):
    result = runner.invoke(app, ["--config", str(tmp_path / "none.toml"), "config"])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_fallback_is_deterministic():
    first = runner.invoke(app, ["fallback", "--time", "12.5"])
    second = runner.invoke(app, ["fallback", "-t", "12.5"])
    assert first.exit_code == 0
    assert first.output == second.output
    data = json.loads(first.output)
    assert "head_yaw" in data
    assert len(data["body"]) == 17


def test_snapshot_writes_png(tmp_path):
    out = tmp_path / "rig.png"
    result = runner.invoke(app, ["snapshot", str(out), "--time", "4.0", "--frames", "5"])
    assert result.exit_code == 0
    assert "detected" in result.output
    with Image.open(out) as img:
        assert img.size == (640, 480)


def test_snapshot_without_detection(tmp_path):
    out = tmp_path / "idle.png"
    result = runner.invoke(app, ["snapshot", str(out), "--no-detection"])
    assert result.exit_code == 0
    assert "fallback" in result.output
    assert out.exists()


def test_run_writes_json_lines(tmp_path):
    out = tmp_path / "rig.jsonl"
    result = runner.invoke(
        app,
        ["run", "--seconds", "0.3", "--fps", "50", "--dropout", "0.1:0.2", "--output", str(out)],
    )
    assert result.exit_code == 0, result.output
    states = [RigState.model_validate_json(line) for line in out.read_text().splitlines()]
    assert len(states) >= 3
    assert states[-1].source is RigSource.NEUTRAL
    sources = {s.source for s in states}
    assert RigSource.DETECTED in sources
    assert f"Wrote {len(states)} rig states" in result.output


def test_run_rejects_bad_window():
    result = runner.invoke(app, ["run", "--seconds", "0.1", "--dropout", "2:1"])
    assert result.exit_code != 0


def test_snapshot_single_frame(tmp_path):
    out = tmp_path / "one.png"
    result = runner.invoke(app, ["snapshot", str(out), "--frames", "1"])
    assert result.exit_code == 0
    assert out.exists()


def test_snapshot_uses_configured_forearm_length(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[rig]\nforearm_length = 10.0\n")
    default_png, short_png = tmp_path / "default.png", tmp_path / "short.png"
    assert runner.invoke(app, ["snapshot", str(default_png), "-n", "3"]).exit_code == 0
    result = runner.invoke(app, ["--config", str(path), "snapshot", str(short_png), "-n", "3"])
    assert result.exit_code == 0
    with Image.open(default_png) as a, Image.open(short_png) as b:
        assert a.tobytes() != b.tobytes()
