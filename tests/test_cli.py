"""Tests for the gesture-morph command line."""

import json

import numpy as np
import pytest
from typer.testing import CliRunner

from gesture_morph.cli import app
from gesture_morph.config import SceneConfig
from gesture_morph.recorder import LandmarkRecorder
from gesture_morph.synthetic import synthetic_hand

runner = CliRunner()


class TestSimulate:
    def test_default_script(self):
        result = runner.invoke(app, ["simulate", "--fps", "20"])
        assert result.exit_code == 0, result.output
        assert "2 mode changes" in result.output
        assert "TREE → SPHERE" in result.output
        assert "Final mode: TREE" in result.output

    def test_custom_script_and_duration(self):
        result = runner.invoke(app, ["simulate", "--script", "0.5:palm", "--duration", "3", "--fps", "10"])
        assert result.exit_code == 0, result.output
        assert "31 frames" in result.output
        assert "Final mode: SPHERE" in result.output

    def test_bad_script(self):
        result = runner.invoke(app, ["simulate", "--script", "soon:fist"])
        assert result.exit_code == 1

    def test_bad_fps(self):
        result = runner.invoke(app, ["simulate", "--fps", "0"])
        assert result.exit_code == 1

    def test_replay_recording(self, tmp_path):
        rec = LandmarkRecorder()
        rec.start()
        for i in range(60):
            rec.add_frame(synthetic_hand(0 if i >= 30 else 4), timestamp=i / 30)
        rec.stop()
        path = tmp_path / "session.json"
        rec.save(path)

        result = runner.invoke(app, ["simulate", "--recording", str(path)])
        assert result.exit_code == 0, result.output
        assert "60 frames" in result.output
        assert "1 mode changes" in result.output

    def test_missing_recording(self, tmp_path):
        result = runner.invoke(app, ["simulate", "--recording", str(tmp_path / "nope.json")])
        assert result.exit_code == 1

    def test_unsupported_recording(self, tmp_path):
        path = tmp_path / "future.json"
        path.write_text(json.dumps({"version": 99, "frames": []}))
        result = runner.invoke(app, ["simulate", "--recording", str(path)])
        assert result.exit_code == 1
        assert "Cannot read recording" in result.output

    def test_corrupt_recording(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        result = runner.invoke(app, ["simulate", "--recording", str(path)])
        assert result.exit_code == 1

    def test_config_file(self, tmp_path):
        path = tmp_path / "scene.yml"
        SceneConfig.from_dict({"particle_count": 50}).save_yaml(path)
        result = runner.invoke(app, ["simulate", "-c", str(path), "--script", "0:palm", "--fps", "10"])
        assert result.exit_code == 0, result.output

    def test_invalid_config_file(self, tmp_path):
        path = tmp_path / "scene.yml"
        path.write_text("particle_count: -3\n")
        result = runner.invoke(app, ["simulate", "-c", str(path)])
        assert result.exit_code == 1


class TestExportClouds:
    def test_writes_npz(self, tmp_path):
        out = tmp_path / "clouds"
        result = runner.invoke(app, ["export-clouds", "-o", str(out), "--count", "100", "--seed", "4"])
        assert result.exit_code == 0, result.output
        data = np.load(tmp_path / "clouds.npz")
        assert data["tree"].shape == (100, 3)
        assert data["sphere"].shape == (100, 3)

    def test_rejects_bad_count(self, tmp_path):
        result = runner.invoke(app, ["export-clouds", "-o", str(tmp_path / "c.npz"), "--count", "0"])
        assert result.exit_code == 1


class TestInitConfig:
    def test_writes_defaults(self, tmp_path):
        path = tmp_path / "scene.yml"
        result = runner.invoke(app, ["init-config", str(path)])
        assert result.exit_code == 0, result.output
        assert SceneConfig.from_yaml(path) == SceneConfig()

    def test_refuses_overwrite(self, tmp_path):
        path = tmp_path / "scene.yml"
        path.write_text("particle_count: 10\n")
        assert runner.invoke(app, ["init-config", str(path)]).exit_code == 1
        assert runner.invoke(app, ["init-config", str(path), "--force"]).exit_code == 0
        assert SceneConfig.from_yaml(path).particle_count == 2500


class TestBenchmark:
    def test_runs(self):
        result = runner.invoke(app, ["benchmark", "--frames", "20", "--count", "50"])
        assert result.exit_code == 0, result.output
        assert "Average latency" in result.output
        assert "blend" in result.output
        assert "Budget" in result.output

    def test_rejects_bad_particle_count(self):
        result = runner.invoke(app, ["benchmark", "--frames", "5", "--count", "0"])
        assert result.exit_code == 1
        assert "particle count" in result.output

    @pytest.mark.parametrize("frames", ["0", "-1"])
    def test_rejects_bad_frame_count(self, frames):
        assert runner.invoke(app, ["benchmark", "--frames", frames]).exit_code != 0


class TestServe:
    def test_rejects_bad_port(self):
        pytest.importorskip("uvicorn")
        pytest.importorskip("fastapi")
        result = runner.invoke(app, ["serve", "--port", "70000"])
        assert result.exit_code == 1
        assert "port" in result.output
