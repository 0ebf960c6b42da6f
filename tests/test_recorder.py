"""Tests for landmark recording and replay."""

import json

import numpy as np
import pytest

from gesture_morph.recorder import LandmarkPlayer, LandmarkRecorder, RecordedFrame
from gesture_morph.synthetic import synthetic_hand


def make_hand(curled=0):
    return synthetic_hand(curled)


def record(frames):
    rec = LandmarkRecorder()
    rec.start()
    for i, (landmarks, label) in enumerate(frames):
        rec.add_frame(landmarks, label=label, timestamp=i / 30)
    rec.stop()
    return rec


class TestRecorder:
    def test_record_and_count(self):
        rec = LandmarkRecorder()
        rec.start()
        for _ in range(10):
            rec.add_frame(make_hand())
        assert rec.is_recording
        count = rec.stop()
        assert count == 10
        assert not rec.is_recording

    def test_not_recording_ignores_frames(self):
        rec = LandmarkRecorder()
        rec.add_frame(make_hand())
        assert rec.frame_count == 0

    def test_explicit_timestamps(self):
        rec = record([(make_hand(), None), (None, None), (make_hand(4), None)])
        assert rec.duration == pytest.approx(2 / 30)

    def test_empty_duration(self):
        assert LandmarkRecorder().duration == 0.0

    def test_start_clears_previous(self):
        rec = record([(make_hand(), None)])
        rec.start()
        assert rec.frame_count == 0

    def test_save_json_layout(self, tmp_path):
        rec = record([(make_hand(), "Open_Palm"), (None, None)])
        path = tmp_path / "nested" / "session.json"
        rec.save(path)

        data = json.loads(path.read_text())
        assert data["version"] == 1
        assert data["frame_count"] == 2
        assert data["frames"][0]["label"] == "Open_Palm"
        assert data["frames"][1]["landmarks"] is None


class TestPlayer:
    def test_save_and_load_json(self, tmp_path):
        rec = record([(make_hand(), "Open_Palm"), (None, None), (make_hand(4), "Closed_Fist")])
        path = tmp_path / "test.json"
        rec.save(path)

        player = LandmarkPlayer.load(path)
        assert player.frame_count == 3
        assert player.duration == pytest.approx(2 / 30)
        frames = list(player.play())
        assert frames[0].label == "Open_Palm"
        assert not frames[1].has_hand
        np.testing.assert_allclose(frames[2].landmarks, make_hand(4))

    def test_save_and_load_npz(self, tmp_path):
        rec = record([(make_hand(), "Open_Palm"), (None, None)] * 3)
        path = rec.save_compact(tmp_path / "test.dat")
        assert path.suffix == ".npz"

        player = LandmarkPlayer.load(path)
        assert player.frame_count == 6
        frames = list(player.play())
        assert [f.has_hand for f in frames] == [True, False] * 3
        assert frames[2].label == "Open_Palm"
        assert frames[3].label is None
        np.testing.assert_allclose(frames[0].landmarks, make_hand(), atol=1e-6)

    def test_play_yields_numpy(self, tmp_path):
        rec = record([(make_hand(), None)])
        path = tmp_path / "test.json"
        rec.save(path)

        frames = list(LandmarkPlayer.load(path).play())
        assert len(frames) == 1
        assert isinstance(frames[0].landmarks, np.ndarray)
        assert frames[0].landmarks.shape == (21, 3)

    def test_get_frame(self):
        player = LandmarkPlayer([
            RecordedFrame(0.0, make_hand().tolist()),
            RecordedFrame(0.1, None),
        ])
        assert player.get_frame(0).has_hand
        assert player.get_frame(1).landmarks is None
        assert player.get_frame(5) is None
        assert player.get_frame(-1) is None

    def test_realtime_replay_keeps_order(self):
        player = LandmarkPlayer([RecordedFrame(i * 0.001, None) for i in range(5)])
        stamps = [f.timestamp for f in player.play_realtime(speed=10.0)]
        assert stamps == sorted(stamps)
        assert len(stamps) == 5

    def test_realtime_empty(self):
        assert list(LandmarkPlayer([]).play_realtime()) == []

    def test_version_mismatch(self, tmp_path):
        path = tmp_path / "future.json"
        path.write_text(json.dumps({"version": 99, "frames": []}))
        with pytest.raises(ValueError):
            LandmarkPlayer.load(path)
