"""Landmark session recording and replay.

Record real single-hand sessions for:
- Reproducible scene runs without a camera
- CI pipelines on headless machines
- Demo recordings that play back deterministically
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterator, Optional

import numpy as np

from gesture_morph.gestures import NUM_LANDMARKS

logger = logging.getLogger("gesture_morph.recorder")

FORMAT_VERSION = 1


@dataclass
class RecordedFrame:
    """A single frame in a recording."""
    timestamp: float  # seconds from recording start
    landmarks: Optional[list]  # (21, 3) as nested lists, None when no hand was seen
    label: Optional[str] = None  # classifier label at record time, if known

    @property
    def has_hand(self) -> bool:
        return self.landmarks is not None


class LandmarkRecorder:
    """Records one hand's landmarks per frame to a file.

    Usage:
        recorder = LandmarkRecorder()
        recorder.start()
        # In your frame loop:
        recorder.add_frame(landmarks, label="Open_Palm")
        # When done:
        recorder.save("session.json")
    """

    def __init__(self):
        self._frames: list[RecordedFrame] = []
        self._start_time: Optional[float] = None
        self._recording = False

    def start(self):
        """Begin a new recording session."""
        self._frames = []
        self._start_time = time.monotonic()
        self._recording = True

    def stop(self) -> int:
        """Stop recording. Returns number of frames captured."""
        self._recording = False
        return len(self._frames)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        """Duration of recording in seconds."""
        if not self._frames:
            return 0.0
        return self._frames[-1].timestamp

    def add_frame(
        self,
        landmarks: Optional[np.ndarray],
        label: Optional[str] = None,
        timestamp: Optional[float] = None,
    ):
        """Add a frame to the recording.

        Args:
            landmarks: Array of shape (21, 3), or None for a frame without a hand.
            label: Optional gesture label observed for this frame.
            timestamp: Seconds since start; measured from the wall clock if omitted.
        """
        if not self._recording:
            return

        if timestamp is None:
            timestamp = time.monotonic() - self._start_time
        points = None if landmarks is None else np.asarray(landmarks, dtype=np.float64).tolist()

        self._frames.append(RecordedFrame(timestamp=float(timestamp), landmarks=points, label=label))

    def save(self, path: str | Path):
        """Save recording to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": FORMAT_VERSION,
            "frame_count": len(self._frames),
            "duration": self.duration,
            "frames": [asdict(f) for f in self._frames],
        }

        with open(path, "w") as f:
            json.dump(data, f)
        logger.info("Saved %d frames to %s", len(self._frames), path)

    def save_compact(self, path: str | Path) -> Path:
        """Save in compact binary format (numpy npz) for smaller files."""
        path = Path(path).with_suffix(".npz")
        path.parent.mkdir(parents=True, exist_ok=True)

        n = len(self._frames)
        timestamps = np.array([f.timestamp for f in self._frames], dtype=np.float64)
        present = np.array([f.has_hand for f in self._frames], dtype=bool)
        landmarks = np.zeros((n, NUM_LANDMARKS, 3), dtype=np.float32)
        for i, f in enumerate(self._frames):
            if f.has_hand:
                landmarks[i] = np.array(f.landmarks, dtype=np.float32)
        labels = json.dumps([f.label for f in self._frames])

        np.savez_compressed(
            path,
            timestamps=timestamps,
            landmarks=landmarks,
            present=present,
            labels=np.array([labels]),
        )
        logger.info("Saved %d frames to %s", n, path)
        return path


class LandmarkPlayer:
    """Replays a recorded landmark session.

    Usage:
        player = LandmarkPlayer.load("session.json")
        for frame in player.play():
            pipeline.step(frame.timestamp, frame.landmarks, frame.timestamp)

        # Or replay at original speed:
        for frame in player.play_realtime():
            ...
    """

    def __init__(self, frames: list[RecordedFrame]):
        self._frames = frames

    @classmethod
    def load(cls, path: str | Path) -> LandmarkPlayer:
        """Load recording from a JSON or ``.npz`` file."""
        path = Path(path)

        if path.suffix == ".npz":
            return cls._load_compact(path)

        with open(path) as f:
            data = json.load(f)

        version = data.get("version", FORMAT_VERSION)
        if version != FORMAT_VERSION:
            raise ValueError(f"Unsupported recording version {version} in {path}")

        frames = [
            RecordedFrame(
                timestamp=f["timestamp"],
                landmarks=f.get("landmarks"),
                label=f.get("label"),
            )
            for f in data["frames"]
        ]
        return cls(frames)

    @classmethod
    def _load_compact(cls, path: Path) -> LandmarkPlayer:
        """Load from compact npz format."""
        data = np.load(path, allow_pickle=False)
        timestamps = data["timestamps"]
        landmarks = data["landmarks"]
        present = data["present"]
        labels = json.loads(str(data["labels"][0]))

        frames = []
        for i in range(len(timestamps)):
            frames.append(RecordedFrame(
                timestamp=float(timestamps[i]),
                landmarks=landmarks[i].tolist() if present[i] else None,
                label=labels[i] if i < len(labels) else None,
            ))
        return cls(frames)

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        if not self._frames:
            return 0.0
        return self._frames[-1].timestamp

    @staticmethod
    def _as_arrays(frame: RecordedFrame) -> RecordedFrame:
        return RecordedFrame(
            timestamp=frame.timestamp,
            landmarks=None if frame.landmarks is None else np.array(frame.landmarks, dtype=np.float64),
            label=frame.label,
        )

    def play(self) -> Iterator[RecordedFrame]:
        """Iterate through all frames instantly (no timing)."""
        for frame in self._frames:
            yield self._as_arrays(frame)

    def play_realtime(self, speed: float = 1.0) -> Iterator[RecordedFrame]:
        """Replay at original timing (or scaled by speed factor).

        Args:
            speed: Playback speed multiplier (2.0 = double speed).
        """
        if not self._frames:
            return

        start = time.monotonic()

        for frame in self.play():
            target_time = frame.timestamp / speed
            elapsed = time.monotonic() - start
            if target_time > elapsed:
                time.sleep(target_time - elapsed)
            yield frame

    def get_frame(self, index: int) -> Optional[RecordedFrame]:
        """Get a specific frame by index."""
        if 0 <= index < len(self._frames):
            return self._as_arrays(self._frames[index])
        return None
