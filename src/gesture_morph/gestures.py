"""Gesture vocabulary and the finger-curl rule used to tell a fist from a palm."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import numpy as np

from gesture_morph.config import ConfigurationError

# MediaPipe hand landmark indices
WRIST = 0
INDEX_PIP, INDEX_TIP = 6, 8
MIDDLE_PIP, MIDDLE_TIP = 10, 12
RING_PIP, RING_TIP = 14, 16
PINKY_PIP, PINKY_TIP = 18, 20

NUM_LANDMARKS = 21


class GestureLabel(Enum):
    """Discrete gesture signal. Values match the upstream recognizer names."""
    NONE = "None"
    OPEN_PALM = "Open_Palm"
    CLOSED_FIST = "Closed_Fist"


class FingerState(Enum):
    """Binary finger state based on landmark positions."""
    EXTENDED = "extended"
    CURLED = "curled"


@dataclass(frozen=True)
class GestureResult:
    """Latest classification: label plus whether a hand was seen at all."""
    label: GestureLabel = GestureLabel.NONE
    is_present: bool = False

    def to_dict(self) -> dict:
        return {"gesture": self.label.value, "is_present": self.is_present}


NO_SIGNAL = GestureResult(GestureLabel.NONE, False)


@dataclass(frozen=True)
class FistRule:
    """Counts curled fingers among index, middle, ring and pinky.

    A finger is curled when its tip is closer to the wrist than its PIP
    joint, with ``slack`` tolerance (``d_tip < d_pip * slack``). Distances are
    planar: only x and y are used, depth is too noisy. ``min_curled`` or more
    curled fingers make a fist; anything else is an open palm.
    """

    tips: tuple[int, ...] = (INDEX_TIP, MIDDLE_TIP, RING_TIP, PINKY_TIP)
    pips: tuple[int, ...] = (INDEX_PIP, MIDDLE_PIP, RING_PIP, PINKY_PIP)
    slack: float = 1.2
    min_curled: int = 3

    def __post_init__(self):
        if not self.tips or len(self.tips) != len(self.pips):
            raise ConfigurationError("tips and pips must be non-empty and pair up")
        for idx in (*self.tips, *self.pips):
            if isinstance(idx, bool) or not isinstance(idx, int) or not 0 < idx < NUM_LANDMARKS:
                raise ConfigurationError(f"landmark index must be in [1, {NUM_LANDMARKS - 1}], got {idx!r}")
        if not 1 <= self.min_curled <= len(self.tips):
            raise ConfigurationError(f"min_curled must be in [1, {len(self.tips)}], got {self.min_curled}")

    def finger_states(self, landmarks: np.ndarray) -> list[FingerState]:
        wrist = landmarks[WRIST, :2]
        states = []
        for tip_idx, pip_idx in zip(self.tips, self.pips):
            d_tip = float(np.hypot(*(landmarks[tip_idx, :2] - wrist)))
            d_pip = float(np.hypot(*(landmarks[pip_idx, :2] - wrist)))
            if d_tip < d_pip * self.slack:
                states.append(FingerState.CURLED)
            else:
                states.append(FingerState.EXTENDED)
        return states

    def curled_count(self, landmarks: np.ndarray) -> int:
        return sum(1 for s in self.finger_states(landmarks) if s == FingerState.CURLED)

    def match(self, landmarks: np.ndarray) -> GestureLabel:
        if self.curled_count(landmarks) >= self.min_curled:
            return GestureLabel.CLOSED_FIST
        return GestureLabel.OPEN_PALM

    def to_dict(self) -> dict:
        return {
            "tips": list(self.tips),
            "pips": list(self.pips),
            "slack": self.slack,
            "min_curled": self.min_curled,
        }

    @classmethod
    def from_dict(cls, data: dict) -> FistRule:
        default = cls()
        return cls(
            tips=tuple(data.get("tips", default.tips)),
            pips=tuple(data.get("pips", default.pips)),
            slack=data.get("slack", default.slack),
            min_curled=data.get("min_curled", default.min_curled),
        )

    def save(self, path: str | Path):
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: str | Path) -> FistRule:
        with open(path) as f:
            return cls.from_dict(json.load(f))


def as_landmark_array(landmarks) -> Optional[np.ndarray]:
    """Coerce one hand's landmarks to a finite ``(21, 2|3)`` float array.

    Returns None for anything else (partial hands, wrong dimensionality,
    NaN/inf) so callers can fail closed instead of guessing.
    """
    if landmarks is None:
        return None
    try:
        arr = np.asarray(landmarks, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if arr.ndim != 2 or arr.shape[0] != NUM_LANDMARKS or arr.shape[1] not in (2, 3):
        return None
    if not np.all(np.isfinite(arr)):
        return None
    return arr
