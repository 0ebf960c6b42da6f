"""Synthetic hands and scripted gesture sessions for headless runs.

``synthetic_hand`` builds a plausible 21-point hand in normalized image
coordinates with a chosen number of curled fingers. ``GestureScript`` turns
a schedule like ``"0:fist,3:palm,6:none"`` into per-frame landmarks.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

import numpy as np

from gesture_morph.gestures import NUM_LANDMARKS, GestureLabel

_WRIST = (0.5, 0.9)
_THUMB = [(0.42, 0.85), (0.36, 0.80), (0.32, 0.75), (0.29, 0.70)]
_FINGER_X = (0.42, 0.48, 0.54, 0.60)  # index, middle, ring, pinky
_OPEN_Y = (0.75, 0.65, 0.58, 0.52)    # MCP, PIP, DIP, TIP
_CURLED_Y = (0.75, 0.65, 0.72, 0.78)

_ALIASES = {
    "fist": GestureLabel.CLOSED_FIST,
    "closed_fist": GestureLabel.CLOSED_FIST,
    "palm": GestureLabel.OPEN_PALM,
    "open": GestureLabel.OPEN_PALM,
    "open_palm": GestureLabel.OPEN_PALM,
    "none": GestureLabel.NONE,
}


def synthetic_hand(
    curled: int | GestureLabel = 0,
    noise: float = 0.0,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Return a (21, 3) hand with the first ``curled`` fingers folded.

    ``curled`` may also be a label: a fist folds all four fingers, an open
    palm none.
    """
    if isinstance(curled, GestureLabel):
        curled = 4 if curled == GestureLabel.CLOSED_FIST else 0
    if not 0 <= curled <= 4:
        raise ValueError(f"curled must be in [0, 4], got {curled}")

    points = np.zeros((NUM_LANDMARKS, 3), dtype=np.float64)
    points[0, :2] = _WRIST
    for i, xy in enumerate(_THUMB, start=1):
        points[i, :2] = xy
    for finger, x in enumerate(_FINGER_X):
        ys = _CURLED_Y if finger < curled else _OPEN_Y
        for joint, y in enumerate(ys):
            points[5 + finger * 4 + joint, :2] = (x, y)

    if noise > 0:
        rng = rng if rng is not None else np.random.default_rng()
        points += rng.normal(0.0, noise, size=points.shape)
    return points


def parse_label(name: str) -> GestureLabel:
    try:
        return _ALIASES[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown gesture {name!r}; expected one of {sorted(_ALIASES)}") from None


@dataclass(frozen=True)
class ScriptEntry:
    start: float
    label: GestureLabel


class GestureScript:
    """Piecewise-constant gesture schedule.

    Before the first entry, and during ``none`` entries, no hand is shown.
    """

    _ENTRY_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*:\s*([A-Za-z_]+)\s*$")

    def __init__(self, entries: list[ScriptEntry], noise: float = 0.0, seed: Optional[int] = None):
        self.entries = sorted(entries, key=lambda e: e.start)
        self.noise = noise
        self._rng = np.random.default_rng(seed)

    @classmethod
    def parse(cls, text: str, **kwargs) -> GestureScript:
        entries = []
        for chunk in text.split(","):
            if not chunk.strip():
                continue
            m = cls._ENTRY_RE.match(chunk)
            if not m:
                raise ValueError(f"Bad script entry {chunk!r}; expected '<seconds>:<gesture>'")
            entries.append(ScriptEntry(float(m.group(1)), parse_label(m.group(2))))
        return cls(entries, **kwargs)

    def label_at(self, t: float) -> GestureLabel:
        label = GestureLabel.NONE
        for entry in self.entries:
            if entry.start > t:
                break
            label = entry.label
        return label

    def landmarks_at(self, t: float) -> Optional[np.ndarray]:
        label = self.label_at(t)
        if label == GestureLabel.NONE:
            return None
        return synthetic_hand(label, self.noise, self._rng)

    @property
    def duration(self) -> float:
        return self.entries[-1].start if self.entries else 0.0
