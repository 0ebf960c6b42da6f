"""The focal star: idle wobble, pulsing glow and mode-change moves."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

PULSE_BASE = 1.5
PULSE_AMPLITUDE = 0.2
FLICKER_AMPLITUDE = 0.3


@dataclass
class StarFrame:
    """Star state handed to the renderer for one frame."""
    position: np.ndarray
    rotation: tuple[float, float, float]  # (x wobble, y spin, z wobble)
    scale: float
    intensity: float

    def dimmed(self, damping: float) -> StarFrame:
        """Mirror counterpart: same transform, damped emissive intensity."""
        return StarFrame(
            position=self.position,
            rotation=self.rotation,
            scale=self.scale,
            intensity=self.intensity * damping,
        )

    def to_dict(self) -> dict:
        return {
            "position": [round(float(v), 5) for v in self.position],
            "rotation": [round(v, 5) for v in self.rotation],
            "scale": round(self.scale, 5),
            "intensity": round(self.intensity, 5),
        }


class FocalStar:
    """Live star properties.

    ``position``, ``spin`` and ``scale`` are moved only by timeline tweens on
    mode changes. Wobble and pulse are closed-form in time. The flicker term
    is drawn fresh from ``rng`` on every frame and is the one intentionally
    non-deterministic output of a frame.
    """

    def __init__(self, position=(0.0, 7.8, 0.0), rng: Optional[np.random.Generator] = None):
        self.position = np.asarray(position, dtype=np.float64).copy()
        self.spin = 0.0
        self.scale = 1.0
        self._rng = rng if rng is not None else np.random.default_rng()

    @staticmethod
    def wobble(t: float) -> tuple[float, float]:
        """(x, z) idle rotation."""
        return math.cos(t * 1.5) * 0.1, math.sin(t * 2.0) * 0.1

    @staticmethod
    def pulse(t: float) -> float:
        return math.sin(t * 2.5) * PULSE_AMPLITUDE + PULSE_BASE

    def flicker(self) -> float:
        return (float(self._rng.random()) - 0.5) * FLICKER_AMPLITUDE

    def frame(self, t: float) -> StarFrame:
        wobble_x, wobble_z = self.wobble(t)
        return StarFrame(
            position=self.position.copy(),
            rotation=(wobble_x, self.spin, wobble_z),
            scale=self.scale,
            intensity=self.pulse(t) + self.flicker(),
        )

    # Tween targets

    def set_position(self, value):
        self.position[:] = value

    def set_spin(self, value: float):
        self.spin = float(value)

    def set_scale(self, value: float):
        self.scale = float(value)
