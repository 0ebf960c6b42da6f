"""Floating decorations and their twinkle.

Decorations are scattered once at startup inside a spherical shell and never
added or removed. Each gets a phase from its index and x coordinate; the
twinkle mixes two incommensurate frequencies per decoration so the set never
flickers in sync.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from gesture_morph.config import DecorationConfig
from gesture_morph.shapes import make_rng

logger = logging.getLogger("gesture_morph.decorations")

EMISSIVE_BASE = 0.7
GLOW_BASE = 0.4


class DecorationKind(Enum):
    GIFT = "gift"
    BAUBLE = "bauble"
    FIGURE = "figure"  # small figurine, no glow sprite


@dataclass(frozen=True)
class DecorationRecord:
    index: int
    position: tuple[float, float, float]
    kind: DecorationKind
    phase: float

    @property
    def has_glow(self) -> bool:
        return self.kind != DecorationKind.FIGURE

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "position": [round(v, 5) for v in self.position],
            "kind": self.kind.value,
            "phase": round(self.phase, 5),
        }


def scatter_decorations(
    config: Optional[DecorationConfig] = None,
    rng: Optional[int | np.random.Generator] = None,
) -> list[DecorationRecord]:
    """Place ``config.count`` decorations uniformly in direction, radius in [min, max)."""
    config = config or DecorationConfig()
    rng = make_rng(rng)
    kinds = list(DecorationKind)

    records = []
    for i in range(config.count):
        kind = kinds[min(int(rng.random() * len(kinds)), len(kinds) - 1)]
        radius = config.min_radius + rng.random() * (config.max_radius - config.min_radius)
        theta = rng.random() * 2 * np.pi
        phi = np.arccos(2 * rng.random() - 1)
        x = float(radius * np.sin(phi) * np.cos(theta))
        y = float(radius * np.sin(phi) * np.sin(theta))
        z = float(radius * np.cos(phi))
        records.append(DecorationRecord(
            index=i,
            position=(x, y, z),
            kind=kind,
            phase=config.phase_step * i + x,
        ))

    logger.debug("Scattered %d decorations", len(records))
    return records


class DecorationSet:
    """Vectorized twinkle over a fixed list of decorations.

    ``twinkle`` writes into buffers owned by the set and returns them; they
    are fully overwritten on every call.
    """

    def __init__(self, records: list[DecorationRecord]):
        self.records = tuple(records)
        self.positions = np.array([r.position for r in records], dtype=np.float64).reshape(-1, 3)
        self.phases = np.array([r.phase for r in records], dtype=np.float64)
        self.has_glow = np.array([r.has_glow for r in records], dtype=bool)
        self._emissive = np.empty(len(records), dtype=np.float64)
        self._opacity = np.empty(len(records), dtype=np.float64)
        self._scratch = np.empty(len(records), dtype=np.float64)

    def __len__(self) -> int:
        return len(self.records)

    def twinkle(self, t: float) -> tuple[np.ndarray, np.ndarray]:
        """Return (emissive intensity, glow opacity) per decoration at time ``t``."""
        p = self.phases
        emissive, opacity, scratch = self._emissive, self._opacity, self._scratch

        np.add(p, 2.0 * t, out=emissive)
        np.sin(emissive, out=emissive)
        emissive *= 0.15
        np.add(p, 5.3 * t, out=scratch)
        np.cos(scratch, out=scratch)
        scratch *= 0.05
        emissive += scratch
        emissive += EMISSIVE_BASE

        np.add(p, 2.5 * t, out=opacity)
        np.sin(opacity, out=opacity)
        opacity *= 0.1
        opacity += GLOW_BASE

        return emissive, opacity
