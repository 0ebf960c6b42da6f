"""Reflective floor: the whole scene duplicated upside down below ``floor_y``."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from gesture_morph.choreography import EntityTransform
from gesture_morph.config import MirrorConfig


@dataclass(frozen=True)
class MirrorTransform:
    """Vertical flip about the floor plane plus emissive damping.

    A renderer reproduces the reflection by parenting a copy of the scene
    under a group with ``scale_y = -1`` placed at ``offset_y``; the helpers
    here compute the same thing for consumers that want world coordinates.
    """
    floor_y: float = -9.0
    star_damping: float = 0.3
    decoration_damping: float = 0.5
    particle_opacity: float = 0.4

    scale_y = -1.0

    @classmethod
    def from_config(cls, config: Optional[MirrorConfig] = None) -> MirrorTransform:
        config = config or MirrorConfig()
        return cls(
            floor_y=config.floor_y,
            star_damping=config.star_damping,
            decoration_damping=config.decoration_damping,
            particle_opacity=config.particle_opacity,
        )

    @property
    def offset_y(self) -> float:
        return 2.0 * self.floor_y

    def reflect_y(self, y):
        return self.offset_y + self.scale_y * y

    def reflect_points(self, points: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
        """World-space copy of ``points`` as seen in the floor."""
        if out is None:
            out = np.array(points, dtype=np.float64, copy=True)
        else:
            out[...] = points
        out[:, 1] = self.reflect_y(out[:, 1])
        return out

    def reflect_entity(self, transform: EntityTransform) -> EntityTransform:
        position = transform.position.copy()
        position[1] = self.reflect_y(position[1])
        look_target = transform.look_target.copy()
        look_target[1] = self.reflect_y(look_target[1])
        forward = transform.forward.copy()
        forward[1] = -forward[1]
        return replace(transform, position=position, look_target=look_target, forward=forward)

    def to_dict(self) -> dict:
        return {
            "floor_y": self.floor_y,
            "scale_y": self.scale_y,
            "offset_y": self.offset_y,
            "star_damping": self.star_damping,
            "decoration_damping": self.decoration_damping,
            "particle_opacity": self.particle_opacity,
        }
