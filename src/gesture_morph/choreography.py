"""Three bodies chasing each other around the scene on a shared orbit.

Every transform is a closed-form function of elapsed time and fixed
per-entity constants; no velocity or position is carried between frames.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from gesture_morph.config import ChoreographyConfig, EntityParams


class EntityRole(Enum):
    LEADER = "leader"
    FOLLOWER_1 = "follower1"
    FOLLOWER_2 = "follower2"


@dataclass(frozen=True)
class EntityTransform:
    """Where one body is this frame and which way it faces.

    ``rotation_offset`` is an extra (x, y, z) Euler rotation applied after
    facing ``look_target``: the leader leans forward, the last follower
    wiggles.
    """
    role: EntityRole
    angle: float
    position: np.ndarray
    look_target: np.ndarray
    forward: np.ndarray
    rotation_offset: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "angle": round(self.angle, 5),
            "position": [round(float(v), 5) for v in self.position],
            "forward": [round(float(v), 5) for v in self.forward],
            "rotation_offset": [round(v, 5) for v in self.rotation_offset],
        }


@dataclass(frozen=True)
class ChoreographedEntity:
    """Fixed orbit constants for one body. Bob frequency is its own constant."""
    role: EntityRole
    radius: float
    phase_offset: float
    bob_frequency: float
    bob_amplitude: float
    base_height: float
    pitch: float = 0.0
    wiggle_frequency: float = 0.0
    wiggle_roll: float = 0.0
    wiggle_yaw: float = 0.0

    @classmethod
    def from_params(cls, role: EntityRole, radius: float, params: EntityParams) -> ChoreographedEntity:
        return cls(
            role=role,
            radius=radius,
            phase_offset=params.phase_offset,
            bob_frequency=params.bob_frequency,
            bob_amplitude=params.bob_amplitude,
            base_height=params.base_height,
            pitch=params.pitch,
            wiggle_frequency=params.wiggle_frequency,
            wiggle_roll=params.wiggle_roll,
            wiggle_yaw=params.wiggle_yaw,
        )

    def transform(self, t: float, orbit_angle: float, look_ahead: float = 0.1) -> EntityTransform:
        phase = orbit_angle + self.phase_offset
        height = self.base_height + abs(math.sin(t * self.bob_frequency)) * self.bob_amplitude
        position = np.array([
            self.radius * math.cos(phase),
            height,
            self.radius * math.sin(phase),
        ])

        ahead = phase + look_ahead
        look_target = np.array([
            self.radius * math.cos(ahead),
            self.base_height,
            self.radius * math.sin(ahead),
        ])
        heading = look_target - position
        forward = heading / (np.linalg.norm(heading) + 1e-12)

        roll = yaw = 0.0
        if self.wiggle_frequency:
            roll = math.sin(t * self.wiggle_frequency) * self.wiggle_roll
            yaw = math.cos(t * self.wiggle_frequency) * self.wiggle_yaw

        return EntityTransform(
            role=self.role,
            angle=phase,
            position=position,
            look_target=look_target,
            forward=forward,
            rotation_offset=(self.pitch, yaw, roll),
        )


class Choreographer:
    """Evaluates all entities against one shared orbit angle ``a(t) = speed * t``.

    Phase offsets keep the ordering around the loop fixed: the leader runs
    ahead, the second follower trails.
    """

    def __init__(self, config: Optional[ChoreographyConfig] = None):
        self.config = config or ChoreographyConfig()
        c = self.config
        self.entities: tuple[ChoreographedEntity, ...] = (
            ChoreographedEntity.from_params(EntityRole.LEADER, c.orbit_radius, c.leader),
            ChoreographedEntity.from_params(EntityRole.FOLLOWER_1, c.orbit_radius, c.follower1),
            ChoreographedEntity.from_params(EntityRole.FOLLOWER_2, c.orbit_radius, c.follower2),
        )

    def orbit_angle(self, t: float) -> float:
        return t * self.config.orbit_speed

    def transforms(self, t: float) -> tuple[EntityTransform, ...]:
        angle = self.orbit_angle(t)
        return tuple(e.transform(t, angle, self.config.look_ahead) for e in self.entities)

    def entity(self, role: EntityRole) -> ChoreographedEntity:
        for e in self.entities:
            if e.role == role:
                return e
        raise KeyError(role)
