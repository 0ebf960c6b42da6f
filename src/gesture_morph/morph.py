"""Tree ↔ sphere blend value driven by eased timed transitions."""

from __future__ import annotations

import logging
from typing import Optional

from gesture_morph.easing import Easing
from gesture_morph.timeline import Timeline, Tween

logger = logging.getLogger("gesture_morph.morph")

MORPH_KEY = "morph"


class MorphController:
    """Owns the morph scalar (0 = tree, 1 = sphere).

    The value only changes through timeline tweens: ``set_target`` replaces
    any in-flight transition and restarts from the current live value. The
    timeline is shared with the rest of the scene and advanced once per
    frame by whoever drives the frame loop.
    """

    def __init__(
        self,
        timeline: Optional[Timeline] = None,
        initial: float = 0.0,
        default_duration: float = 2.2,
        default_easing: str | Easing = "power2.inOut",
    ):
        if not 0.0 <= initial <= 1.0:
            raise ValueError(f"initial morph value must be in [0, 1], got {initial}")
        self.timeline = timeline if timeline is not None else Timeline()
        self.default_duration = default_duration
        self.default_easing = default_easing
        self._value = float(initial)
        self._target = float(initial)

    def set_target(
        self,
        value: float,
        duration: Optional[float] = None,
        easing: Optional[str | Easing] = None,
    ) -> Tween:
        """Animate toward ``value`` over ``duration`` seconds."""
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"morph target must be in [0, 1], got {value}")
        duration = self.default_duration if duration is None else duration
        easing = self.default_easing if easing is None else easing

        self._target = float(value)
        logger.debug("Morph %.3f -> %.1f over %.2fs", self._value, value, duration)
        return self.timeline.add(Tween(
            key=MORPH_KEY,
            start=self._value,
            target=float(value),
            duration=duration,
            easing=easing,
            on_update=self._apply,
        ))

    def current_value(self) -> float:
        return self._value

    @property
    def target(self) -> float:
        return self._target

    @property
    def in_transition(self) -> bool:
        return self.timeline.is_active(MORPH_KEY)

    def advance(self, dt: float):
        """Advance the shared timeline; for callers that own it alone."""
        self.timeline.advance(dt)

    def _apply(self, value: float):
        self._value = min(1.0, max(0.0, float(value)))
