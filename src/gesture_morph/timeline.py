"""Explicit tween timeline, advanced by its owner once per tick.

A ``Tween`` is a plain value object describing one property transition. A
``Timeline`` holds the active tweens keyed by property name, advances them
all by the frame's delta time, pushes the eased value through each tween's
``on_update`` and drops the finished ones.

Adding a tween for a key that is already animating replaces the old one
(last call wins); the caller supplies ``start`` as the property's current
live value so the new transition picks up where the old one stopped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

import numpy as np

from gesture_morph.easing import Easing, linear, resolve_easing

logger = logging.getLogger("gesture_morph.timeline")

Value = Union[float, np.ndarray]


@dataclass
class Tween:
    """One property transition from ``start`` to ``target``.

    With ``yoyo`` the tween plays forward then backward on alternate
    repeats; ``repeat=1`` with ``yoyo=True`` therefore returns to ``start``
    after ``2 * duration``. ``delay`` seconds pass before the first update.
    """
    key: str
    start: Value
    target: Value
    duration: float
    easing: Easing = linear
    on_update: Optional[Callable[[Value], None]] = None
    delay: float = 0.0
    repeat: int = 0
    yoyo: bool = False
    elapsed: float = 0.0

    def __post_init__(self):
        if self.duration < 0:
            raise ValueError(f"tween duration must be >= 0, got {self.duration}")
        if self.delay < 0:
            raise ValueError(f"tween delay must be >= 0, got {self.delay}")
        if self.repeat < 0:
            raise ValueError(f"tween repeat must be >= 0, got {self.repeat}")
        self.easing = resolve_easing(self.easing)
        if isinstance(self.start, (list, tuple, np.ndarray)):
            self.start = np.asarray(self.start, dtype=np.float64)
            self.target = np.asarray(self.target, dtype=np.float64)

    @property
    def total_duration(self) -> float:
        return self.delay + self.duration * (self.repeat + 1)

    @property
    def finished(self) -> bool:
        return self.elapsed >= self.total_duration

    @property
    def started(self) -> bool:
        return self.elapsed >= self.delay

    def progress(self) -> float:
        """Un-eased progress of the current cycle in [0, 1]."""
        active = self.elapsed - self.delay
        if self.finished:
            cycle, local = self.repeat, 1.0
        elif active <= 0:
            return 0.0
        elif self.duration == 0:
            return 1.0
        else:
            cycle, rem = divmod(active, self.duration)
            cycle = int(cycle)
            local = rem / self.duration
        if self.yoyo and cycle % 2 == 1:
            return 1.0 - local
        return local

    def value(self) -> Value:
        p = self.progress()
        if p >= 1.0:
            return self.target
        if p <= 0.0:
            return self.start
        eased = self.easing(p)
        return self.start + (self.target - self.start) * eased

    def advance(self, dt: float) -> bool:
        """Move ``dt`` seconds forward and publish the value. True once finished."""
        self.elapsed = min(self.elapsed + max(dt, 0.0), self.total_duration)
        if self.started and self.on_update is not None:
            self.on_update(self.value())
        return self.finished


class Timeline:
    """Set of active tweens, advanced once per frame tick."""

    def __init__(self):
        self._tweens: dict[str, Tween] = {}

    def add(self, tween: Tween) -> Tween:
        """Start ``tween``, replacing any in-flight tween with the same key."""
        if tween.key in self._tweens:
            logger.debug("Tween %r interrupted", tween.key)
        self._tweens[tween.key] = tween
        return tween

    def to(
        self,
        key: str,
        start: Value,
        target: Value,
        duration: float,
        easing: str | Easing = "linear",
        on_update: Optional[Callable[[Value], None]] = None,
        **kwargs,
    ) -> Tween:
        return self.add(Tween(
            key=key, start=start, target=target, duration=duration,
            easing=easing, on_update=on_update, **kwargs,
        ))

    def advance(self, dt: float) -> list[str]:
        """Advance all tweens by ``dt`` seconds; returns keys that finished."""
        done = []
        for key, tween in list(self._tweens.items()):
            if tween.advance(dt):
                done.append(key)
        for key in done:
            del self._tweens[key]
        return done

    def kill(self, key: str) -> bool:
        return self._tweens.pop(key, None) is not None

    def clear(self):
        self._tweens.clear()

    def get(self, key: str) -> Optional[Tween]:
        return self._tweens.get(key)

    def is_active(self, key: str) -> bool:
        return key in self._tweens

    @property
    def active_keys(self) -> list[str]:
        return list(self._tweens)

    def __len__(self) -> int:
        return len(self._tweens)
