"""Scene modes and the gesture → mode selection with optional smoothing."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from gesture_morph.gestures import GestureLabel, GestureResult

logger = logging.getLogger("gesture_morph.modes")


class SceneMode(Enum):
    TREE = "TREE"
    SPHERE = "SPHERE"


LABEL_TO_MODE: dict[GestureLabel, SceneMode] = {
    GestureLabel.CLOSED_FIST: SceneMode.TREE,
    GestureLabel.OPEN_PALM: SceneMode.SPHERE,
}


@dataclass
class ModeChangeEvent:
    """Fired once when the selected mode changes."""
    previous: SceneMode
    mode: SceneMode
    label: Optional[GestureLabel]  # None when forced programmatically
    timestamp: float

    def to_dict(self) -> dict:
        return {
            "type": "mode",
            "previous": self.previous.value,
            "mode": self.mode.value,
            "label": self.label.value if self.label else None,
            "timestamp": self.timestamp,
        }


class ModeSelector:
    """Turns the per-frame gesture signal into a persistent scene mode.

    A closed fist selects the tree, an open palm the sphere; "no signal"
    leaves the last mode in place. With ``smoothing_window > 1`` the label
    must win a majority of the recent present labels before it counts.
    """

    def __init__(self, initial: SceneMode = SceneMode.TREE, smoothing_window: int = 1):
        if smoothing_window < 1:
            raise ValueError(f"smoothing_window must be >= 1, got {smoothing_window}")
        self.smoothing_window = smoothing_window
        self._mode = initial
        self._history: deque = deque(maxlen=smoothing_window)
        self._callbacks: list[Callable[[ModeChangeEvent], None]] = []
        self._changes = 0

    def on_change(self, callback: Callable[[ModeChangeEvent], None]):
        """Register a callback for mode change events."""
        self._callbacks.append(callback)

    @property
    def mode(self) -> SceneMode:
        return self._mode

    @property
    def change_count(self) -> int:
        return self._changes

    def update(self, result: GestureResult, timestamp: float = 0.0) -> Optional[ModeChangeEvent]:
        """Feed one frame's result; returns an event if the mode changed."""
        if not result.is_present or result.label not in LABEL_TO_MODE:
            return None

        self._history.append(result.label)
        smoothed = self._get_smoothed_label()
        if smoothed is None:
            return None
        return self._switch(LABEL_TO_MODE[smoothed], smoothed, timestamp)

    def force(self, mode: SceneMode, timestamp: float = 0.0) -> Optional[ModeChangeEvent]:
        """Select ``mode`` directly, bypassing the gesture signal."""
        self._history.clear()
        return self._switch(mode, None, timestamp)

    def reset(self, mode: SceneMode = SceneMode.TREE):
        self._mode = mode
        self._history.clear()
        self._changes = 0

    def _switch(self, mode: SceneMode, label: Optional[GestureLabel], timestamp: float) -> Optional[ModeChangeEvent]:
        if mode == self._mode:
            return None
        event = ModeChangeEvent(previous=self._mode, mode=mode, label=label, timestamp=timestamp)
        self._mode = mode
        self._changes += 1
        logger.info("Mode %s -> %s (%s)", event.previous.value, mode.value,
                    label.value if label else "forced")
        for cb in self._callbacks:
            cb(event)
        return event

    def _get_smoothed_label(self) -> Optional[GestureLabel]:
        """Return the majority label in the smoothing window, or None."""
        history = self._history
        if not history or len(history) < max(1, self.smoothing_window // 2):
            return None

        counts: dict[GestureLabel, int] = {}
        for label in history:
            counts[label] = counts.get(label, 0) + 1

        best = max(counts, key=counts.get)  # type: ignore
        if counts[best] > len(history) // 2:
            return best
        return None
