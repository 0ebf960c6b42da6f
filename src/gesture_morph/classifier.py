"""Per-frame gesture classification with frame-timestamp dedup."""

from __future__ import annotations

import logging
import math
import threading
from typing import Optional

import numpy as np

from gesture_morph.gestures import (
    NO_SIGNAL,
    FistRule,
    GestureResult,
    as_landmark_array,
)

logger = logging.getLogger("gesture_morph.classifier")


class GestureClassifier:
    """Classifies one hand per video frame as open palm or closed fist.

    The classifier remembers the timestamp of the last frame it processed.
    A call whose timestamp is not strictly newer means no new frame arrived
    (or frames came out of order) and yields ``NO_SIGNAL``, as does a NaN or
    infinite timestamp, which is never remembered; callers treat that
    as "no signal this tick" rather than holding the previous label.

    Absent or malformed landmarks also yield ``NO_SIGNAL``. Nothing here
    raises on bad per-frame input.
    """

    def __init__(self, rule: Optional[FistRule] = None):
        self.rule = rule or FistRule()
        self._last_timestamp: Optional[float] = None
        self._frames_processed = 0
        self._frames_rejected = 0

    def classify(self, landmarks, timestamp: float) -> GestureResult:
        """Classify ``landmarks`` (21 points, or None) captured at ``timestamp``."""
        if not math.isfinite(timestamp):
            logger.debug("Ignoring frame with non-finite timestamp %r", timestamp)
            return NO_SIGNAL
        if self._last_timestamp is not None and timestamp <= self._last_timestamp:
            return NO_SIGNAL
        self._last_timestamp = timestamp
        self._frames_processed += 1

        if landmarks is None:
            return NO_SIGNAL

        arr = as_landmark_array(landmarks)
        if arr is None:
            self._frames_rejected += 1
            logger.debug("Rejected malformed landmark set at t=%s", timestamp)
            return NO_SIGNAL

        return GestureResult(self.rule.match(arr), True)

    def classify_landmarks(self, landmarks: np.ndarray) -> GestureResult:
        """Classify without dedup, for offline use on a single landmark set."""
        arr = as_landmark_array(landmarks)
        if arr is None:
            return NO_SIGNAL
        return GestureResult(self.rule.match(arr), True)

    def reset(self):
        """Forget the last processed timestamp (session teardown)."""
        self._last_timestamp = None
        self._frames_processed = 0
        self._frames_rejected = 0

    @property
    def last_timestamp(self) -> Optional[float]:
        return self._last_timestamp

    @property
    def frames_processed(self) -> int:
        return self._frames_processed

    @property
    def frames_rejected(self) -> int:
        return self._frames_rejected


class LatestGestureSlot:
    """Single atomically-published latest result, for worker-thread classifiers.

    The worker calls ``publish``; the frame loop calls ``read`` and never
    waits for a new value. A stale result for a frame or two is fine.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._result: GestureResult = NO_SIGNAL
        self._timestamp: Optional[float] = None
        self._version = 0

    def publish(self, result: GestureResult, timestamp: Optional[float] = None):
        with self._lock:
            self._result = result
            self._timestamp = timestamp
            self._version += 1

    def read(self) -> tuple[GestureResult, int]:
        """Return (latest result, publish counter)."""
        with self._lock:
            return self._result, self._version

    @property
    def timestamp(self) -> Optional[float]:
        with self._lock:
            return self._timestamp
