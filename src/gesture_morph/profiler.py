"""Frame-budget profiler for the scene loop.

A frame is split into named steps. The pipeline times classification, the
timeline advance and mode selection; the engine times its own sub-steps
(blend, choreography, twinkle, star). ``end_frame`` closes the frame and
checks it against the budget implied by the target frame rate.

Usage:
    profiler = FrameProfiler(target_fps=30)

    with profiler.step("classification"):
        result = classifier.classify(landmarks, timestamp)
    frame = engine.frame(t, profiler=profiler)
    over = profiler.end_frame(elapsed_ms)

    print(profiler.summary(), profiler.budget_report())
"""

from __future__ import annotations

import logging
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np

from gesture_morph.config import ConfigurationError

logger = logging.getLogger("gesture_morph.profiler")

# Steps in the order they run within one frame
STEPS = (
    "classification",
    "timeline",
    "mode_selection",
    "blend",
    "choreography",
    "twinkle",
    "star",
)


@dataclass(frozen=True)
class StepTiming:
    step: str
    mean_ms: float
    worst_ms: float
    p95_ms: float
    share: float  # fraction of the mean frame time
    samples: int

    def to_dict(self) -> dict:
        return {
            "mean_ms": round(self.mean_ms, 3),
            "worst_ms": round(self.worst_ms, 3),
            "p95_ms": round(self.p95_ms, 3),
            "share": round(self.share, 3),
            "samples": self.samples,
        }


class FrameProfiler:
    """Per-step frame timings plus a running count of budget overruns.

    Time spent in a step is accumulated until ``end_frame``, so a step
    entered twice in one frame counts once with the summed duration. Only
    the last ``history`` frames feed the statistics; the overrun counter
    covers the whole session.
    """

    def __init__(self, target_fps: float = 30.0, history: int = 120):
        if target_fps <= 0:
            raise ConfigurationError(f"target_fps must be > 0, got {target_fps}")
        if history < 1:
            raise ConfigurationError(f"history must be >= 1, got {history}")
        self.target_fps = target_fps
        self.budget_ms = 1000.0 / target_fps
        self.enabled = True
        self._history = history
        self._pending: dict[str, float] = {}
        self._steps: dict[str, deque] = {}
        self._frames: deque = deque(maxlen=history)
        self._frame_count = 0
        self._overruns = 0

    @contextmanager
    def step(self, name: str) -> Iterator[None]:
        if not self.enabled:
            yield
            return
        t0 = time.perf_counter()
        try:
            yield
        finally:
            elapsed = (time.perf_counter() - t0) * 1000.0
            self._pending[name] = self._pending.get(name, 0.0) + elapsed

    def end_frame(self, frame_ms: Optional[float] = None) -> bool:
        """Close the current frame; True if it took longer than the budget.

        ``frame_ms`` defaults to the sum of the steps timed this frame.
        """
        if not self.enabled:
            self._pending.clear()
            return False
        if frame_ms is None:
            frame_ms = sum(self._pending.values())
        for name, ms in self._pending.items():
            if name not in self._steps:
                self._steps[name] = deque(maxlen=self._history)
            self._steps[name].append(ms)
        self._pending.clear()

        self._frames.append(frame_ms)
        self._frame_count += 1
        if frame_ms > self.budget_ms:
            self._overruns += 1
            logger.debug("Frame %d took %.2f ms (budget %.2f ms)",
                         self._frame_count, frame_ms, self.budget_ms)
            return True
        return False

    def timing(self, name: str) -> Optional[StepTiming]:
        samples = self._steps.get(name)
        if not samples:
            return None
        arr = np.fromiter(samples, dtype=np.float64, count=len(samples))
        mean_frame = float(np.mean(self._frames)) if self._frames else 0.0
        mean = float(arr.mean())
        return StepTiming(
            step=name,
            mean_ms=mean,
            worst_ms=float(arr.max()),
            p95_ms=float(np.percentile(arr, 95)),
            share=mean / mean_frame if mean_frame > 0 else 0.0,
            samples=len(arr),
        )

    def summary(self) -> dict[str, dict]:
        """Timings of every step seen so far, in frame order."""
        known = [s for s in STEPS if s in self._steps]
        extra = sorted(set(self._steps) - set(STEPS))
        return {name: self.timing(name).to_dict() for name in known + extra}

    def budget_report(self) -> dict:
        if self._frames:
            frames = np.fromiter(self._frames, dtype=np.float64, count=len(self._frames))
            mean_ms, worst_ms = float(frames.mean()), float(frames.max())
        else:
            mean_ms = worst_ms = 0.0
        return {
            "target_fps": self.target_fps,
            "budget_ms": round(self.budget_ms, 3),
            "frames": self._frame_count,
            "overruns": self._overruns,
            "overrun_rate": round(self._overruns / self._frame_count, 4) if self._frame_count else 0.0,
            "mean_frame_ms": round(mean_ms, 3),
            "worst_frame_ms": round(worst_ms, 3),
        }

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def overruns(self) -> int:
        return self._overruns

    def reset(self):
        self._pending.clear()
        self._steps.clear()
        self._frames.clear()
        self._frame_count = 0
        self._overruns = 0
