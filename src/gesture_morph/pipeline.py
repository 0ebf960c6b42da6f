"""Frame loop glue: landmarks → gesture → mode → timeline → scene frame."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional

from gesture_morph.classifier import GestureClassifier
from gesture_morph.config import SceneConfig
from gesture_morph.engine import AnimationEngine, FrameOutput
from gesture_morph.gestures import NO_SIGNAL, FistRule, GestureResult
from gesture_morph.metrics import MetricsCollector
from gesture_morph.modes import ModeChangeEvent, SceneMode
from gesture_morph.profiler import FrameProfiler

logger = logging.getLogger("gesture_morph.pipeline")


@dataclass
class PipelineStats:
    """Runtime performance statistics."""
    fps: float
    avg_latency_ms: float
    total_frames: int
    mode_changes: int
    mode: str
    morph: float
    frames_rejected: int = 0
    profiler_summary: dict = field(default_factory=dict)
    budget: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "fps": round(self.fps, 1),
            "avg_latency_ms": round(self.avg_latency_ms, 3),
            "total_frames": self.total_frames,
            "mode_changes": self.mode_changes,
            "mode": self.mode,
            "morph": round(self.morph, 4),
            "frames_rejected": self.frames_rejected,
            "profiler": self.profiler_summary,
            "budget": self.budget,
        }


class ScenePipeline:
    """Runs one frame of the scene per ``step`` call.

    Within a frame the order is fixed: the classifier sees the new landmarks
    first, the shared timeline is advanced by the time since the previous
    step, the mode selector reacts to the classification, and only then is
    the engine evaluated. A transition started by a gesture begins at the
    frame the gesture was seen, so that frame still shows its start value.
    """

    def __init__(
        self,
        engine: Optional[AnimationEngine] = None,
        classifier: Optional[GestureClassifier] = None,
        config: Optional[SceneConfig] = None,
        metrics: Optional[MetricsCollector] = None,
        enable_profiling: bool = True,
        seed: Optional[int] = None,
    ):
        self.config = config or (engine.config if engine is not None else SceneConfig())
        self.engine = engine or AnimationEngine.from_config(self.config, seed=seed)
        if classifier is None:
            c = self.config.classifier
            classifier = GestureClassifier(FistRule(slack=c.curl_slack, min_curled=c.min_curled))
        self.classifier = classifier
        self.metrics = metrics or MetricsCollector()
        self.profiler = FrameProfiler(target_fps=self.config.server.fps)
        self.profiler.enabled = enable_profiling

        self._callbacks: list[Callable[[ModeChangeEvent], None]] = []
        self._previous_t: Optional[float] = None
        self._frame_times: deque = deque(maxlen=60)
        self._total_frames = 0
        self._last_result: GestureResult = NO_SIGNAL

        self.engine.selector.on_change(self._on_mode_change)

    def on_mode_change(self, callback: Callable[[ModeChangeEvent], None]):
        """Register a callback for mode change events."""
        self._callbacks.append(callback)

    def step(
        self,
        t: float,
        landmarks=None,
        frame_timestamp: Optional[float] = None,
    ) -> FrameOutput:
        """Produce the frame for elapsed time ``t``.

        Args:
            t: Seconds since the scene started; the timeline advances by the
                (non-negative) difference to the previous call.
            landmarks: 21 hand landmarks seen this frame, or None.
            frame_timestamp: Capture time of ``landmarks``; defaults to ``t``.
                A timestamp that is not newer than the last one is treated as
                "no new video frame".
        """
        t_start = time.perf_counter()
        self._total_frames += 1

        with self.profiler.step("classification"):
            ts = t if frame_timestamp is None else frame_timestamp
            rejected_before = self.classifier.frames_rejected
            result = self.classifier.classify(landmarks, ts)
            rejected = self.classifier.frames_rejected - rejected_before

        # Transitions started below begin at t; they get none of the time
        # that passed before this frame.
        with self.profiler.step("timeline"):
            dt = 0.0 if self._previous_t is None else max(0.0, t - self._previous_t)
            self._previous_t = t if self._previous_t is None else max(t, self._previous_t)
            self.engine.tick(dt)

        with self.profiler.step("mode_selection"):
            self.engine.apply_gesture(result, ts)

        frame = self.engine.frame(t, self.engine.morph.current_value(), result, profiler=self.profiler)

        self._last_result = result
        if result.is_present:
            self.metrics.record_gesture(result.label.value)
        if rejected:
            self.metrics.record_rejected(rejected)

        latency = time.perf_counter() - t_start
        self._frame_times.append(latency)
        if self.profiler.end_frame(latency * 1000.0):
            self.metrics.record_overrun()
        self.metrics.record_frame(latency, result.is_present, frame.morph)
        return frame

    def force_mode(self, mode: SceneMode, timestamp: Optional[float] = None) -> Optional[ModeChangeEvent]:
        """Switch mode without a gesture (manual control, client request)."""
        ts = self._previous_t if timestamp is None else timestamp
        return self.engine.set_mode(mode, ts or 0.0)

    def _on_mode_change(self, event: ModeChangeEvent):
        self.metrics.record_mode_change(event.mode.value)
        for cb in self._callbacks:
            cb(event)

    @property
    def mode(self) -> SceneMode:
        return self.engine.mode

    @property
    def last_result(self) -> GestureResult:
        return self._last_result

    @property
    def stats(self) -> PipelineStats:
        """Get current performance statistics."""
        if self._frame_times:
            avg_latency = sum(self._frame_times) / len(self._frame_times)
            fps = 1.0 / avg_latency if avg_latency > 0 else 0.0
        else:
            avg_latency = 0.0
            fps = 0.0

        return PipelineStats(
            fps=fps,
            avg_latency_ms=avg_latency * 1000,
            total_frames=self._total_frames,
            mode_changes=self.engine.selector.change_count,
            mode=self.mode.value,
            morph=self.engine.morph.current_value(),
            frames_rejected=self.classifier.frames_rejected,
            profiler_summary=self.profiler.summary(),
            budget=self.profiler.budget_report(),
        )

    def reset(self):
        """Clear per-session counters and the classifier's frame memory."""
        self.classifier.reset()
        self._previous_t = None
        self._frame_times.clear()
        self._total_frames = 0
        self._last_result = NO_SIGNAL
        self.profiler.reset()
