"""Prometheus-compatible metrics for the gesture-morph server.

Exposes /metrics in Prometheus text exposition format, generated directly
without a client library.

Tracked metrics:
- gesture_morph_frames_total (counter)
- gesture_morph_gestures_total (counter, by label)
- gesture_morph_mode_changes_total (counter, by target mode)
- gesture_morph_frames_rejected_total (counter, malformed landmark sets)
- gesture_morph_frame_budget_overruns_total (counter, frames slower than the target fps)
- gesture_morph_hand_presence_rate (gauge, EMA of hand presence)
- gesture_morph_morph_value (gauge)
- gesture_morph_frame_latency_seconds (histogram)
- gesture_morph_active_connections (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter


class _Histogram:
    """Simple cumulative histogram with fixed buckets."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> str:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for i, b in enumerate(self.buckets):
                cumulative += self.bucket_counts[i]
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return "\n".join(lines)


class MetricsCollector:
    """Collects and exposes Prometheus metrics for the scene pipeline."""

    PRESENCE_DECAY = 0.95

    def __init__(self):
        self._gesture_counts: Counter = Counter()
        self._mode_changes: Counter = Counter()
        self._frames_total = 0
        self._frames_rejected = 0
        self._overruns = 0
        self._active_connections = 0
        self._hand_presence_rate = 0.0
        self._morph_value = 0.0
        self._lock = threading.Lock()

        # Frame latency buckets from 0.5 ms up to two frames at 30 fps
        self._latency = _Histogram(
            [0.0005, 0.001, 0.002, 0.005, 0.010, 0.020, 0.033, 0.066]
        )

        self._start_time = time.time()

    def record_frame(self, latency_seconds: float, hand_present: bool, morph: float = 0.0):
        with self._lock:
            self._frames_total += 1
            rate = 1.0 if hand_present else 0.0
            self._hand_presence_rate = (
                self.PRESENCE_DECAY * self._hand_presence_rate + (1 - self.PRESENCE_DECAY) * rate
            )
            self._morph_value = morph
        self._latency.observe(latency_seconds)

    def record_gesture(self, label: str):
        with self._lock:
            self._gesture_counts[label] += 1

    def record_mode_change(self, mode: str):
        with self._lock:
            self._mode_changes[mode] += 1

    def record_rejected(self, count: int = 1):
        with self._lock:
            self._frames_rejected += count

    def record_overrun(self):
        with self._lock:
            self._overruns += 1

    def set_connections(self, count: int):
        with self._lock:
            self._active_connections = count

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        uptime = time.time() - self._start_time
        lines.append("# HELP gesture_morph_uptime_seconds Time since collector start")
        lines.append("# TYPE gesture_morph_uptime_seconds gauge")
        lines.append(f"gesture_morph_uptime_seconds {uptime:.1f}")
        lines.append("")

        with self._lock:
            lines.append("# HELP gesture_morph_frames_total Total frames produced")
            lines.append("# TYPE gesture_morph_frames_total counter")
            lines.append(f"gesture_morph_frames_total {self._frames_total}")
            lines.append("")

            lines.append("# HELP gesture_morph_gestures_total Classified frames by gesture label")
            lines.append("# TYPE gesture_morph_gestures_total counter")
            for label, count in sorted(self._gesture_counts.items()):
                lines.append(f'gesture_morph_gestures_total{{label="{label}"}} {count}')
            lines.append("")

            lines.append("# HELP gesture_morph_mode_changes_total Scene mode changes by target mode")
            lines.append("# TYPE gesture_morph_mode_changes_total counter")
            for mode, count in sorted(self._mode_changes.items()):
                lines.append(f'gesture_morph_mode_changes_total{{mode="{mode}"}} {count}')
            lines.append("")

            lines.append("# HELP gesture_morph_frames_rejected_total Malformed landmark sets ignored")
            lines.append("# TYPE gesture_morph_frames_rejected_total counter")
            lines.append(f"gesture_morph_frames_rejected_total {self._frames_rejected}")
            lines.append("")

            lines.append("# HELP gesture_morph_frame_budget_overruns_total Frames slower than the target frame rate")
            lines.append("# TYPE gesture_morph_frame_budget_overruns_total counter")
            lines.append(f"gesture_morph_frame_budget_overruns_total {self._overruns}")
            lines.append("")

            lines.append("# HELP gesture_morph_hand_presence_rate Exponential moving average of hand presence")
            lines.append("# TYPE gesture_morph_hand_presence_rate gauge")
            lines.append(f"gesture_morph_hand_presence_rate {self._hand_presence_rate:.4f}")
            lines.append("")

            lines.append("# HELP gesture_morph_morph_value Current tree/sphere blend")
            lines.append("# TYPE gesture_morph_morph_value gauge")
            lines.append(f"gesture_morph_morph_value {self._morph_value:.4f}")
            lines.append("")

            lines.append("# HELP gesture_morph_active_connections Current WebSocket connections")
            lines.append("# TYPE gesture_morph_active_connections gauge")
            lines.append(f"gesture_morph_active_connections {self._active_connections}")
            lines.append("")

        lines.append(self._latency.render(
            "gesture_morph_frame_latency_seconds",
            "Frame processing latency in seconds",
        ))
        lines.append("")

        return "\n".join(lines) + "\n"

    @property
    def frames_total(self) -> int:
        with self._lock:
            return self._frames_total

    @property
    def gesture_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._gesture_counts)

    @property
    def mode_changes(self) -> dict[str, int]:
        with self._lock:
            return dict(self._mode_changes)

    @property
    def hand_presence_rate(self) -> float:
        with self._lock:
            return self._hand_presence_rate
