"""Per-frame scene animation.

The engine turns (elapsed time, morph value, latest gesture) into everything
a renderer needs for one frame: blended particle positions, the three
choreographed bodies, decoration twinkle, the focal star and the mirrored
copies of all of them. Apart from the timeline-driven properties (morph,
star position/spin/scale, decoration scale) every output is a closed-form
function of ``t``.

Usage:
    engine = AnimationEngine.from_config(SceneConfig(), seed=7)
    engine.set_mode(SceneMode.SPHERE)
    engine.tick(1 / 30)
    frame = engine.frame(t)
"""

from __future__ import annotations

import base64
import logging
import math
from contextlib import nullcontext
from dataclasses import dataclass
from typing import ClassVar, Optional

import numpy as np

from gesture_morph.choreography import Choreographer, EntityTransform
from gesture_morph.config import ConfigurationError, SceneConfig
from gesture_morph.decorations import DecorationSet, scatter_decorations
from gesture_morph.gestures import NO_SIGNAL, GestureResult
from gesture_morph.mirror import MirrorTransform
from gesture_morph.modes import ModeChangeEvent, ModeSelector, SceneMode
from gesture_morph.morph import MorphController
from gesture_morph.profiler import FrameProfiler
from gesture_morph.shapes import generate_clouds, make_rng, validate_cloud
from gesture_morph.star import FocalStar, StarFrame
from gesture_morph.timeline import Timeline

logger = logging.getLogger("gesture_morph.engine")

BREATHE_FREQUENCY = 0.5
BREATHE_AMPLITUDE = 0.15
BREATHE_SPEED = (1.5, 1.2, 1.8)  # x, y, z

PIVOT_SPIN_SPEED = 0.1
PIVOT_TILT_SPEED = 0.5
PIVOT_TILT = 0.03
DECORATION_SPIN_SPEED = 0.08

STAR_POSITION_KEY = "star.position"
STAR_SPIN_KEY = "star.spin"
STAR_SCALE_KEY = "star.scale"
DECORATION_SCALE_KEY = "decorations.scale"


@dataclass
class FrameOutput:
    """One frame's renderer hand-off.

    ``positions`` and the decoration arrays are engine-owned buffers that the
    next ``frame()`` call overwrites; copy them to keep a snapshot.
    ``mirror_positions`` is the very same array as ``positions``: the
    reflection is produced by the mirror transform, not by a second buffer.

    Mirrored outputs come in two frames of reference. ``mirrored_entities``
    are already reflected into world space. The fields named in
    ``MIRROR_LOCAL_FIELDS`` stay in the pivot group's local space (the same
    values as their unmirrored counterparts, apart from damping) and the
    renderer places them by applying ``mirror`` to the whole group.
    """
    MIRROR_LOCAL_FIELDS: ClassVar[tuple[str, ...]] = ("mirror_positions", "mirrored_star")

    t: float
    morph: float
    mode: SceneMode
    gesture: GestureResult
    positions: np.ndarray
    mirror_positions: np.ndarray
    pivot_rotation: tuple[float, float, float]
    entities: tuple[EntityTransform, ...]
    mirrored_entities: tuple[EntityTransform, ...]
    decoration_emissive: np.ndarray
    decoration_opacity: np.ndarray
    mirrored_decoration_emissive: np.ndarray
    mirrored_decoration_opacity: np.ndarray
    decoration_scale: float
    decoration_spin: float
    star: StarFrame
    mirrored_star: StarFrame
    mirror: MirrorTransform

    def to_message(self) -> dict:
        """JSON-ready dict; positions as base64 little-endian float32."""
        raw = np.ascontiguousarray(self.positions, dtype="<f4").tobytes()
        return {
            "type": "frame",
            "t": round(self.t, 5),
            "morph": round(self.morph, 5),
            "mode": self.mode.value,
            "gesture": self.gesture.to_dict(),
            "count": int(self.positions.shape[0]),
            "positions": base64.b64encode(raw).decode("ascii"),
            "pivot_rotation": [round(v, 5) for v in self.pivot_rotation],
            "entities": [e.to_dict() for e in self.entities],
            "mirrored_entities": [e.to_dict() for e in self.mirrored_entities],
            "decorations": {
                "emissive": np.round(self.decoration_emissive, 4).tolist(),
                "opacity": np.round(self.decoration_opacity, 4).tolist(),
                "scale": round(self.decoration_scale, 5),
                "spin": round(self.decoration_spin, 5),
            },
            "mirrored_decorations": {
                "emissive": np.round(self.mirrored_decoration_emissive, 4).tolist(),
                "opacity": np.round(self.mirrored_decoration_opacity, 4).tolist(),
            },
            "star": self.star.to_dict(),
            "mirrored_star": self.mirrored_star.to_dict(),
            "mirror": {**self.mirror.to_dict(), "local_fields": list(self.MIRROR_LOCAL_FIELDS)},
        }


class AnimationEngine:
    """Owns the scene state and produces a ``FrameOutput`` per call.

    ``frame(t)`` never advances time by itself: the timeline is ticked
    separately (``tick``), so calling ``frame`` twice with the same inputs
    yields the same output except for the star flicker.
    """

    def __init__(
        self,
        tree_cloud: np.ndarray,
        sphere_cloud: np.ndarray,
        *,
        config: Optional[SceneConfig] = None,
        timeline: Optional[Timeline] = None,
        morph: Optional[MorphController] = None,
        decorations: Optional[DecorationSet] = None,
        rng: Optional[int | np.random.Generator] = None,
        flicker_rng: Optional[int | np.random.Generator] = None,
    ):
        self.config = config or SceneConfig()
        self.tree_cloud = validate_cloud(tree_cloud, name="tree cloud")
        self.sphere_cloud = validate_cloud(sphere_cloud, count=len(self.tree_cloud), name="sphere cloud")
        n = len(self.tree_cloud)

        transitions = self.config.transitions
        self.timeline = timeline if timeline is not None else Timeline()
        if morph is None:
            morph = MorphController(
                self.timeline,
                default_duration=transitions.morph_duration,
                default_easing=transitions.morph_ease,
            )
        elif morph.timeline is not self.timeline:
            raise ConfigurationError("morph controller must share the engine timeline")
        self.morph = morph

        if decorations is None:
            decorations = DecorationSet(scatter_decorations(self.config.decorations, make_rng(rng)))
        self.decorations = decorations
        self.choreographer = Choreographer(self.config.choreography)
        self.mirror = MirrorTransform.from_config(self.config.mirror)
        self.star = FocalStar(transitions.star_tree_position, rng=make_rng(flicker_rng))
        self.decoration_scale = 0.0

        self.selector = ModeSelector(SceneMode.TREE, self.config.classifier.smoothing_window)
        self.selector.on_change(self._on_mode_change)

        # Scratch buffers, overwritten every frame
        self._tree64 = self.tree_cloud.astype(np.float64)
        self._delta64 = self.sphere_cloud.astype(np.float64) - self._tree64
        self._base = np.empty((n, 3), dtype=np.float64)
        self._wave = np.empty(n, dtype=np.float64)
        self._positions = np.empty((n, 3), dtype=np.float32)
        self._mirror_emissive = np.empty(len(self.decorations), dtype=np.float64)
        self._mirror_opacity = np.empty(len(self.decorations), dtype=np.float64)

        self._last_gesture = NO_SIGNAL
        logger.info("Engine ready: %d particles, %d decorations", n, len(self.decorations))

    @classmethod
    def from_config(
        cls,
        config: Optional[SceneConfig] = None,
        seed: Optional[int] = None,
        flicker_seed: Optional[int] = None,
    ) -> AnimationEngine:
        """Generate clouds and decorations from ``config`` with one seeded source."""
        config = config or SceneConfig()
        rng = make_rng(seed)
        tree, sphere = generate_clouds(config.particle_count, config.tree, config.sphere, rng)
        decorations = DecorationSet(scatter_decorations(config.decorations, rng))
        return cls(tree, sphere, config=config, decorations=decorations, flicker_rng=flicker_seed)

    @property
    def particle_count(self) -> int:
        return len(self.tree_cloud)

    @property
    def mode(self) -> SceneMode:
        return self.selector.mode

    # Mode control

    def set_mode(self, mode: SceneMode, timestamp: float = 0.0) -> Optional[ModeChangeEvent]:
        """Switch mode directly. Returns the event, or None if already there."""
        return self.selector.force(mode, timestamp)

    def apply_gesture(self, result: GestureResult, timestamp: float = 0.0) -> Optional[ModeChangeEvent]:
        """Feed the latest gesture; absent hands leave the mode unchanged."""
        self._last_gesture = result
        return self.selector.update(result, timestamp)

    def tick(self, dt: float) -> list[str]:
        """Advance every running transition by ``dt`` seconds."""
        return self.timeline.advance(dt)

    def _on_mode_change(self, event: ModeChangeEvent):
        t = self.config.transitions
        to_sphere = event.mode == SceneMode.SPHERE

        self.morph.set_target(1.0 if to_sphere else 0.0, t.morph_duration, t.morph_ease)
        self.timeline.to(
            STAR_POSITION_KEY,
            self.star.position.copy(),
            t.star_sphere_position if to_sphere else t.star_tree_position,
            t.morph_duration, t.star_move_ease,
            on_update=self.star.set_position,
        )
        spin_delta = -2 * math.pi if to_sphere else 2 * math.pi
        self.timeline.to(
            STAR_SPIN_KEY, self.star.spin, self.star.spin + spin_delta,
            t.morph_duration, t.star_spin_ease,
            on_update=self.star.set_spin,
        )
        self.timeline.to(
            STAR_SCALE_KEY, 1.0, t.star_sphere_scale if to_sphere else t.star_tree_scale,
            t.star_pulse_duration, t.star_pulse_ease,
            on_update=self.star.set_scale, repeat=1, yoyo=True,
        )
        if to_sphere:
            self.timeline.to(
                DECORATION_SCALE_KEY, self.decoration_scale, 1.0,
                t.expand_duration, t.expand_ease,
                on_update=self._set_decoration_scale, delay=t.expand_delay,
            )
        else:
            self.timeline.to(
                DECORATION_SCALE_KEY, self.decoration_scale, 0.0,
                t.collapse_duration, t.collapse_ease,
                on_update=self._set_decoration_scale,
            )

    def _set_decoration_scale(self, value: float):
        # elastic.out overshoots 1; only negatives are clamped
        self.decoration_scale = max(0.0, float(value))

    # Frame evaluation

    def blend(self, t: float, m: float) -> np.ndarray:
        """Blend tree → sphere by ``m`` and add the breathing offset.

        Writes into and returns the engine's position buffer.
        """
        base, wave, out = self._base, self._wave, self._positions
        np.multiply(self._delta64, m, out=base)
        base += self._tree64

        x, y = base[:, 0], base[:, 1]
        sx, sy, sz = BREATHE_SPEED

        np.multiply(y, BREATHE_FREQUENCY, out=wave)
        wave += sx * t
        np.sin(wave, out=wave)
        wave *= BREATHE_AMPLITUDE
        np.add(x, wave, out=out[:, 0], casting="same_kind")

        np.multiply(x, BREATHE_FREQUENCY, out=wave)
        wave += sy * t
        np.cos(wave, out=wave)
        wave *= BREATHE_AMPLITUDE * 0.5
        np.add(y, wave, out=out[:, 1], casting="same_kind")

        np.multiply(y, BREATHE_FREQUENCY, out=wave)
        wave += sz * t
        np.sin(wave, out=wave)
        wave *= BREATHE_AMPLITUDE
        np.add(base[:, 2], wave, out=out[:, 2], casting="same_kind")
        return out

    @staticmethod
    def pivot_rotation(t: float) -> tuple[float, float, float]:
        return math.sin(t * PIVOT_TILT_SPEED) * PIVOT_TILT, t * PIVOT_SPIN_SPEED, 0.0

    def frame(
        self,
        t: float,
        m: Optional[float] = None,
        gesture: Optional[GestureResult] = None,
        profiler: Optional[FrameProfiler] = None,
    ) -> FrameOutput:
        """Evaluate the scene at elapsed time ``t``.

        ``m`` defaults to the morph controller's live value; ``gesture`` is
        only echoed into the output. With a ``profiler`` the blend,
        choreography, twinkle and star sub-steps are timed into it.
        """
        def timed(name):
            return profiler.step(name) if profiler is not None else nullcontext()

        if m is None:
            m = self.morph.current_value()
        if gesture is not None:
            self._last_gesture = gesture

        with timed("blend"):
            positions = self.blend(t, m)
        with timed("choreography"):
            entities = self.choreographer.transforms(t)
            mirrored_entities = tuple(self.mirror.reflect_entity(e) for e in entities)
        with timed("twinkle"):
            emissive, opacity = self.decorations.twinkle(t)
            np.multiply(emissive, self.mirror.decoration_damping, out=self._mirror_emissive)
            np.multiply(opacity, self.mirror.decoration_damping, out=self._mirror_opacity)
        with timed("star"):
            star = self.star.frame(t)
            mirrored_star = star.dimmed(self.mirror.star_damping)

        return FrameOutput(
            t=t,
            morph=float(m),
            mode=self.mode,
            gesture=self._last_gesture,
            positions=positions,
            mirror_positions=positions,
            pivot_rotation=self.pivot_rotation(t),
            entities=entities,
            mirrored_entities=mirrored_entities,
            decoration_emissive=emissive,
            decoration_opacity=opacity,
            mirrored_decoration_emissive=self._mirror_emissive,
            mirrored_decoration_opacity=self._mirror_opacity,
            decoration_scale=self.decoration_scale,
            decoration_spin=t * DECORATION_SPIN_SPEED,
            star=star,
            mirrored_star=mirrored_star,
            mirror=self.mirror,
        )
