"""gesture-morph - Gesture-driven tree ↔ sphere particle morph."""

__version__ = "0.1.0"

from gesture_morph.config import ConfigurationError, SceneConfig
from gesture_morph.shapes import TreeShape, SphereShape, generate_clouds
from gesture_morph.gestures import GestureLabel, GestureResult, FistRule, NO_SIGNAL
from gesture_morph.classifier import GestureClassifier, LatestGestureSlot
from gesture_morph.timeline import Timeline, Tween
from gesture_morph.morph import MorphController
from gesture_morph.modes import SceneMode, ModeSelector, ModeChangeEvent
from gesture_morph.engine import AnimationEngine, FrameOutput
from gesture_morph.pipeline import ScenePipeline
from gesture_morph.recorder import LandmarkRecorder, LandmarkPlayer
from gesture_morph.profiler import FrameProfiler
from gesture_morph.metrics import MetricsCollector
