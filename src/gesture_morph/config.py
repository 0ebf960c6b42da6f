"""Scene configuration: dataclass defaults plus YAML loading.

Every tunable constant of the scene lives here with the reference
deployment's value as its default. Values are validated when a config is
built, so a bad file fails before the first frame is produced.

Usage:
    config = SceneConfig.from_yaml("scene.yml")
    engine = AnimationEngine.from_config(config, seed=7)
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger("gesture_morph.config")


class ConfigurationError(ValueError):
    """Invalid parameters or inputs detected at construction time."""


def _require(condition: bool, message: str):
    if not condition:
        raise ConfigurationError(message)


def _build(cls, data: Optional[dict]):
    """Build a dataclass from a dict, ignoring keys it does not know."""
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigurationError(f"{cls.__name__} section must be a mapping, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", cls.__name__, sorted(unknown))
    kwargs = {k: v for k, v in data.items() if k in known}
    for f in fields(cls):
        if f.name in kwargs and isinstance(kwargs[f.name], list):
            kwargs[f.name] = tuple(kwargs[f.name])
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ConfigurationError(f"Bad {cls.__name__} section: {e}") from e


@dataclass(frozen=True)
class TreeParams:
    """Shape of the spiral tree cloud."""
    height: float = 16.0
    max_base_radius: float = 7.5
    height_exponent: float = 1.5   # >1 biases density toward the base
    taper_exponent: float = 0.8
    layer_frequency: float = 10 * math.pi
    spiral_twist: float = 2.5
    scatter_min: float = 0.6
    layer_scatter: float = 1.5

    def __post_init__(self):
        _require(self.height > 0, f"tree height must be > 0, got {self.height}")
        _require(self.max_base_radius > 0, f"tree max_base_radius must be > 0, got {self.max_base_radius}")
        _require(self.height_exponent > 0, "tree height_exponent must be > 0")
        _require(self.taper_exponent > 0, "tree taper_exponent must be > 0")
        _require(0.0 <= self.scatter_min <= 1.0, f"tree scatter_min must be in [0, 1], got {self.scatter_min}")
        _require(self.layer_scatter >= 0, "tree layer_scatter must be >= 0")
        _require(all(math.isfinite(v) for v in _float_fields(self)), "tree parameters must be finite")


@dataclass(frozen=True)
class SphereParams:
    """Shape of the hollow sphere cloud."""
    min_radius: float = 1.5
    max_radius: float = 8.0
    inner_probability: float = 0.4
    inner_fraction: float = 0.3

    def __post_init__(self):
        _require(self.min_radius >= 0, f"sphere min_radius must be >= 0, got {self.min_radius}")
        _require(
            self.max_radius > self.min_radius,
            f"sphere max_radius ({self.max_radius}) must exceed min_radius ({self.min_radius})",
        )
        _require(0.0 <= self.inner_probability <= 1.0, "sphere inner_probability must be in [0, 1]")
        _require(0.0 < self.inner_fraction < 1.0, "sphere inner_fraction must be in (0, 1)")
        _require(all(math.isfinite(v) for v in _float_fields(self)), "sphere parameters must be finite")


@dataclass(frozen=True)
class EntityParams:
    """Orbit constants for one choreographed body."""
    phase_offset: float
    bob_frequency: float
    bob_amplitude: float
    base_height: float
    pitch: float = 0.0
    wiggle_frequency: float = 0.0
    wiggle_roll: float = 0.0
    wiggle_yaw: float = 0.0


@dataclass(frozen=True)
class ChoreographyConfig:
    orbit_radius: float = 13.0
    orbit_speed: float = 0.4
    look_ahead: float = 0.1
    leader: EntityParams = EntityParams(phase_offset=0.8, bob_frequency=4.0, bob_amplitude=0.3,
                                        base_height=-7.0, pitch=0.1)
    follower1: EntityParams = EntityParams(phase_offset=0.0, bob_frequency=3.0, bob_amplitude=0.5,
                                           base_height=-7.0)
    follower2: EntityParams = EntityParams(phase_offset=-0.8, bob_frequency=8.0, bob_amplitude=0.2,
                                           base_height=-7.5, wiggle_frequency=20.0,
                                           wiggle_roll=0.15, wiggle_yaw=0.1)

    def __post_init__(self):
        _require(self.orbit_radius > 0, f"orbit_radius must be > 0, got {self.orbit_radius}")
        _require(self.look_ahead != 0, "look_ahead must be non-zero")

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> ChoreographyConfig:
        data = dict(data or {})
        for role in ("leader", "follower1", "follower2"):
            if role in data:
                base = asdict(getattr(cls, role))
                base.update(data[role] or {})
                data[role] = _build(EntityParams, base)
        return _build(cls, data)


@dataclass(frozen=True)
class DecorationConfig:
    count: int = 40
    min_radius: float = 4.0
    max_radius: float = 10.0
    phase_step: float = 13.0

    def __post_init__(self):
        _require(isinstance(self.count, int) and self.count >= 0, f"decoration count must be an int >= 0, got {self.count!r}")
        _require(0 <= self.min_radius < self.max_radius, "decoration radii must satisfy 0 <= min < max")


@dataclass(frozen=True)
class MirrorConfig:
    """Reflective floor: vertical flip about ``floor_y`` plus intensity damping."""
    floor_y: float = -9.0
    star_damping: float = 0.3
    decoration_damping: float = 0.5
    particle_opacity: float = 0.4

    def __post_init__(self):
        for name in ("star_damping", "decoration_damping", "particle_opacity"):
            value = getattr(self, name)
            _require(0.0 <= value <= 1.0, f"mirror {name} must be in [0, 1], got {value}")


@dataclass(frozen=True)
class TransitionConfig:
    """One-shot timelines fired on every mode change."""
    morph_duration: float = 2.2
    morph_ease: str = "power2.inOut"
    star_move_ease: str = "power3.inOut"
    star_spin_ease: str = "power2.inOut"
    star_pulse_duration: float = 0.8
    star_pulse_ease: str = "sine.inOut"
    star_tree_scale: float = 1.3
    star_sphere_scale: float = 2.2
    star_tree_position: tuple = (0.0, 7.8, 0.0)
    star_sphere_position: tuple = (0.0, 0.0, 0.0)
    collapse_duration: float = 1.0
    collapse_ease: str = "power2.in"
    expand_duration: float = 1.5
    expand_delay: float = 0.5
    expand_ease: str = "elastic.out(1, 0.75)"

    def __post_init__(self):
        for name in ("morph_duration", "star_pulse_duration", "collapse_duration",
                     "expand_duration", "expand_delay"):
            _require(getattr(self, name) >= 0, f"transition {name} must be >= 0")
        for name in ("star_tree_position", "star_sphere_position"):
            _require(len(getattr(self, name)) == 3, f"transition {name} must have 3 components")


@dataclass(frozen=True)
class ClassifierConfig:
    curl_slack: float = 1.2
    min_curled: int = 3
    smoothing_window: int = 1

    def __post_init__(self):
        _require(self.curl_slack > 0, "curl_slack must be > 0")
        _require(1 <= self.min_curled <= 4, "min_curled must be between 1 and 4")
        _require(self.smoothing_window >= 1, "smoothing_window must be >= 1")


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8765
    fps: float = 30.0
    camera_index: Optional[int] = None
    autostart: bool = True

    def __post_init__(self):
        _require(self.fps > 0, f"server fps must be > 0, got {self.fps}")
        _require(0 < self.port < 65536, f"server port must be in 1..65535, got {self.port}")


@dataclass(frozen=True)
class SceneConfig:
    particle_count: int = 2500
    tree: TreeParams = field(default_factory=TreeParams)
    sphere: SphereParams = field(default_factory=SphereParams)
    choreography: ChoreographyConfig = field(default_factory=ChoreographyConfig)
    decorations: DecorationConfig = field(default_factory=DecorationConfig)
    mirror: MirrorConfig = field(default_factory=MirrorConfig)
    transitions: TransitionConfig = field(default_factory=TransitionConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    def __post_init__(self):
        validate_particle_count(self.particle_count)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> SceneConfig:
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigurationError("scene config must be a mapping")
        return cls(
            particle_count=data.get("particle_count", 2500),
            tree=_build(TreeParams, data.get("tree")),
            sphere=_build(SphereParams, data.get("sphere")),
            choreography=ChoreographyConfig.from_dict(data.get("choreography")),
            decorations=_build(DecorationConfig, data.get("decorations")),
            mirror=_build(MirrorConfig, data.get("mirror")),
            transitions=_build(TransitionConfig, data.get("transitions")),
            classifier=_build(ClassifierConfig, data.get("classifier")),
            server=_build(ServerConfig, data.get("server")),
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> SceneConfig:
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read config {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        logger.info("Loaded scene config from %s", path)
        return cls.from_dict(data)

    def save_yaml(self, path: str | Path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(_plain(self.to_dict()), f, sort_keys=False)


def validate_particle_count(count: Any) -> int:
    """Return ``count`` if it is a positive int, else raise ConfigurationError."""
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise ConfigurationError(f"particle count must be a positive integer, got {count!r}")
    return count


def _float_fields(obj) -> list[float]:
    return [float(getattr(obj, f.name)) for f in fields(obj)]


def _plain(value):
    """Tuples → lists so the YAML dump stays readable."""
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value
