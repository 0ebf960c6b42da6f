"""Procedural point-cloud generators for the two target shapes.

Both generators draw from an injectable ``numpy.random.Generator`` so runs
can be seeded for reproducible statistics. Output clouds are ``(N, 3)``
float32 arrays marked read-only: index i names the same particle in every
cloud, which is what per-index blending relies on.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from gesture_morph.config import (
    ConfigurationError,
    SphereParams,
    TreeParams,
    validate_particle_count,
)

logger = logging.getLogger("gesture_morph.shapes")

TWO_PI = 2.0 * np.pi


def make_rng(seed: Optional[int | np.random.Generator] = None) -> np.random.Generator:
    """Return ``seed`` if it already is a Generator, else a new seeded one."""
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def freeze_cloud(points: np.ndarray) -> np.ndarray:
    cloud = np.ascontiguousarray(points, dtype=np.float32)
    cloud.setflags(write=False)
    return cloud


def validate_cloud(points, count: Optional[int] = None, name: str = "point cloud") -> np.ndarray:
    """Check a cloud is a finite ``(N, 3)`` array and return it read-only.

    Raises:
        ConfigurationError: missing, mis-shaped, non-finite or wrong-length input.
    """
    if points is None:
        raise ConfigurationError(f"{name} is missing")
    try:
        arr = np.asarray(points, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} is not numeric: {e}") from e
    if arr.ndim != 2 or arr.shape[1] != 3 or arr.shape[0] == 0:
        raise ConfigurationError(f"{name} must have shape (N, 3) with N > 0, got {arr.shape}")
    if count is not None and arr.shape[0] != count:
        raise ConfigurationError(f"{name} has {arr.shape[0]} points, expected {count}")
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(f"{name} contains non-finite coordinates")
    return freeze_cloud(arr)


class ShapeGenerator:
    """Base class: a fixed particle count and a random source."""

    name = "shape"

    def __init__(self, count: int, rng: Optional[int | np.random.Generator] = None):
        self.count = validate_particle_count(count)
        self._rng = make_rng(rng)

    def __len__(self) -> int:
        return self.count

    def generate(self) -> np.ndarray:
        """Draw a fresh read-only ``(count, 3)`` cloud."""
        points = self._sample(self.count)
        logger.debug("Generated %s cloud with %d points", self.name, self.count)
        return freeze_cloud(points)

    def _sample(self, n: int) -> np.ndarray:
        raise NotImplementedError


class TreeShape(ShapeGenerator):
    """Spiral cone whose density piles up toward the base.

    Height is a power-law draw (exponent 1.5) so low tiers are fuller; the
    radius envelope narrows with a power curve, a sine "layer" term carves
    branch tiers, and the spiral angle is a linear function of height plus a
    random offset.
    """

    name = "tree"

    def __init__(
        self,
        count: int,
        params: Optional[TreeParams] = None,
        rng: Optional[int | np.random.Generator] = None,
    ):
        super().__init__(count, rng)
        if params is not None and not isinstance(params, TreeParams):
            raise ConfigurationError(f"expected TreeParams, got {type(params).__name__}")
        self.params = params or TreeParams()

    def _sample(self, n: int) -> np.ndarray:
        p = self.params
        rng = self._rng

        height_frac = rng.random(n) ** p.height_exponent
        y = height_frac * p.height - p.height / 2
        y_norm = (y + p.height / 2) / p.height

        envelope = (1.0 - y_norm ** p.taper_exponent) * p.max_base_radius
        layer = np.sin(y_norm * p.layer_frequency) * 0.5 + 0.5
        angle = y * p.spiral_twist + rng.random(n) * TWO_PI

        scatter = p.scatter_min + (1.0 - p.scatter_min) * rng.random(n)
        radius = envelope * scatter + layer * p.layer_scatter * rng.random(n)
        radius = np.maximum(radius, 0.0)

        return np.column_stack([radius * np.cos(angle), y, radius * np.sin(angle)])


class SphereShape(ShapeGenerator):
    """Hollow, volume-filled sphere.

    Directions are uniform over the sphere. The radius fraction is a two
    regime mixture: with ``inner_probability`` it lands in the dense shell
    just outside the hollow core, otherwise in the sparser outer volume.
    """

    name = "sphere"

    def __init__(
        self,
        count: int,
        params: Optional[SphereParams] = None,
        rng: Optional[int | np.random.Generator] = None,
    ):
        super().__init__(count, rng)
        if params is not None and not isinstance(params, SphereParams):
            raise ConfigurationError(f"expected SphereParams, got {type(params).__name__}")
        self.params = params or SphereParams()

    def _sample(self, n: int) -> np.ndarray:
        p = self.params
        rng = self._rng

        theta = rng.random(n) * TWO_PI
        phi = np.arccos(2.0 * rng.random(n) - 1.0)

        inner = rng.random(n) < p.inner_probability
        draw = rng.random(n)
        frac = np.where(
            inner,
            draw * p.inner_fraction,
            p.inner_fraction + draw * (1.0 - p.inner_fraction),
        )
        radius = p.min_radius + frac * (p.max_radius - p.min_radius)

        sin_phi = np.sin(phi)
        return np.column_stack([
            radius * sin_phi * np.cos(theta),
            radius * sin_phi * np.sin(theta),
            radius * np.cos(phi),
        ])


def generate_clouds(
    count: int,
    tree: Optional[TreeParams] = None,
    sphere: Optional[SphereParams] = None,
    rng: Optional[int | np.random.Generator] = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Generate the session's (tree_cloud, sphere_cloud) pair from one source."""
    source = make_rng(rng)
    tree_cloud = TreeShape(count, tree, source).generate()
    sphere_cloud = SphereShape(count, sphere, source).generate()
    return tree_cloud, sphere_cloud
