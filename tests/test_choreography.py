"""Tests for the three orbiting bodies and the decoration twinkle."""

import math

import numpy as np
import pytest

from gesture_morph.choreography import Choreographer, EntityRole
from gesture_morph.config import ChoreographyConfig, DecorationConfig
from gesture_morph.decorations import (
    DecorationKind,
    DecorationSet,
    scatter_decorations,
)


def by_role(transforms):
    return {t.role: t for t in transforms}


class TestChoreographer:
    def test_angles_at_start(self):
        tr = by_role(Choreographer().transforms(0.0))
        assert tr[EntityRole.LEADER].angle == pytest.approx(0.8)
        assert tr[EntityRole.FOLLOWER_1].angle == pytest.approx(0.0)
        assert tr[EntityRole.FOLLOWER_2].angle == pytest.approx(-0.8)

    def test_positions_on_orbit(self):
        for t in (0.0, 1.3, 17.0):
            for tr in Choreographer().transforms(t):
                assert math.hypot(tr.position[0], tr.position[2]) == pytest.approx(13.0)

    def test_start_positions(self):
        tr = by_role(Choreographer().transforms(0.0))
        np.testing.assert_allclose(tr[EntityRole.FOLLOWER_1].position, [13.0, -7.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(
            tr[EntityRole.LEADER].position,
            [13 * math.cos(0.8), -7.0, 13 * math.sin(0.8)],
        )
        assert tr[EntityRole.FOLLOWER_2].position[1] == pytest.approx(-7.5)

    def test_shared_orbit_speed(self):
        chor = Choreographer()
        assert chor.orbit_angle(10.0) == pytest.approx(4.0)
        tr = by_role(chor.transforms(10.0))
        assert tr[EntityRole.FOLLOWER_1].angle == pytest.approx(4.0)
        assert tr[EntityRole.LEADER].angle - tr[EntityRole.FOLLOWER_2].angle == pytest.approx(1.6)

    def test_bob_never_below_base(self):
        chor = Choreographer()
        for t in np.linspace(0, 10, 101):
            tr = by_role(chor.transforms(float(t)))
            assert -7.0 <= tr[EntityRole.LEADER].position[1] <= -7.0 + 0.3 + 1e-12
            assert -7.0 <= tr[EntityRole.FOLLOWER_1].position[1] <= -7.0 + 0.5 + 1e-12
            assert -7.5 <= tr[EntityRole.FOLLOWER_2].position[1] <= -7.5 + 0.2 + 1e-12

    def test_bob_uses_own_frequency(self):
        t = math.pi / 8  # quarter period of sin(4t)
        tr = by_role(Choreographer().transforms(t))
        assert tr[EntityRole.LEADER].position[1] == pytest.approx(-7.0 + 0.3)

    def test_faces_along_orbit(self):
        for tr in Choreographer().transforms(2.0):
            assert np.linalg.norm(tr.forward) == pytest.approx(1.0)
            radial = np.array([math.cos(tr.angle), 0.0, math.sin(tr.angle)])
            assert abs(np.dot(tr.forward, radial)) < 0.1
            assert tr.look_target[1] <= tr.position[1]
            ahead = tr.angle + 0.1
            np.testing.assert_allclose(tr.look_target[[0, 2]], [13 * math.cos(ahead), 13 * math.sin(ahead)])

    def test_rotation_offsets(self):
        t = 0.3
        tr = by_role(Choreographer().transforms(t))
        assert tr[EntityRole.LEADER].rotation_offset == (0.1, 0.0, 0.0)
        assert tr[EntityRole.FOLLOWER_1].rotation_offset == (0.0, 0.0, 0.0)
        pitch, yaw, roll = tr[EntityRole.FOLLOWER_2].rotation_offset
        assert roll == pytest.approx(math.sin(20 * t) * 0.15)
        assert yaw == pytest.approx(math.cos(20 * t) * 0.1)

    def test_deterministic(self):
        chor = Choreographer()
        a, b = chor.transforms(5.5), chor.transforms(5.5)
        for x, y in zip(a, b):
            np.testing.assert_array_equal(x.position, y.position)
            np.testing.assert_array_equal(x.forward, y.forward)

    def test_entity_lookup(self):
        chor = Choreographer()
        assert chor.entity(EntityRole.FOLLOWER_2).bob_frequency == 8.0
        assert chor.entity(EntityRole.LEADER).phase_offset == 0.8

    def test_custom_radius(self):
        chor = Choreographer(ChoreographyConfig(orbit_radius=5.0))
        tr = chor.transforms(0.0)[0]
        assert math.hypot(tr.position[0], tr.position[2]) == pytest.approx(5.0)

    def test_to_dict(self):
        d = Choreographer().transforms(0.0)[0].to_dict()
        assert d["role"] == "leader"
        assert len(d["position"]) == 3


class TestDecorations:
    def test_count_and_radius(self):
        records = scatter_decorations(rng=1)
        assert len(records) == 40
        for r in records:
            dist = math.sqrt(sum(v * v for v in r.position))
            assert 4.0 - 1e-9 <= dist < 10.0

    def test_phase_from_index_and_x(self):
        for r in scatter_decorations(rng=2):
            assert r.phase == pytest.approx(13 * r.index + r.position[0])

    def test_kinds_and_glow(self):
        records = scatter_decorations(DecorationConfig(count=300), rng=3)
        kinds = {r.kind for r in records}
        assert kinds == set(DecorationKind)
        for r in records:
            assert r.has_glow == (r.kind != DecorationKind.FIGURE)

    def test_seeded(self):
        assert scatter_decorations(rng=5) == scatter_decorations(rng=5)

    def test_empty(self):
        ds = DecorationSet(scatter_decorations(DecorationConfig(count=0), rng=1))
        assert len(ds) == 0
        emissive, opacity = ds.twinkle(1.0)
        assert emissive.shape == opacity.shape == (0,)

    def test_twinkle_formula(self):
        ds = DecorationSet(scatter_decorations(rng=4))
        t = 2.7
        emissive, opacity = ds.twinkle(t)
        p = ds.phases[7]
        assert emissive[7] == pytest.approx(0.7 + math.sin(2 * t + p) * 0.15 + math.cos(5.3 * t + p) * 0.05)
        assert opacity[7] == pytest.approx(0.4 + math.sin(2.5 * t + p) * 0.1)

    def test_twinkle_bounds(self):
        ds = DecorationSet(scatter_decorations(rng=6))
        for t in np.linspace(0, 20, 50):
            emissive, opacity = ds.twinkle(float(t))
            assert np.all((emissive >= 0.5 - 1e-9) & (emissive <= 0.9 + 1e-9))
            assert np.all((opacity >= 0.3 - 1e-9) & (opacity <= 0.5 + 1e-9))

    def test_twinkle_out_of_sync(self):
        emissive, _ = DecorationSet(scatter_decorations(rng=7)).twinkle(1.0)
        assert np.std(emissive) > 0.01

    def test_twinkle_reuses_buffers(self):
        ds = DecorationSet(scatter_decorations(rng=8))
        a, _ = ds.twinkle(0.0)
        b, _ = ds.twinkle(1.0)
        assert a is b
