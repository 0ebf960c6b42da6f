"""Tests for scene configuration loading and validation."""

import pytest
import yaml

from gesture_morph.config import (
    ChoreographyConfig,
    ConfigurationError,
    SceneConfig,
    validate_particle_count,
)


class TestDefaults:
    def test_reference_values(self):
        c = SceneConfig()
        assert c.particle_count == 2500
        assert c.tree.height == 16.0
        assert c.sphere.max_radius == 8.0
        assert c.choreography.orbit_radius == 13.0
        assert c.mirror.floor_y == -9.0
        assert c.transitions.morph_duration == 2.2
        assert c.server.port == 8765
        assert c.classifier.smoothing_window == 1

    def test_entity_defaults(self):
        ch = ChoreographyConfig()
        assert ch.leader.phase_offset == 0.8
        assert ch.follower2.wiggle_frequency == 20.0


class TestFromDict:
    def test_empty(self):
        assert SceneConfig.from_dict(None) == SceneConfig()
        assert SceneConfig.from_dict({}) == SceneConfig()

    def test_partial_override(self):
        c = SceneConfig.from_dict({"particle_count": 100, "sphere": {"max_radius": 12.0}})
        assert c.particle_count == 100
        assert c.sphere.max_radius == 12.0
        assert c.sphere.min_radius == 1.5

    def test_unknown_keys_ignored(self):
        c = SceneConfig.from_dict({"tree": {"height": 10.0, "colour": "green"}})
        assert c.tree.height == 10.0

    def test_nested_entity_override(self):
        c = SceneConfig.from_dict({"choreography": {"leader": {"bob_amplitude": 1.0}}})
        assert c.choreography.leader.bob_amplitude == 1.0
        assert c.choreography.leader.phase_offset == 0.8
        assert c.choreography.follower1 == ChoreographyConfig().follower1

    def test_lists_become_tuples(self):
        c = SceneConfig.from_dict({"transitions": {"star_tree_position": [0, 5, 0]}})
        assert c.transitions.star_tree_position == (0, 5, 0)

    @pytest.mark.parametrize("data", [
        {"particle_count": 0},
        {"particle_count": -5},
        {"particle_count": 2.5},
        {"particle_count": True},
        {"tree": {"height": -1.0}},
        {"sphere": {"min_radius": 5.0, "max_radius": 4.0}},
        {"mirror": {"star_damping": 1.5}},
        {"decorations": {"count": -1}},
        {"transitions": {"morph_duration": -0.1}},
        {"classifier": {"min_curled": 5}},
        {"server": {"fps": 0}},
        {"server": {"port": 0}},
        {"server": {"port": 70000}},
        {"tree": "tall"},
    ])
    def test_invalid_values(self, data):
        with pytest.raises(ConfigurationError):
            SceneConfig.from_dict(data)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            SceneConfig(particle_count=0)


class TestYaml:
    def test_round_trip(self, tmp_path):
        original = SceneConfig.from_dict({"particle_count": 321, "server": {"port": 9000}})
        path = tmp_path / "scene.yml"
        original.save_yaml(path)
        assert SceneConfig.from_yaml(path) == original

    def test_saved_file_is_plain_yaml(self, tmp_path):
        path = tmp_path / "scene.yml"
        SceneConfig().save_yaml(path)
        data = yaml.safe_load(path.read_text())
        assert data["transitions"]["star_tree_position"] == [0.0, 7.8, 0.0]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            SceneConfig.from_yaml(tmp_path / "nope.yml")

    def test_bad_yaml(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("tree: [unclosed\n")
        with pytest.raises(ConfigurationError):
            SceneConfig.from_yaml(path)

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert SceneConfig.from_yaml(path) == SceneConfig()


def test_validate_particle_count():
    assert validate_particle_count(7) == 7
    with pytest.raises(ConfigurationError):
        validate_particle_count("7")
