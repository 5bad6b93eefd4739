"""
test_collision.py - Scene management and the AABB validity checker.
"""

import math

import numpy as np
import pytest

from roadmap import CollisionChecker, Obstacle, Scene, aabb_overlap


class TestScene:

    def test_add_2d_obstacle_extends_z(self):
        scene = Scene()
        obs = scene.add_obstacle([0.0, 0.0], [1.0, 1.0])
        assert obs.min_point.shape == (3,)
        assert obs.min_point[2] < -100 and obs.max_point[2] > 100
        assert obs.name == "obstacle_0"

    def test_invalid_obstacle(self):
        with pytest.raises(ValueError):
            Obstacle(min_point=[1.0, 0.0, 0.0], max_point=[0.0, 1.0, 1.0])

    def test_remove_and_get(self):
        scene = Scene()
        scene.add_obstacle([0, 0, 0], [1, 1, 1], name="box")
        assert scene.get_obstacle("box") is not None
        assert scene.remove_obstacle("box") is True
        assert scene.remove_obstacle("box") is False
        assert scene.n_obstacles == 0

    def test_json_round_trip(self, tmp_path):
        scene = Scene()
        scene.add_obstacle([0, 0, 0], [1, 2, 3], name="shelf")
        path = tmp_path / "scene.json"
        scene.to_json(str(path))
        loaded = Scene.from_json(str(path))
        obs = loaded.get_obstacle("shelf")
        np.testing.assert_allclose(obs.max_point, [1, 2, 3])


class TestAabbOverlap:

    def test_overlap(self):
        assert aabb_overlap(np.zeros(3), np.ones(3), np.full(3, 0.5), np.full(3, 2.0))

    def test_separated(self):
        assert not aabb_overlap(np.zeros(3), np.ones(3), np.full(3, 1.5), np.full(3, 2.0))


class TestCollisionChecker:

    @pytest.fixture
    def blocked(self, planar_2dof):
        scene = Scene()
        scene.add_obstacle([1.5, -0.2], [1.7, 0.2], name="post")
        return CollisionChecker(planar_2dof, scene)

    def test_free_scene_valid(self, empty_scene_checker):
        assert empty_scene_checker.is_valid(np.array([0.3, -0.2]))

    def test_collision(self, blocked):
        assert blocked.check_config_collision(np.array([0.0, 0.0]))
        assert not blocked.is_valid(np.array([0.0, 0.0]))

    def test_clear_configuration(self, blocked):
        assert blocked.is_valid(np.array([math.pi / 2, 0.0]))

    def test_joint_limits(self, empty_scene_checker):
        assert not empty_scene_checker.is_valid(np.array([4.0, 0.0]))

    def test_segment_collision(self, blocked):
        q_a = np.array([math.pi / 2, 0.0])
        q_b = np.array([-math.pi / 2, 0.0])
        assert blocked.check_segment_collision(q_a, q_b)

    def test_verbose_logs_reason(self, blocked, caplog):
        with caplog.at_level("INFO", logger="roadmap.collision"):
            blocked.is_valid(np.array([0.0, 0.0]), verbose=True)
        assert "碰撞" in caplog.text

    def test_counter(self, empty_scene_checker):
        empty_scene_checker.reset_counter()
        empty_scene_checker.is_valid(np.array([0.0, 0.0]))
        assert empty_scene_checker.n_collision_checks == 1
