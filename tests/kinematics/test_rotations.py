"""
test_rotations.py - roll/pitch/yaw conversions and angle wrapping.
"""

import math

import numpy as np
import pytest

from kinematics import (
    wrap_angle,
    matrix_to_rpy,
    quaternion_to_rpy,
    rpy_to_quaternion,
    rpy_to_matrix,
    random_quaternion,
    rpy_difference,
)


class TestWrapAngle:

    def test_identity_inside_range(self):
        assert wrap_angle(0.5) == pytest.approx(0.5)

    def test_wraps_past_pi(self):
        assert wrap_angle(1.5 * math.pi) == pytest.approx(-0.5 * math.pi)

    def test_minus_pi_maps_to_pi(self):
        assert wrap_angle(-math.pi) == pytest.approx(math.pi)

    def test_array(self):
        out = wrap_angle(np.array([0.0, 2.0 * math.pi, -1.5 * math.pi]))
        np.testing.assert_allclose(out, [0.0, 0.0, 0.5 * math.pi], atol=1e-12)


class TestConversions:

    def test_quaternion_order_is_xyzw(self):
        np.testing.assert_allclose(rpy_to_quaternion(0.0, 0.0, 0.0), [0, 0, 0, 1])

    def test_yaw_matrix(self):
        R = rpy_to_matrix(0.0, 0.0, math.pi / 2)
        np.testing.assert_allclose(R @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], atol=1e-12)

    def test_matrix_round_trip(self):
        rpy = [0.3, -0.4, 1.2]
        np.testing.assert_allclose(matrix_to_rpy(rpy_to_matrix(*rpy)), rpy, atol=1e-12)

    def test_quaternion_round_trip(self):
        rpy = [-1.0, 0.2, 2.5]
        np.testing.assert_allclose(
            quaternion_to_rpy(rpy_to_quaternion(*rpy)), rpy, atol=1e-12)

    def test_difference_wraps(self):
        diff = rpy_difference([math.pi - 0.01, 0.0, 0.0], [-math.pi + 0.01, 0.0, 0.0])
        np.testing.assert_allclose(diff, [-0.02, 0.0, 0.0], atol=1e-12)


class TestRandomQuaternion:

    def test_unit_norm(self):
        rng = np.random.default_rng(7)
        for _ in range(50):
            assert np.linalg.norm(random_quaternion(rng)) == pytest.approx(1.0)

    def test_reproducible(self):
        a = random_quaternion(np.random.default_rng(3))
        b = random_quaternion(np.random.default_rng(3))
        np.testing.assert_array_equal(a, b)
