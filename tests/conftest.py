"""
conftest.py - pytest fixtures shared across the test suite.

Provides robots, a point-robot kinematics fake whose end-effector pose is
read directly off the joint vector, validity checkers and goal regions, so
that individual test modules stay short and focused.
"""

import math
import sys
import threading
from pathlib import Path

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from kinematics import Robot, load_robot  # noqa: E402
from roadmap import CollisionChecker, Scene  # noqa: E402
from goal_sampler import WorkspaceGoalRegion  # noqa: E402


# =========================================================================
# Kinematics fakes
# =========================================================================

class PointRobot:
    """6-DOF 'robot' whose end-effector pose is q[:3] + rpy q[3:6]."""

    def __init__(self, position_limit: float = 2.0):
        self.n_joints = 6
        self.joint_limits = (
            [(-position_limit, position_limit)] * 3 + [(-math.pi, math.pi)] * 3
        )

    def end_effector_pose(self, config):
        q = np.asarray(config, dtype=np.float64)
        return q[:3].copy(), Rotation.from_euler('xyz', q[3:6]).as_matrix()


class CountingChecker:
    """ValidityChecker that accepts everything except an optional predicate."""

    def __init__(self, reject=None):
        self.reject = reject
        self.calls = 0
        self.verbose_calls = 0
        self._lock = threading.Lock()

    def is_valid(self, config, verbose=False):
        with self._lock:
            self.calls += 1
            if verbose:
                self.verbose_calls += 1
        if self.reject is not None and self.reject(np.asarray(config)):
            return False
        return True


class FakeContext:
    """SamplingContext stand-in with directly settable answers."""

    def __init__(self, has_solution=False, is_sampling=True, attempts=0, count=0):
        self._has_solution = has_solution
        self._is_sampling = is_sampling
        self._attempts = attempts
        self._count = count

    def has_solution(self):
        return self._has_solution

    def is_sampling(self):
        return self._is_sampling

    def sampling_attempts_count(self):
        return self._attempts

    def state_count(self):
        return self._count


# =========================================================================
# Robot fixtures
# =========================================================================

@pytest.fixture(scope="session")
def point_robot() -> PointRobot:
    return PointRobot()


@pytest.fixture(scope="session")
def planar_2dof() -> Robot:
    """2-DOF planar arm, two unit links."""
    return load_robot('2dof_planar')


@pytest.fixture(scope="session")
def spatial_3dof() -> Robot:
    return load_robot('3dof_spatial')


@pytest.fixture(scope="session")
def panda_robot() -> Robot:
    return load_robot('panda')


# =========================================================================
# Checkers and regions
# =========================================================================

@pytest.fixture
def accept_all() -> CountingChecker:
    return CountingChecker()


@pytest.fixture
def empty_scene_checker(planar_2dof) -> CollisionChecker:
    return CollisionChecker(planar_2dof, Scene())


@pytest.fixture
def unit_region() -> WorkspaceGoalRegion:
    """[0,1]^3 box with every orientation axis free."""
    return WorkspaceGoalRegion(x=(0.0, 1.0), y=(0.0, 1.0), z=(0.0, 1.0), name="unit")


@pytest.fixture
def fixed_roll_region() -> WorkspaceGoalRegion:
    """[0,1]^3 box with roll fixed at 0."""
    return WorkspaceGoalRegion(
        x=(0.0, 1.0), y=(0.0, 1.0), z=(0.0, 1.0),
        roll_free=False, orientation=(0.0, 0.0, 0.0), name="roll0",
    )


@pytest.fixture
def make_context():
    """Factory for SamplingContext stand-ins."""
    return FakeContext


@pytest.fixture
def make_checker():
    """Factory for counting validity checkers."""
    return CountingChecker
