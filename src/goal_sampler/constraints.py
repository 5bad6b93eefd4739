"""
goal_sampler/constraints.py - 末端位姿约束与约束投影

PoseConstraint         : 单个区域当前的位姿约束（采样位置 + 目标姿态 + 自由轴）
PoseConstraintSet      : 约束集合，判定配置是否满足全部约束
PoseConstraintSampler  : 阻尼最小二乘 IK，把配置投影到约束上
ConstraintSamplerManager: 按约束集合选择投影器

IK 是参考实现：数值 Jacobian + 阻尼最小二乘，首次尝试从传入状态出发，
之后从关节限制内的均匀随机种子重启。
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from kinematics.rotations import (
    matrix_to_rpy,
    quaternion_to_rpy,
    rpy_difference,
    rpy_to_quaternion,
)
from utils.rng import make_rng, uniform_in_bounds
from .interfaces import ConstraintEvaluation, ValidityCallback
from .models import AXIS_NAMES, WorkspaceGoalRegion

logger = logging.getLogger(__name__)

_FD_EPS = 1e-6


@dataclass
class PoseConstraint:
    """末端位姿约束

    Attributes:
        region: 约束所属的目标区域
        position: 目标位置 (3,)
        quaternion: 目标姿态四元数 (x, y, z, w)
        position_tolerance: 位置容差（与区域盒求交）
        orientation_tolerance: fixed 轴的姿态容差 (rad)
    """
    region: WorkspaceGoalRegion
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    quaternion: np.ndarray = field(
        default_factory=lambda: np.array([0.0, 0.0, 0.0, 1.0]))
    position_tolerance: float = 0.01
    orientation_tolerance: float = 0.02

    def __post_init__(self) -> None:
        self.position = np.asarray(self.position, dtype=np.float64).reshape(3)
        self.quaternion = np.asarray(self.quaternion, dtype=np.float64).reshape(4)

    @classmethod
    def from_region(
        cls,
        region: WorkspaceGoalRegion,
        position_tolerance: float = 0.01,
        orientation_tolerance: float = 0.02,
    ) -> 'PoseConstraint':
        """区域初始约束：位置取盒中心，姿态取区域标称姿态"""
        return cls(
            region=region,
            position=region.center,
            quaternion=rpy_to_quaternion(*region.orientation),
            position_tolerance=position_tolerance,
            orientation_tolerance=orientation_tolerance,
        )

    @property
    def free_axes(self) -> Tuple[bool, bool, bool]:
        return self.region.free_axes

    def rpy(self) -> np.ndarray:
        return quaternion_to_rpy(self.quaternion)

    def set_rpy(self, roll: float, pitch: float, yaw: float) -> None:
        self.quaternion = rpy_to_quaternion(roll, pitch, yaw)

    def position_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """位置允许范围：目标 ± 容差，与区域盒求交"""
        lo = np.maximum(self.position - self.position_tolerance, self.region.lower)
        hi = np.minimum(self.position + self.position_tolerance, self.region.upper)
        return lo, hi

    def residual(self, position: np.ndarray, rotation: np.ndarray) -> np.ndarray:
        """IK 残差：位置误差 (3,) + 各 fixed 轴的姿态角误差"""
        err_pos = np.asarray(position, dtype=np.float64) - self.position
        diff = rpy_difference(matrix_to_rpy(rotation), self.rpy())
        fixed = [i for i, free in enumerate(self.free_axes) if not free]
        return np.concatenate([err_pos, diff[fixed]])

    def violation(self, position: np.ndarray, rotation: np.ndarray) -> float:
        """违反程度：位置越界距离 + fixed 轴超出容差的角度之和（满足时为 0）"""
        p = np.asarray(position, dtype=np.float64)
        lo, hi = self.position_bounds()
        outside = float(np.linalg.norm(p - np.clip(p, lo, hi)))
        if all(self.free_axes):
            return outside
        diff = np.abs(rpy_difference(matrix_to_rpy(rotation), self.rpy()))
        excess = 0.0
        for i, free in enumerate(self.free_axes):
            if not free:
                excess += max(0.0, float(diff[i]) - self.orientation_tolerance)
        return outside + excess

    def describe(self) -> str:
        parts = [f"pos=({self.position[0]:.3f}, {self.position[1]:.3f}, {self.position[2]:.3f})"]
        for axis, free, value in zip(AXIS_NAMES, self.free_axes, self.rpy()):
            parts.append(f"{axis}=free" if free else f"{axis}={value:.3f}")
        return ' '.join(parts)


class PoseConstraintSet:
    """位姿约束集合

    Args:
        fk: 正运动学模型（``end_effector_pose(q)``）
    """

    def __init__(self, fk) -> None:
        self.fk = fk
        self._constraints: List[PoseConstraint] = []

    @property
    def constraints(self) -> List[PoseConstraint]:
        return list(self._constraints)

    @property
    def empty(self) -> bool:
        return not self._constraints

    def clear(self) -> None:
        self._constraints.clear()

    def add(self, constraint: PoseConstraint) -> None:
        self._constraints.append(constraint)

    def decide(self, config: np.ndarray, verbose: bool = False) -> ConstraintEvaluation:
        """判定配置是否满足全部约束

        Returns:
            ConstraintEvaluation(satisfied, distance)，distance 为各约束违反程度之和
        """
        if not self._constraints:
            return ConstraintEvaluation(True, 0.0)
        position, rotation = self.fk.end_effector_pose(config)
        distance = 0.0
        for constraint in self._constraints:
            distance += constraint.violation(position, rotation)
        satisfied = distance <= 0.0
        if verbose:
            logger.info("约束判定: satisfied=%s distance=%.6f (%s)",
                        satisfied, distance,
                        '; '.join(c.describe() for c in self._constraints))
        return ConstraintEvaluation(satisfied, distance)

    def __len__(self) -> int:
        return len(self._constraints)


class PoseConstraintSampler:
    """阻尼最小二乘 IK 投影器

    Args:
        fk: 正运动学模型（需提供 joint_limits）
        constraint_set: 投影目标约束集合
        max_iterations: 每次尝试的最大迭代数
        damping: 阻尼系数 λ
        step: 步长缩放
        rng: 随机重启种子生成器
    """

    def __init__(
        self,
        fk,
        constraint_set: PoseConstraintSet,
        max_iterations: int = 100,
        damping: float = 0.05,
        step: float = 1.0,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.fk = fk
        self.constraint_set = constraint_set
        self.max_iterations = max_iterations
        self.damping = damping
        self.step = step
        self.rng = rng if rng is not None else make_rng()
        self.joint_limits = [(float(lo), float(hi)) for lo, hi in fk.joint_limits]
        self._lower = np.array([lo for lo, _ in self.joint_limits])
        self._upper = np.array([hi for _, hi in self.joint_limits])
        self._callback: Optional[ValidityCallback] = None

    def set_validity_callback(self, callback: Optional[ValidityCallback]) -> None:
        self._callback = callback

    def project(self, state: np.ndarray, max_attempts: int) -> bool:
        """把 state 原地投影到约束上

        Returns:
            True = 找到满足约束且通过有效性回调的配置（已写回 state）
        """
        for attempt in range(max_attempts):
            if attempt == 0:
                seed = np.array(state, dtype=np.float64)
            else:
                seed = uniform_in_bounds(self.rng, self.joint_limits)
            q = self._solve(seed)
            if q is None:
                continue
            if self._callback is not None and not self._callback(q.copy()):
                continue
            state[:] = q
            return True
        return False

    def _residual(self, q: np.ndarray) -> np.ndarray:
        position, rotation = self.fk.end_effector_pose(q)
        return np.concatenate([
            c.residual(position, rotation) for c in self.constraint_set.constraints
        ])

    def _jacobian(self, q: np.ndarray, r0: np.ndarray) -> np.ndarray:
        jac = np.empty((r0.shape[0], q.shape[0]), dtype=np.float64)
        for j in range(q.shape[0]):
            dq = q.copy()
            dq[j] += _FD_EPS
            jac[:, j] = (self._residual(dq) - r0) / _FD_EPS
        return jac

    def _solve(self, seed: np.ndarray) -> Optional[np.ndarray]:
        q = np.clip(seed, self._lower, self._upper)
        lam2 = self.damping * self.damping
        for _ in range(self.max_iterations):
            if self.constraint_set.decide(q).satisfied:
                return q
            r = self._residual(q)
            J = self._jacobian(q, r)
            JJt = J @ J.T + lam2 * np.eye(J.shape[0])
            dq = -J.T @ np.linalg.solve(JJt, r)
            q = np.clip(q + self.step * dq, self._lower, self._upper)
        if self.constraint_set.decide(q).satisfied:
            return q
        return None


class ConstraintSamplerManager:
    """约束投影器选择

    约束集合非空且运动学模型提供关节限制时返回 PoseConstraintSampler，
    否则返回 None（调用方退回无约束采样）。
    """

    def __init__(
        self,
        fk,
        max_iterations: int = 100,
        damping: float = 0.05,
        step: float = 1.0,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.fk = fk
        self.max_iterations = max_iterations
        self.damping = damping
        self.step = step
        self.rng = rng if rng is not None else make_rng()

    def select_sampler(
        self, constraint_set: PoseConstraintSet,
    ) -> Optional[PoseConstraintSampler]:
        if constraint_set.empty:
            return None
        if not getattr(self.fk, 'joint_limits', None):
            logger.warning("运动学模型未提供关节限制，无法构造约束投影器")
            return None
        return PoseConstraintSampler(
            self.fk, constraint_set,
            max_iterations=self.max_iterations,
            damping=self.damping,
            step=self.step,
            rng=self.rng,
        )
