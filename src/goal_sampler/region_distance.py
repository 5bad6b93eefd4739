"""
goal_sampler/region_distance.py - 目标区域距离

distance_goal(q)：末端位姿落在某个区域内（位置盒 + fixed 姿态轴容差）时为 0，
否则退回启发式距离（默认：到最近目标候选的关节空间距离）。
按区域顺序检查，第一个匹配的区域即返回。
"""

import logging
from typing import Callable, Optional, Sequence

import numpy as np

from kinematics.rotations import matrix_to_rpy, rpy_difference
from .models import WorkspaceGoalRegion

logger = logging.getLogger(__name__)

# 区域外的距离下限，保证区域外严格为正
_MIN_OUTSIDE_DISTANCE = 1e-9


class RegionDistanceEvaluator:
    """区域距离评估

    Args:
        fk: 正运动学模型（``end_effector_pose(q)``）
        regions: 目标区域列表
        constraint_lookup: region_index -> 当前 PoseConstraint（或 None）；
            fixed 轴的目标角取自该约束，缺省取区域标称姿态
        fallback: 区域外的启发式距离 q -> float，缺省为 inf
        orientation_tolerance: fixed 轴允许偏差 ε (rad)
        threshold: is_satisfied 的距离阈值
    """

    def __init__(
        self,
        fk,
        regions: Sequence[WorkspaceGoalRegion] = (),
        constraint_lookup: Optional[Callable[[int], object]] = None,
        fallback: Optional[Callable[[np.ndarray], float]] = None,
        orientation_tolerance: float = 0.02,
        threshold: float = 0.0,
    ) -> None:
        self.fk = fk
        self.regions = list(regions)
        self.constraint_lookup = constraint_lookup
        self.fallback = fallback
        self.orientation_tolerance = orientation_tolerance
        self.threshold = threshold

    def set_regions(self, regions: Sequence[WorkspaceGoalRegion]) -> None:
        self.regions = list(regions)

    def _target_rpy(self, index: int, region: WorkspaceGoalRegion) -> np.ndarray:
        if self.constraint_lookup is not None:
            constraint = self.constraint_lookup(index)
            if constraint is not None:
                return constraint.rpy()
        return np.asarray(region.orientation, dtype=np.float64)

    def distance_goal(self, config) -> float:
        q = np.asarray(config, dtype=np.float64)
        position, rotation = self.fk.end_effector_pose(q)
        rpy = None
        for i, region in enumerate(self.regions):
            if not region.contains_position(position):
                continue
            if region.all_free:
                logger.debug("位于目标区域 %d 内（姿态全自由）", i)
                return 0.0
            if rpy is None:
                rpy = matrix_to_rpy(rotation)
            diff = np.abs(rpy_difference(rpy, self._target_rpy(i, region)))
            if all(free or diff[axis] <= self.orientation_tolerance
                   for axis, free in enumerate(region.free_axes)):
                logger.debug("位于目标区域 %d 内", i)
                return 0.0

        if self.fallback is None:
            return float('inf')
        return max(float(self.fallback(q)), _MIN_OUTSIDE_DISTANCE)

    def is_satisfied(self, config) -> bool:
        return self.distance_goal(config) <= self.threshold
