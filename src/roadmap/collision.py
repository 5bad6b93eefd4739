"""
roadmap/collision.py - 状态有效性检测

基于 AABB 的碰撞检测，实现 ``ValidityChecker`` 接口：
- 单点碰撞检测：FK → 逐 link AABB vs obstacle AABB
- 线段碰撞检测：等间隔采样逐点检查
- ``is_valid``：关节限制 + 无碰撞

并发说明：
    检测过程只读 robot / scene，局部变量全部为调用私有；
    唯一的共享可变状态是调用计数器，由锁保护。
    因此同一个检测器可以被采样线程、roadmap 生长线程和主搜索同时使用。
"""

import logging
import threading
from typing import List, Tuple, Set, Optional

import numpy as np

from kinematics.robot import Robot
from .scene import Scene

logger = logging.getLogger(__name__)


def aabb_overlap(
    min1: np.ndarray, max1: np.ndarray,
    min2: np.ndarray, max2: np.ndarray,
) -> bool:
    """检测两个 AABB 是否重叠（分离轴测试）

    Returns:
        True 表示重叠，False 表示分离
    """
    ndim = min(len(min1), len(min2))
    for i in range(ndim):
        if max1[i] < min2[i] - 1e-10 or max2[i] < min1[i] - 1e-10:
            return False
    return True


class CollisionChecker:
    """碰撞检测器

    Args:
        robot: 机器人模型
        scene: 障碍物场景
        safety_margin: 安全裕度（对 obstacle AABB 向外扩展）
        skip_base_link: 是否跳过第一个连杆（基座）

    Example:
        >>> checker = CollisionChecker(robot, scene)
        >>> checker.is_valid(q)
        True
    """

    def __init__(
        self,
        robot: Robot,
        scene: Scene,
        safety_margin: float = 0.0,
        skip_base_link: bool = False,
    ) -> None:
        self.robot = robot
        self.scene = scene
        self.safety_margin = safety_margin
        self._n_collision_checks = 0
        self._counter_lock = threading.Lock()

        self._zero_length_links: Set[int] = set(robot.zero_length_links)
        if skip_base_link:
            self._zero_length_links.add(1)

    @property
    def n_collision_checks(self) -> int:
        """累计碰撞检测调用次数"""
        return self._n_collision_checks

    def reset_counter(self) -> None:
        with self._counter_lock:
            self._n_collision_checks = 0

    def check_config_collision(self, joint_values: np.ndarray) -> bool:
        """单配置碰撞检测

        Returns:
            True = 存在碰撞, False = 无碰撞
        """
        with self._counter_lock:
            self._n_collision_checks += 1
        obstacles = self.scene.get_obstacles()
        if not obstacles:
            return False

        positions = self.robot.get_link_positions(joint_values)
        margin = self.safety_margin

        # link i 的段是 positions[i-1] 到 positions[i]
        for li in range(1, len(positions)):
            if li in self._zero_length_links:
                continue

            p_start = positions[li - 1]
            p_end = positions[li]
            link_min = np.minimum(p_start, p_end)
            link_max = np.maximum(p_start, p_end)

            for obs in obstacles:
                if aabb_overlap(link_min, link_max,
                                obs.min_point - margin, obs.max_point + margin):
                    return True

        return False

    def check_segment_collision(
        self,
        q_start: np.ndarray,
        q_end: np.ndarray,
        resolution: Optional[float] = None,
    ) -> bool:
        """线段碰撞检测

        在两个关节配置之间等间隔采样，逐点做碰撞检测。

        Args:
            resolution: 采样间隔（关节空间 L2 距离），默认 0.05

        Returns:
            True = 存在碰撞点, False = 所有采样点无碰撞
        """
        if resolution is None:
            resolution = 0.05

        dist = float(np.linalg.norm(q_end - q_start))
        if dist < 1e-10:
            return self.check_config_collision(q_start)

        n_steps = max(2, int(np.ceil(dist / resolution)) + 1)
        for i in range(n_steps):
            t = i / (n_steps - 1)
            if self.check_config_collision(q_start + t * (q_end - q_start)):
                return True
        return False

    def check_config_in_limits(
        self,
        joint_values: np.ndarray,
        joint_limits: Optional[List[Tuple[float, float]]] = None,
    ) -> bool:
        """检查配置是否在关节限制内"""
        limits = joint_limits or self.robot.joint_limits
        if limits is None:
            return True
        for i, (lo, hi) in enumerate(limits):
            if i >= len(joint_values):
                break
            if joint_values[i] < lo - 1e-10 or joint_values[i] > hi + 1e-10:
                return False
        return True

    def is_valid(self, joint_values: np.ndarray, verbose: bool = False) -> bool:
        """状态有效性：关节限制内且无碰撞

        Args:
            joint_values: 关节配置
            verbose: 为 True 时记录拒绝原因（用于排查采样长时间无解的情况）
        """
        q = np.asarray(joint_values, dtype=np.float64)
        if not self.check_config_in_limits(q):
            if verbose:
                logger.info("状态超出关节限制: %s", np.round(q, 4).tolist())
            return False
        if self.check_config_collision(q):
            if verbose:
                logger.info("状态存在碰撞: %s", np.round(q, 4).tolist())
            return False
        return True
