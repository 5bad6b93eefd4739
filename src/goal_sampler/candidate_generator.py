"""
goal_sampler/candidate_generator.py - 目标候选生成

每次调用对每个区域独立执行一轮：
    区域内采样位姿 → 刷新区域约束 → 选择投影器 → 最多 max_attempts 次投影
    → 约束判定 → 有效性检测 → 以权重 1.0 插入目标队列

拒绝是常态，只计数不抛异常。生成器实例本身就是 CandidateSource
（``generator(context) -> bool``），由 SamplingEngine 在采样线程中反复调用。
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from kinematics.rotations import quaternion_to_rpy, random_quaternion
from utils.rng import make_rng, uniform_in_bounds
from .constraints import ConstraintSamplerManager, PoseConstraint, PoseConstraintSet
from .goal_queue import WeightedGoalQueue
from .interfaces import SamplingContext
from .models import SamplerConfig, WorkspaceGoalRegion

logger = logging.getLogger(__name__)


class CandidateGenerator:
    """目标候选生成器

    Args:
        regions: 目标区域列表
        fk: 正运动学模型（``end_effector_pose``、``joint_limits``）
        validity_checker: 有效性检测器（``is_valid(q, verbose)``）
        queue: 接收候选的目标队列
        config: 采样参数
        sampler_manager: 约束投影器选择器，缺省按 config 构造
        rng: 随机数生成器（只在采样线程中使用）

    Attributes:
        projection_attempts: 投影器调用次数
        invalid_sampled_constraints: 投影成功但不满足约束的次数
        accepted: 已接受的候选数
    """

    def __init__(
        self,
        regions: Sequence[WorkspaceGoalRegion],
        fk,
        validity_checker,
        queue: WeightedGoalQueue,
        config: Optional[SamplerConfig] = None,
        sampler_manager: Optional[ConstraintSamplerManager] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.fk = fk
        self.validity_checker = validity_checker
        self.queue = queue
        self.config = config or SamplerConfig()
        self.rng = rng if rng is not None else make_rng(self.config.seed)
        if sampler_manager is None:
            sampler_manager = ConstraintSamplerManager(
                fk,
                max_iterations=self.config.ik_max_iterations,
                damping=self.config.ik_damping,
                step=self.config.ik_step,
                rng=self.rng,
            )
        self.sampler_manager = sampler_manager
        self.joint_limits = [(float(lo), float(hi)) for lo, hi in fk.joint_limits]
        self.reset(regions)

    # ==================== 状态 ====================

    def reset(self, regions: Sequence[WorkspaceGoalRegion]) -> None:
        """丢弃全部区域与计数状态，按新区域重建约束"""
        self.regions: List[WorkspaceGoalRegion] = list(regions)
        self._constraints: List[PoseConstraint] = [
            PoseConstraint.from_region(
                region,
                position_tolerance=self.config.position_tolerance,
                orientation_tolerance=self.config.orientation_tolerance,
            )
            for region in self.regions
        ]
        self._constraint_sets: List[PoseConstraintSet] = [
            PoseConstraintSet(self.fk) for _ in self.regions
        ]
        self._work_state = uniform_in_bounds(self.rng, self.joint_limits)
        self.projection_attempts = 0
        self.invalid_sampled_constraints = 0
        self.accepted = 0
        self._verbose_left = self.config.verbose_sample_limit
        self._warned_invalid = False
        for i, constraint in enumerate(self._constraints):
            logger.debug("区域 %d 初始约束: %s", i, constraint.describe())

    def constraint(self, index: int) -> Optional[PoseConstraint]:
        """区域当前约束（越界返回 None）"""
        constraints = self._constraints
        if 0 <= index < len(constraints):
            return constraints[index]
        return None

    @property
    def constraints(self) -> List[PoseConstraint]:
        return list(self._constraints)

    # ==================== 生成 ====================

    def __call__(self, context: SamplingContext) -> bool:
        return self.generate(context)

    def generate(self, context: SamplingContext) -> bool:
        """对每个区域执行一轮生成

        Returns:
            至少一个区域产生了新候选时为 True
        """
        # reset() 只替换列表不原地修改，本轮使用调用开始时的快照
        regions, constraints, constraint_sets = (
            self.regions, self._constraints, self._constraint_sets)
        work_state = self._work_state
        success = False
        max_attempts = self.config.max_attempts
        half = max_attempts // 2
        for i, region in enumerate(regions):
            # 主搜索已有解时不再为该区域投入计算
            if context.has_solution():
                continue

            constraint = constraints[i]
            constraint_set = constraint_sets[i]
            self._refresh_constraint(region, constraint)
            constraint_set.clear()
            constraint_set.add(constraint)
            projector = self.sampler_manager.select_sampler(constraint_set)

            for a in range(max_attempts):
                if not context.is_sampling():
                    break
                verbose = False
                if context.state_count() == 0 and a >= half and self._verbose_left > 0:
                    verbose = True
                    self._verbose_left -= 1

                if projector is not None:
                    accepted = self._attempt_constrained(
                        projector, constraint_set, work_state, verbose)
                else:
                    accepted = self._attempt_unconstrained(
                        constraint_set, work_state, verbose)
                if accepted:
                    success = True
                    break
        return success

    def _refresh_constraint(
        self, region: WorkspaceGoalRegion, constraint: PoseConstraint,
    ) -> None:
        """采样区域内的新位姿并写入约束：自由轴取采样值，fixed 轴保留原值"""
        constraint.position = self.rng.uniform(region.lower, region.upper)
        if region.any_free:
            sampled = quaternion_to_rpy(random_quaternion(self.rng))
            previous = constraint.rpy()
            rpy = [s if free else p
                   for s, p, free in zip(sampled, previous, region.free_axes)]
            constraint.set_rpy(*rpy)

    def _attempt_constrained(
        self,
        projector,
        constraint_set: PoseConstraintSet,
        work_state: np.ndarray,
        verbose: bool,
    ) -> bool:
        projector.set_validity_callback(
            lambda values: self.validity_checker.is_valid(
                np.array(values, dtype=np.float64), verbose))
        self.projection_attempts += 1
        if not projector.project(
                work_state, self.config.max_state_sampling_attempts):
            return False

        if constraint_set.decide(work_state, verbose).satisfied:
            if self.validity_checker.is_valid(work_state, verbose):
                self._accept(work_state)
                return True
            return False

        self.invalid_sampled_constraints += 1
        attempts = self.projection_attempts
        if (not self._warned_invalid and self.invalid_sampled_constraints
                > self.config.invalid_warning_ratio * attempts):
            self._warned_invalid = True
            logger.warning(
                "超过 %.0f%% 的目标采样不满足约束 (%d/%d)，约束投影器是否正常？",
                self.config.invalid_warning_ratio * 100,
                self.invalid_sampled_constraints, attempts)
        return False

    def _attempt_unconstrained(
        self, constraint_set: PoseConstraintSet, work_state: np.ndarray, verbose: bool,
    ) -> bool:
        q = uniform_in_bounds(self.rng, self.joint_limits)
        if not self.validity_checker.is_valid(q, verbose):
            return False
        work_state[:] = q
        if constraint_set.decide(work_state, verbose).satisfied:
            self._accept(work_state)
            return True
        return False

    def _accept(self, state: np.ndarray) -> None:
        handle = self.queue.insert(state.copy(), 1.0)
        self.accepted += 1
        logger.debug("接受目标候选 #%d (handle=%d, 队列 %d)",
                     self.accepted, handle, len(self.queue))
