"""
goal_sampler/goal_region_sampler.py - 工作空间目标区域采样器

把目标队列、候选生成、区域距离、后台采样引擎以及可选的 roadmap
（后台生长 + 解改进）组装成宿主搜索使用的单一对象。

使用方式:
    sampler = GoalRegionSampler(regions, robot, checker, host_state)
    ...
    if sampler.has_states():
        goal = sampler.sample_goal()
    ...
    sampler.get_better_solution(path)
    sampler.clear()
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from roadmap import Roadmap, RoadmapGrower
from utils.rng import spawn_rngs
from .candidate_generator import CandidateGenerator
from .goal_queue import WeightedGoalQueue
from .interfaces import HostSearchState, SearchState
from .models import SamplerConfig, SolutionPath, WeightedGoal, WorkspaceGoalRegion
from .refiner import SolutionRefiner
from .region_distance import RegionDistanceEvaluator
from .sampling_engine import SamplingEngine
from .sort_functions import get_sort_function

logger = logging.getLogger(__name__)

RegionLike = Union[WorkspaceGoalRegion, Dict[str, Any]]


def _coerce_regions(regions: Sequence[RegionLike]) -> List[WorkspaceGoalRegion]:
    return [r if isinstance(r, WorkspaceGoalRegion) else WorkspaceGoalRegion.from_dict(r)
            for r in regions]


class GoalRegionSampler:
    """目标区域采样器

    Args:
        regions: 目标区域（WorkspaceGoalRegion 或其字典形式）
        robot: 正运动学模型（``end_effector_pose``、``joint_limits``）
        validity_checker: 有效性检测器（``is_valid(q, verbose)``）
        host_state: 宿主搜索状态，缺省新建 SearchState
        config: 采样参数
        autostart: 构造后立即启动后台采样
    """

    def __init__(
        self,
        regions: Sequence[RegionLike],
        robot,
        validity_checker,
        host_state: Optional[HostSearchState] = None,
        config: Optional[SamplerConfig] = None,
        autostart: bool = True,
    ) -> None:
        self.config = config or SamplerConfig()
        self.robot = robot
        self.validity_checker = validity_checker
        self.host_state = host_state if host_state is not None else SearchState()
        self._regions = _coerce_regions(regions)

        # 采样线程与生长线程各用一个独立的 Generator
        sampling_rng, roadmap_rng = spawn_rngs(self.config.seed, 2)

        self.queue = WeightedGoalQueue(self.config.queue_order)
        self.generator = CandidateGenerator(
            self._regions, robot, validity_checker, self.queue,
            config=self.config, rng=sampling_rng)
        self.evaluator = RegionDistanceEvaluator(
            robot, self._regions,
            constraint_lookup=self.generator.constraint,
            fallback=self.queue.nearest_distance,
            orientation_tolerance=self.config.orientation_tolerance,
            threshold=self.config.goal_threshold,
        )
        self.engine = SamplingEngine(
            self.generator,
            host_state=self.host_state,
            state_count=self.state_count,
            max_sampled_goals=self.config.max_sampled_goals,
        )

        self.roadmap: Optional[Roadmap] = None
        self.grower: Optional[RoadmapGrower] = None
        self.refiner: Optional[SolutionRefiner] = None
        if self.config.sort_roadmap_func:
            sort_function = get_sort_function(self.config.sort_roadmap_func)
            self.roadmap = Roadmap()
            self.grower = RoadmapGrower(
                self.roadmap, validity_checker, robot.joint_limits,
                state_source=self._roadmap_state_source,
                goal_bias=self.config.roadmap_goal_bias,
                k_neighbors=self.config.roadmap_k_neighbors,
                connection_radius=self.config.roadmap_connection_radius,
                segment_resolution=self.config.segment_resolution,
                max_vertices=self.config.roadmap_max_vertices,
                rng=roadmap_rng,
            )
            self.refiner = SolutionRefiner(
                self.roadmap, robot, self._regions, sort_function)
            logger.info("目标区域 roadmap 已启用 (排序函数 %s)",
                        self.config.sort_roadmap_func)

        logger.info("GoalRegionSampler: %d 个目标区域, %d 个关节",
                    len(self._regions), len(robot.joint_limits))
        if autostart:
            self.start_sampling()

    # ==================== 目标距离 ====================

    @property
    def regions(self) -> List[WorkspaceGoalRegion]:
        return list(self._regions)

    def distance_goal(self, config) -> float:
        return self.evaluator.distance_goal(config)

    def is_satisfied(self, config) -> bool:
        return self.evaluator.is_satisfied(config)

    # ==================== 目标候选 ====================

    def add_state(self, state) -> int:
        """加入宿主提供的目标配置（权重 1.0），返回句柄"""
        return self.queue.insert(np.array(state, dtype=np.float64), 1.0)

    def sample_goal(self) -> Optional[WeightedGoal]:
        """当前最优候选（不移除）"""
        return self.queue.top()

    def pop_goal(self) -> Optional[WeightedGoal]:
        return self.queue.pop()

    def update_weight(self, handle: int, weight: float) -> None:
        self.queue.update(handle, weight)

    def state_count(self) -> int:
        return len(self.queue)

    def has_states(self) -> bool:
        return len(self.queue) > 0

    def _roadmap_state_source(self, rng: np.random.Generator) -> Optional[np.ndarray]:
        states = self.queue.states()
        if not states:
            return None
        return states[int(rng.integers(len(states)))].copy()

    # ==================== 后台线程 ====================

    def start_sampling(self) -> None:
        self.engine.start()
        if self.grower is not None:
            self.grower.start()

    def stop_sampling(self) -> None:
        self.engine.stop()
        if self.grower is not None:
            self.grower.stop()

    def is_sampling(self) -> bool:
        return self.engine.is_sampling()

    def sampling_attempts_count(self) -> int:
        return self.engine.sampling_attempts_count()

    # ==================== roadmap ====================

    def get_better_solution(self, path: SolutionPath) -> bool:
        """用 roadmap 内部连接改进解（只在末尾追加）"""
        if self.refiner is None:
            logger.warning("未启用目标区域 roadmap，无法改进解")
            return False
        logger.info("从目标区域 roadmap 改进解 (%d 个顶点)", self.roadmap.n_vertices)
        return self.refiner.improve(path)

    def get_sort_roadmap_func_str(self) -> str:
        return self.config.sort_roadmap_func

    # ==================== 生命周期 ====================

    def set_regions(self, regions: Sequence[RegionLike]) -> None:
        """替换目标区域并从新的约束重新开始（不改变采样线程的启停状态）"""
        was_sampling = self.is_sampling()
        self.engine.stop()
        with self.queue.lock:
            self._regions = _coerce_regions(regions)
            self.generator.reset(self._regions)
            self.evaluator.set_regions(self._regions)
            if self.refiner is not None:
                self.refiner.set_regions(self._regions)
        logger.info("目标区域已更新: %d 个", len(self._regions))
        if was_sampling:
            self.engine.start()

    def clear(self) -> None:
        """停止后台线程，丢弃区域、约束、候选与 roadmap"""
        self.stop_sampling()
        with self.queue.lock:
            self._regions = []
            self.generator.reset([])
            self.evaluator.set_regions([])
            self.queue.clear()
            self.engine.clear()
            if self.roadmap is not None:
                self.roadmap.clear()
            if self.refiner is not None:
                self.refiner.set_regions([])
        logger.info("GoalRegionSampler 已清空")

    def __enter__(self) -> 'GoalRegionSampler':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop_sampling()

    def __repr__(self) -> str:
        return (f"GoalRegionSampler(regions={len(self._regions)}, "
                f"states={self.state_count()}, sampling={self.is_sampling()})")
