"""
goal_sampler/refiner.py - 基于 roadmap 的解改进

在已有解的终点所在连通分量中，找排序得分最低（最接近目标区域）的顶点，
把 roadmap 内部路径拼接到解的末尾。只追加，不修改已有路径段。
"""

import logging
from typing import Optional, Sequence

import numpy as np

from roadmap import Roadmap
from .models import SolutionPath, WorkspaceGoalRegion
from .sort_functions import SortFunction, get_sort_function

logger = logging.getLogger(__name__)


class SolutionRefiner:
    """解改进器

    Args:
        roadmap: 目标区域 roadmap
        fk: 正运动学模型（``end_effector_pose``）
        regions: 目标区域列表
        sort_function: 排序函数或其注册名，默认 'goal_region_centroid'
    """

    def __init__(
        self,
        roadmap: Roadmap,
        fk,
        regions: Sequence[WorkspaceGoalRegion] = (),
        sort_function='goal_region_centroid',
    ) -> None:
        self.roadmap = roadmap
        self.fk = fk
        self.regions = list(regions)
        if isinstance(sort_function, str):
            sort_function = get_sort_function(sort_function)
        self.sort_function: SortFunction = sort_function

    def set_regions(self, regions: Sequence[WorkspaceGoalRegion]) -> None:
        self.regions = list(regions)

    def _terminal_vertex(self, path: SolutionPath, configs: np.ndarray) -> Optional[int]:
        """解终点对应的顶点：记录的顶点 ID 仅在其配置与终点一致时可信"""
        tv = path.terminal_vertex
        if tv is not None and 0 <= tv < configs.shape[0]:
            if np.array_equal(configs[tv], path.terminal):
                return tv
            logger.debug("记录的终点顶点 %d 与解的终点不一致，按配置重新查找", tv)
        vid = self.roadmap.find_vertex(path.terminal)
        if vid is None or vid >= configs.shape[0]:
            return None
        return vid

    def score(self, config: np.ndarray) -> float:
        position, _ = self.fk.end_effector_pose(config)
        return float(self.sort_function(position, self.regions))

    def improve(self, path: SolutionPath) -> bool:
        """尝试改进解

        Returns:
            True = 已在路径末尾追加了状态
        """
        if len(path) == 0:
            return False
        configs = self.roadmap.configs()
        n = configs.shape[0]
        if n == 0:
            logger.debug("roadmap 为空，跳过解改进")
            return False

        terminal = self._terminal_vertex(path, configs)
        if terminal is None:
            logger.debug("解的终点不在 roadmap 中，跳过解改进")
            return False

        scores = [self.score(configs[v]) for v in range(n)]
        order = sorted(range(n), key=lambda v: (scores[v], v))
        for v in order:
            if not self.roadmap.same_component(terminal, v):
                continue
            # 配置相同的顶点（含终点自身）不构成改进
            if np.array_equal(configs[v], configs[terminal]):
                logger.info("终点顶点 %d 已是其连通分量中的最优顶点 (score=%.4f)",
                            terminal, scores[terminal])
                return False
            segment = self.roadmap.construct_solution(terminal, v)
            for q in segment[1:-1]:
                path.append(q)
            path.append(segment[-1], vertex=v)
            logger.info(
                "解改进: 顶点 %d → %d, 追加 %d 个状态, score %.4f → %.4f",
                terminal, v, len(segment) - 1, scores[terminal], scores[v])
            return True
        return False
