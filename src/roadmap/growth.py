"""
roadmap/growth.py - roadmap 后台生长

PRM 风格的生长循环：采样 → 有效性检测 → 加入顶点 → 连接近邻。
采样偏向目标区域：以 goal_bias 概率从目标候选集（采样器已接受的目标配置）
取点，否则在关节限制内均匀采样。

生长在独立的后台线程中运行，与目标采样线程、主搜索并发，
只通过共享的只读有效性检测器和只追加的 Roadmap 交互。
"""

import logging
import threading
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from utils.rng import make_rng, uniform_in_bounds
from .roadmap import Roadmap

logger = logging.getLogger(__name__)

# state_source(rng) -> 一个目标偏置配置，或 None（暂无可用目标）
StateSource = Callable[[np.random.Generator], Optional[np.ndarray]]


class RoadmapGrower:
    """roadmap 生长器

    Args:
        roadmap: 被生长的 Roadmap
        validity_checker: 有效性检测器（``is_valid(q, verbose)``）
        joint_limits: 关节限制 [(lo, hi), ...]
        state_source: 目标偏置采样源（可选）
        goal_bias: 从 state_source 采样的概率 [0, 1]
        k_neighbors: 每个新顶点最多尝试连接的近邻数
        connection_radius: 连接半径（关节空间 L2）
        segment_resolution: 边有效性检测的插值间隔
        max_vertices: 顶点上限，达到后后台生长自动停止
        rng: 随机数生成器（仅由生长线程使用）

    Example:
        >>> grower = RoadmapGrower(roadmap, checker, robot.joint_limits)
        >>> grower.grow(200)
        >>> grower.start()   # 后台继续生长
        >>> grower.stop()
    """

    def __init__(
        self,
        roadmap: Roadmap,
        validity_checker,
        joint_limits: Sequence[Tuple[float, float]],
        state_source: Optional[StateSource] = None,
        goal_bias: float = 0.3,
        k_neighbors: int = 10,
        connection_radius: float = 1.0,
        segment_resolution: float = 0.05,
        max_vertices: int = 2000,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        if not 0.0 <= goal_bias <= 1.0:
            raise ValueError(f'goal_bias 必须在 [0, 1] 内，得到 {goal_bias}')
        self.roadmap = roadmap
        self.validity_checker = validity_checker
        self.joint_limits = [(float(lo), float(hi)) for lo, hi in joint_limits]
        self.state_source = state_source
        self.goal_bias = goal_bias
        self.k_neighbors = k_neighbors
        self.connection_radius = connection_radius
        self.segment_resolution = segment_resolution
        self.max_vertices = max_vertices
        self.rng = rng if rng is not None else make_rng()

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._thread_lock = threading.Lock()
        self.n_samples = 0
        self.n_rejected = 0
        self.n_goal_repeats = 0

    # ==================== 采样与连接 ====================

    def sample(self) -> np.ndarray:
        """采样一个候选配置（目标偏置 / 均匀）

        目标偏置采样到的配置若已是 roadmap 顶点，则改为均匀采样，
        避免重复顶点占用 max_vertices。
        """
        if self.state_source is not None and self.rng.uniform() < self.goal_bias:
            q = self.state_source(self.rng)
            if q is not None:
                q = np.array(q, dtype=np.float64)
                if self.roadmap.find_vertex(q) is None:
                    return q
                self.n_goal_repeats += 1
        return uniform_in_bounds(self.rng, self.joint_limits)

    def motion_valid(self, q_a: np.ndarray, q_b: np.ndarray) -> bool:
        """直线运动有效性：按 segment_resolution 插值逐点检测（端点已知有效）"""
        dist = float(np.linalg.norm(q_b - q_a))
        if dist < 1e-10:
            return True
        n_steps = max(2, int(np.ceil(dist / self.segment_resolution)) + 1)
        for i in range(1, n_steps - 1):
            t = i / (n_steps - 1)
            if not self.validity_checker.is_valid(q_a + t * (q_b - q_a)):
                return False
        return True

    def grow_once(self) -> Optional[int]:
        """一次生长迭代

        Returns:
            新顶点 ID；采样点无效时返回 None
        """
        q = self.sample()
        self.n_samples += 1
        if not self.validity_checker.is_valid(q):
            self.n_rejected += 1
            return None

        vid = self.roadmap.add_vertex(q)
        neighbors = self.roadmap.nearest(
            q, k=self.k_neighbors, radius=self.connection_radius, exclude=vid)
        n_connected = 0
        for nb, _ in neighbors:
            if self.motion_valid(self.roadmap.config(nb), q):
                self.roadmap.add_edge(nb, vid)
                n_connected += 1
        logger.debug("roadmap 顶点 %d: 连接 %d/%d 个近邻",
                     vid, n_connected, len(neighbors))
        return vid

    def grow(self, n_iterations: int) -> List[int]:
        """同步生长 n_iterations 次迭代（受 max_vertices 限制）

        Returns:
            新加入的顶点 ID 列表
        """
        added: List[int] = []
        for _ in range(n_iterations):
            if self.roadmap.n_vertices >= self.max_vertices:
                break
            vid = self.grow_once()
            if vid is not None:
                added.append(vid)
        return added

    # ==================== 后台线程 ====================

    def start(self) -> None:
        """启动后台生长线程（已在运行时无操作）"""
        with self._thread_lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run, name="roadmap-grower", daemon=True)
            self._thread.start()
        logger.info("roadmap 后台生长已启动")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """请求停止并等待线程退出（在两次迭代之间生效）"""
        self._stop_event.set()
        with self._thread_lock:
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def is_growing(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def _run(self) -> None:
        try:
            while not self._stop_event.is_set():
                if self.roadmap.n_vertices >= self.max_vertices:
                    logger.info("roadmap 达到顶点上限 %d，停止生长", self.max_vertices)
                    break
                self.grow_once()
        except Exception:
            logger.exception("roadmap 生长线程异常退出")
        logger.info(
            "roadmap 后台生长结束: %d 个顶点, %d 条边, %d 个连通分量",
            self.roadmap.n_vertices, self.roadmap.n_edges,
            self.roadmap.n_components())
