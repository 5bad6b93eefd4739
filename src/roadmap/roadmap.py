"""
roadmap/roadmap.py - 目标区域 roadmap

增量生长的有效配置图（PRM 风格），附带 Union-Find 连通索引，
用于在已有解的终点附近寻找更低代价的内部连接。

结构是只追加的：顶点配置与边插入后不再修改或删除（clear 除外），
因此 refinement 在生长线程追加顶点的同时读取快照是安全的。
"""

import heapq
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from .connectivity import UnionFind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoadmapVertex:
    """roadmap 顶点快照

    Attributes:
        vertex_id: arena 下标
        config: 关节配置（副本）
        neighbors: 相邻顶点 ID
    """
    vertex_id: int
    config: np.ndarray
    neighbors: Tuple[int, ...]


class _VertexPool:
    """用 numpy 数组存储顶点配置, 容量不足时倍增."""
    __slots__ = ('configs', 'n', 'cap', 'ndim')

    def __init__(self, ndim: int, cap: int = 256):
        self.ndim = ndim
        self.cap = cap
        self.configs = np.empty((cap, ndim), dtype=np.float64)
        self.n = 0

    def add(self, config: np.ndarray) -> int:
        if self.n >= self.cap:
            self.cap *= 2
            new_c = np.empty((self.cap, self.ndim), dtype=np.float64)
            new_c[:self.n] = self.configs[:self.n]
            self.configs = new_c
        idx = self.n
        self.configs[idx] = config
        self.n += 1
        return idx


class Roadmap:
    """有效配置图 + 连通分量索引

    Example:
        >>> rm = Roadmap()
        >>> a = rm.add_vertex([0.0, 0.0])
        >>> b = rm.add_vertex([1.0, 0.0])
        >>> rm.add_edge(a, b)
        True
        >>> rm.same_component(a, b)
        True
        >>> rm.construct_solution(a, b)
        [array([0., 0.]), array([1., 0.])]
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._pool: Optional[_VertexPool] = None
        self._adj: Dict[int, Dict[int, float]] = {}
        self._uf = UnionFind()
        self._n_edges = 0

    # ==================== 增长 ====================

    def add_vertex(self, config) -> int:
        """加入一个顶点，返回其 ID（arena 下标）"""
        q = np.asarray(config, dtype=np.float64).reshape(-1)
        with self._lock:
            if self._pool is None:
                self._pool = _VertexPool(q.shape[0])
            elif q.shape[0] != self._pool.ndim:
                raise ValueError(
                    f'顶点维度 {q.shape[0]} 与 roadmap 维度 {self._pool.ndim} 不一致')
            vid = self._pool.add(q)
            self._adj[vid] = {}
            self._uf.add()
        return vid

    def add_edge(self, u: int, v: int, cost: Optional[float] = None) -> bool:
        """加入无向边 u-v（代价默认为关节空间 L2 距离）

        Returns:
            True = 新加入, False = 自环或边已存在
        """
        with self._lock:
            self._require_vertex(u)
            self._require_vertex(v)
            if u == v or v in self._adj[u]:
                return False
            if cost is None:
                cost = float(np.linalg.norm(
                    self._pool.configs[u] - self._pool.configs[v]))
            self._adj[u][v] = cost
            self._adj[v][u] = cost
            self._uf.union(u, v)
            self._n_edges += 1
        return True

    def clear(self) -> None:
        with self._lock:
            self._pool = None
            self._adj.clear()
            self._uf.clear()
            self._n_edges = 0

    # ==================== 查询 ====================

    @property
    def n_vertices(self) -> int:
        with self._lock:
            return 0 if self._pool is None else self._pool.n

    @property
    def n_edges(self) -> int:
        return self._n_edges

    @property
    def ndim(self) -> Optional[int]:
        return None if self._pool is None else self._pool.ndim

    def vertices(self) -> List[int]:
        """当前快照中的所有顶点 ID"""
        return list(range(self.n_vertices))

    def configs(self) -> np.ndarray:
        """所有顶点配置的快照 (n, ndim)"""
        with self._lock:
            if self._pool is None:
                return np.empty((0, 0), dtype=np.float64)
            return self._pool.configs[:self._pool.n].copy()

    def config(self, v: int) -> np.ndarray:
        with self._lock:
            self._require_vertex(v)
            return self._pool.configs[v].copy()

    def neighbors(self, v: int) -> List[int]:
        with self._lock:
            self._require_vertex(v)
            return list(self._adj[v])

    def vertex(self, v: int) -> RoadmapVertex:
        with self._lock:
            self._require_vertex(v)
            return RoadmapVertex(
                vertex_id=v,
                config=self._pool.configs[v].copy(),
                neighbors=tuple(self._adj[v]),
            )

    def same_component(self, u: int, v: int) -> bool:
        with self._lock:
            self._require_vertex(u)
            self._require_vertex(v)
            return self._uf.same(u, v)

    def n_components(self) -> int:
        with self._lock:
            return self._uf.n_components()

    def find_vertex(self, config) -> Optional[int]:
        """按配置精确相等查找顶点，返回第一个匹配的 ID"""
        q = np.asarray(config, dtype=np.float64).reshape(-1)
        with self._lock:
            if self._pool is None or q.shape[0] != self._pool.ndim:
                return None
            hits = np.flatnonzero(
                np.all(self._pool.configs[:self._pool.n] == q, axis=1))
        return int(hits[0]) if hits.size else None

    def nearest(
        self,
        config,
        k: int = 1,
        radius: float = float('inf'),
        exclude: Optional[int] = None,
    ) -> List[Tuple[int, float]]:
        """最近的 k 个顶点（半径内），按距离升序

        Returns:
            [(vertex_id, distance), ...]
        """
        q = np.asarray(config, dtype=np.float64).reshape(-1)
        with self._lock:
            if self._pool is None or self._pool.n == 0:
                return []
            diffs = self._pool.configs[:self._pool.n] - q
        dists = np.sqrt(np.sum(diffs * diffs, axis=1))
        if exclude is not None and exclude < dists.shape[0]:
            dists[exclude] = np.inf
        order = np.argsort(dists, kind='stable')
        result: List[Tuple[int, float]] = []
        for idx in order[:k]:
            d = float(dists[idx])
            if d > radius or not np.isfinite(d):
                break
            result.append((int(idx), d))
        return result

    # ==================== 路径构造 ====================

    def construct_solution(self, start: int, goal: int) -> List[np.ndarray]:
        """构造两个同分量顶点之间的内部路径 (A*, 边代价与启发均为 L2)

        Returns:
            配置序列 [q_start, ..., q_goal]

        Raises:
            ValueError: 两个顶点不在同一连通分量
        """
        with self._lock:
            self._require_vertex(start)
            self._require_vertex(goal)
            if not self._uf.same(start, goal):
                raise ValueError(f'顶点 {start} 与 {goal} 不在同一连通分量')
            configs = self._pool.configs[:self._pool.n].copy()
            adj = {u: dict(nbrs) for u, nbrs in self._adj.items()}

        if start == goal:
            return [configs[start].copy()]

        q_goal = configs[goal]
        g_score: Dict[int, float] = {start: 0.0}
        prev: Dict[int, Optional[int]] = {start: None}
        heap = [(float(np.linalg.norm(configs[start] - q_goal)), 0.0, start)]
        closed = set()

        while heap:
            _, g, u = heapq.heappop(heap)
            if u in closed:
                continue
            if u == goal:
                break
            closed.add(u)
            for v, w in adj[u].items():
                ng = g + w
                if ng < g_score.get(v, float('inf')):
                    g_score[v] = ng
                    prev[v] = u
                    h = float(np.linalg.norm(configs[v] - q_goal))
                    heapq.heappush(heap, (ng + h, ng, v))

        if goal not in prev:
            # 连通索引与邻接表不一致时不应发生
            raise ValueError(f'顶点 {start} 与 {goal} 之间无路径')

        seq = []
        cur: Optional[int] = goal
        while cur is not None:
            seq.append(cur)
            cur = prev[cur]
        seq.reverse()
        logger.debug("roadmap 内部路径 %d → %d: %d 个顶点, 代价 %.4f",
                     start, goal, len(seq), g_score[goal])
        return [configs[i].copy() for i in seq]

    def _require_vertex(self, v: int) -> None:
        if self._pool is None or not 0 <= v < self._pool.n:
            raise KeyError(f'roadmap 中不存在顶点 {v}')

    def __repr__(self) -> str:
        return (f"Roadmap(n_vertices={self.n_vertices}, "
                f"n_edges={self.n_edges})")
