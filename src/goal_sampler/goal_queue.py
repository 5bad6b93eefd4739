"""
goal_sampler/goal_queue.py - 带权目标优先队列

可变优先级队列：候选存放在显式 arena（handle → WeightedGoal），
排序由独立的数组二叉堆（存 handle）+ handle → 堆下标映射维护，
支持 O(log n) 的权重更新与任意删除。

采样线程插入、主搜索读取/调权，所有修改由同一把粗粒度可重入锁串行化；
采样器的 clear() 也持有这把锁，保证清空时没有进行中的插入。
"""

import itertools
import logging
import threading
from typing import Dict, List, Optional

import numpy as np

from .models import WeightedGoal

logger = logging.getLogger(__name__)


class WeightedGoalQueue:
    """带权目标优先队列

    Args:
        order: 'max' 权重大者优先，'min' 权重小者优先

    Example:
        >>> queue = WeightedGoalQueue()
        >>> h = queue.insert(np.zeros(7))
        >>> queue.update(h, 2.5)
        >>> queue.pop().weight
        2.5
    """

    def __init__(self, order: str = 'max') -> None:
        if order not in ('max', 'min'):
            raise ValueError(f"order 必须是 'max' 或 'min'，得到 {order!r}")
        self.order = order
        self.lock = threading.RLock()
        self._arena: Dict[int, WeightedGoal] = {}
        self._heap: List[int] = []
        self._pos: Dict[int, int] = {}
        self._handles = itertools.count()

    # ==================== 基本操作 ====================

    def __len__(self) -> int:
        return len(self._arena)

    def __contains__(self, handle: int) -> bool:
        return handle in self._arena

    def __bool__(self) -> bool:
        return bool(self._arena)

    def insert(self, state, weight: float = 1.0) -> int:
        """插入候选，返回句柄（队列生命周期内不复用）"""
        goal = WeightedGoal(
            state=np.asarray(state, dtype=np.float64), weight=float(weight))
        with self.lock:
            handle = next(self._handles)
            goal.handle = handle
            self._arena[handle] = goal
            self._heap.append(handle)
            self._pos[handle] = len(self._heap) - 1
            self._sift_up(len(self._heap) - 1)
        return handle

    def get(self, handle: int) -> WeightedGoal:
        with self.lock:
            return self._arena[handle]

    def update(self, handle: int, weight: float) -> None:
        """修改权重并重新排序

        Raises:
            KeyError: 句柄无效（已删除 / 已弹出 / 已清空）
        """
        with self.lock:
            goal = self._arena[handle]
            goal.weight = float(weight)
            idx = self._pos[handle]
            self._sift_up(idx)
            self._sift_down(self._pos[handle])

    def remove(self, handle: int) -> WeightedGoal:
        """删除候选，句柄随之失效"""
        with self.lock:
            goal = self._arena.pop(handle)
            idx = self._pos.pop(handle)
            last = self._heap.pop()
            if idx < len(self._heap):
                self._heap[idx] = last
                self._pos[last] = idx
                self._sift_up(idx)
                self._sift_down(self._pos[last])
            return goal

    def top(self) -> Optional[WeightedGoal]:
        """最优候选（不删除），空队列返回 None"""
        with self.lock:
            if not self._heap:
                return None
            return self._arena[self._heap[0]]

    def pop(self) -> Optional[WeightedGoal]:
        """弹出最优候选，空队列返回 None"""
        with self.lock:
            if not self._heap:
                return None
            return self.remove(self._heap[0])

    def clear(self) -> None:
        with self.lock:
            n = len(self._arena)
            self._arena.clear()
            self._heap.clear()
            self._pos.clear()
        logger.debug("目标队列已清空 (%d 个候选)", n)

    # ==================== 查询 ====================

    def handles(self) -> List[int]:
        with self.lock:
            return list(self._arena)

    def states(self) -> List[np.ndarray]:
        """所有候选配置的快照（插入顺序）"""
        with self.lock:
            return [goal.state for goal in self._arena.values()]

    def nearest_distance(self, config) -> float:
        """config 到最近候选的关节空间 L2 距离，空队列为 inf"""
        states = self.states()
        if not states:
            return float('inf')
        q = np.asarray(config, dtype=np.float64)
        diffs = np.vstack(states) - q
        return float(np.min(np.sqrt(np.sum(diffs * diffs, axis=1))))

    # ==================== 堆维护 ====================

    def _before(self, a: int, b: int) -> bool:
        """handle a 是否应排在 handle b 之前"""
        wa = self._arena[a].weight
        wb = self._arena[b].weight
        return wa > wb if self.order == 'max' else wa < wb

    def _swap(self, i: int, j: int) -> None:
        hi, hj = self._heap[i], self._heap[j]
        self._heap[i], self._heap[j] = hj, hi
        self._pos[hj] = i
        self._pos[hi] = j

    def _sift_up(self, idx: int) -> None:
        while idx > 0:
            parent = (idx - 1) // 2
            if not self._before(self._heap[idx], self._heap[parent]):
                break
            self._swap(idx, parent)
            idx = parent

    def _sift_down(self, idx: int) -> None:
        n = len(self._heap)
        while True:
            best = idx
            for child in (2 * idx + 1, 2 * idx + 2):
                if child < n and self._before(self._heap[child], self._heap[best]):
                    best = child
            if best == idx:
                break
            self._swap(idx, best)
            idx = best

    def __repr__(self) -> str:
        return f"WeightedGoalQueue(order={self.order!r}, n={len(self)})"
