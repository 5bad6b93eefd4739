"""
goal_sampler/interfaces.py - 外部协作者接口

采样器核心只通过这些窄接口调用外部能力（结构化类型，无需继承）：

ValidityChecker      ：状态有效性（碰撞 / 关节限制）
ForwardKinematics    ：末端位姿
ConstraintEvaluator  ：约束满足判定
ConstraintProjector  ：把配置投影到约束流形上
HostSearchState      ：宿主搜索的协作终止信号

另外提供 SearchState（HostSearchState 的线程安全实现）和
SamplingContext（采样引擎每次迭代交给候选源的上下文）。
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np


@runtime_checkable
class ValidityChecker(Protocol):
    def is_valid(self, config: np.ndarray, verbose: bool = False) -> bool: ...


@runtime_checkable
class ForwardKinematics(Protocol):
    n_joints: int
    joint_limits: List[Tuple[float, float]]

    def end_effector_pose(self, config: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
        """返回 (position(3,), rotation_matrix(3, 3))"""
        ...


@dataclass(frozen=True)
class ConstraintEvaluation:
    """约束判定结果

    Attributes:
        satisfied: 是否满足全部约束
        distance: 违反程度（满足时为 0）
    """
    satisfied: bool
    distance: float = 0.0


@runtime_checkable
class ConstraintEvaluator(Protocol):
    def decide(self, config: np.ndarray, verbose: bool = False) -> ConstraintEvaluation: ...


# callback(candidate_joint_values) -> bool，投影器对每个收敛候选调用
ValidityCallback = Callable[[np.ndarray], bool]


@runtime_checkable
class ConstraintProjector(Protocol):
    def set_validity_callback(self, callback: Optional[ValidityCallback]) -> None: ...

    def project(self, state: np.ndarray, max_attempts: int) -> bool:
        """原地修改 state 使其满足约束；失败返回 False"""
        ...


@runtime_checkable
class HostSearchState(Protocol):
    def has_solution(self) -> bool: ...


class SearchState:
    """宿主搜索状态（线程安全）

    主搜索找到解后调用 ``mark_solved()``，采样线程据此协作退出。
    """

    def __init__(self) -> None:
        self._solved = threading.Event()

    def has_solution(self) -> bool:
        return self._solved.is_set()

    def mark_solved(self) -> None:
        self._solved.set()

    def reset(self) -> None:
        self._solved.clear()


class SamplingContext:
    """采样引擎交给候选源的迭代上下文

    把宿主搜索状态与引擎自身状态（是否仍在采样、迭代计数、已有候选数）
    合并成一个只读视图。
    """

    def __init__(
        self,
        host_state: HostSearchState,
        is_sampling: Callable[[], bool],
        attempts_count: int,
        state_count: Callable[[], int],
    ) -> None:
        self._host_state = host_state
        self._is_sampling = is_sampling
        self._attempts_count = attempts_count
        self._state_count = state_count

    def has_solution(self) -> bool:
        return self._host_state.has_solution()

    def is_sampling(self) -> bool:
        return self._is_sampling()

    def sampling_attempts_count(self) -> int:
        return self._attempts_count

    def state_count(self) -> int:
        return self._state_count()


# 候选源：每次迭代被调用一次，返回本轮是否产生了新候选
CandidateSource = Callable[[SamplingContext], bool]
