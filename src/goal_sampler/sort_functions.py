"""
goal_sampler/sort_functions.py - roadmap 顶点排序函数

refinement 按 ``score(end_effector_position, regions)`` 升序遍历 roadmap 顶点。
函数按名称注册，由 ``SamplerConfig.sort_roadmap_func`` 选择。
"""

from typing import Callable, Dict, List, Sequence

import numpy as np

from .models import WorkspaceGoalRegion

SortFunction = Callable[[np.ndarray, Sequence[WorkspaceGoalRegion]], float]

_REGISTRY: Dict[str, SortFunction] = {}


def register_sort_function(name: str):
    """装饰器：按名称注册排序函数"""
    def decorator(fn: SortFunction) -> SortFunction:
        _REGISTRY[name] = fn
        return fn
    return decorator


def get_sort_function(name: str) -> SortFunction:
    """按名称取排序函数

    Raises:
        ValueError: 名称未注册
    """
    try:
        return _REGISTRY[name]
    except KeyError:
        raise ValueError(
            f'未知的 roadmap 排序函数 {name!r}，可选: {available_sort_functions()}'
        ) from None


def available_sort_functions() -> List[str]:
    return sorted(_REGISTRY)


@register_sort_function('goal_region_centroid')
def goal_region_centroid(position: np.ndarray, regions: Sequence[WorkspaceGoalRegion]) -> float:
    """到各区域位置盒中心的最小欧氏距离"""
    p = np.asarray(position, dtype=np.float64)
    best = float('inf')
    for region in regions:
        best = min(best, float(np.linalg.norm(region.center - p)))
    return best


@register_sort_function('goal_region_box')
def goal_region_box(position: np.ndarray, regions: Sequence[WorkspaceGoalRegion]) -> float:
    """到各区域位置盒的最小欧氏距离（盒内为 0）"""
    p = np.asarray(position, dtype=np.float64)
    best = float('inf')
    for region in regions:
        nearest = np.clip(p, region.lower, region.upper)
        best = min(best, float(np.linalg.norm(nearest - p)))
    return best
