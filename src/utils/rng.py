"""
utils/rng.py - 随机数生成器管理

统一管理可复现性种子。numpy Generator 不是线程安全的，
采样线程与 roadmap 生长线程各自持有由同一 SeedSequence 派生的 Generator。
"""

import time
from typing import List, Sequence, Tuple

import numpy as np


def make_seed(seed: int = 0) -> int:
    """如果 seed == 0, 用当前时间戳生成; 否则原样返回."""
    if seed == 0:
        return int(time.time() * 1e6) % (2**31)
    return seed


def make_rng(seed: int = 0) -> np.random.Generator:
    """返回 numpy Generator, seed==0 时自动分配."""
    return np.random.default_rng(make_seed(seed))


def spawn_rngs(seed: int, n: int) -> List[np.random.Generator]:
    """从同一个种子派生 n 个相互独立的 Generator (每个线程一个)."""
    children = np.random.SeedSequence(make_seed(seed)).spawn(n)
    return [np.random.default_rng(child) for child in children]


def uniform_in_bounds(
    rng: np.random.Generator,
    bounds: Sequence[Tuple[float, float]],
) -> np.ndarray:
    """在轴对齐区间 [(lo, hi), ...] 内均匀采样一个点."""
    lows = np.array([lo for lo, _ in bounds], dtype=np.float64)
    highs = np.array([hi for _, hi in bounds], dtype=np.float64)
    return rng.uniform(lows, highs)
