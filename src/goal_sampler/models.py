"""
goal_sampler/models.py - 目标区域采样器数据模型

定义采样器使用的核心数据结构：WorkspaceGoalRegion、WeightedGoal、
SolutionPath 以及参数配置 SamplerConfig。
"""

import json
import numpy as np
from pathlib import Path
from typing import List, Tuple, Dict, Optional, Any
from dataclasses import dataclass, field, fields as dc_fields


AXIS_NAMES = ('roll', 'pitch', 'yaw')


def _as_bounds(value, label: str) -> Tuple[float, float]:
    """解析区间：[lo, hi] / (lo, hi) / {'min': lo, 'max': hi}"""
    if isinstance(value, dict):
        lo, hi = value['min'], value['max']
    else:
        lo, hi = value
    lo, hi = float(lo), float(hi)
    if lo > hi:
        raise ValueError(f'{label} 区间无效: min={lo} > max={hi}')
    return lo, hi


@dataclass(frozen=True)
class WorkspaceGoalRegion:
    """工作空间目标区域

    末端执行器位置的轴对齐盒 + 三个姿态轴的 free/fixed 标记。
    fixed 轴的目标值取自 ``orientation``（roll, pitch, yaw）。
    加载后不可变。

    Attributes:
        x, y, z: 位置区间 (min, max)
        roll_free, pitch_free, yaw_free: 对应姿态轴是否自由
        orientation: 标称姿态 (roll, pitch, yaw)，fixed 轴使用
        name: 区域名称（可选）
    """
    x: Tuple[float, float]
    y: Tuple[float, float]
    z: Tuple[float, float]
    roll_free: bool = True
    pitch_free: bool = True
    yaw_free: bool = True
    orientation: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, 'x', _as_bounds(self.x, 'x'))
        object.__setattr__(self, 'y', _as_bounds(self.y, 'y'))
        object.__setattr__(self, 'z', _as_bounds(self.z, 'z'))
        if len(self.orientation) != 3:
            raise ValueError('orientation 必须是 (roll, pitch, yaw)')
        object.__setattr__(
            self, 'orientation', tuple(float(v) for v in self.orientation))

    @property
    def bounds(self) -> List[Tuple[float, float]]:
        return [self.x, self.y, self.z]

    @property
    def lower(self) -> np.ndarray:
        return np.array([self.x[0], self.y[0], self.z[0]], dtype=np.float64)

    @property
    def upper(self) -> np.ndarray:
        return np.array([self.x[1], self.y[1], self.z[1]], dtype=np.float64)

    @property
    def center(self) -> np.ndarray:
        """位置盒中心（质心）"""
        return (self.lower + self.upper) / 2.0

    @property
    def free_axes(self) -> Tuple[bool, bool, bool]:
        return (self.roll_free, self.pitch_free, self.yaw_free)

    @property
    def all_free(self) -> bool:
        return all(self.free_axes)

    @property
    def any_free(self) -> bool:
        return any(self.free_axes)

    def contains_position(self, position: np.ndarray) -> bool:
        """位置是否在盒内（含边界）"""
        p = np.asarray(position, dtype=np.float64)
        return bool(np.all(p >= self.lower) and np.all(p <= self.upper))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'name': self.name,
            'x': {'min': self.x[0], 'max': self.x[1]},
            'y': {'min': self.y[0], 'max': self.y[1]},
            'z': {'min': self.z[0], 'max': self.z[1]},
        }
        for axis, free, value in zip(AXIS_NAMES, self.free_axes, self.orientation):
            data[axis] = {'free': free, 'value': value}
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WorkspaceGoalRegion':
        """从字典创建

        姿态轴支持 ``{'roll': {'free': false, 'value': 0.0}}`` 或
        ``{'roll_free': false}`` 两种写法；缺省为自由轴。
        """
        free = []
        values = []
        nominal = list(data.get('orientation', (0.0, 0.0, 0.0)))
        for i, axis in enumerate(AXIS_NAMES):
            axis_def = data.get(axis)
            if isinstance(axis_def, dict):
                free.append(bool(axis_def.get('free', True)))
                values.append(float(axis_def.get('value', nominal[i])))
            else:
                free.append(bool(data.get(f'{axis}_free', True)))
                values.append(float(nominal[i]))
        return cls(
            x=data['x'], y=data['y'], z=data['z'],
            roll_free=free[0], pitch_free=free[1], yaw_free=free[2],
            orientation=tuple(values),
            name=data.get('name', ''),
        )


def load_regions(filepath: str | Path) -> List[WorkspaceGoalRegion]:
    """从 JSON 文件加载目标区域

    格式: ``{"regions": [{...}, ...]}`` 或直接为列表
    """
    with open(Path(filepath), 'r', encoding='utf-8') as f:
        data = json.load(f)
    items = data['regions'] if isinstance(data, dict) else data
    return [WorkspaceGoalRegion.from_dict(item) for item in items]


@dataclass
class WeightedGoal:
    """带权目标候选

    Attributes:
        state: 完整关节配置（归队列所有）
        weight: 权重，初始 1.0，由队列调用方修改
        handle: 队列内部句柄，用于 O(log n) 更新/删除
    """
    state: np.ndarray
    weight: float = 1.0
    handle: int = -1


@dataclass
class SolutionPath:
    """当前最优解路径

    由宿主搜索持有；refinement 只在末尾追加。
    ``terminal_vertex`` 记录末端状态对应的 roadmap 顶点（若已知），
    避免用浮点精确相等重新查找。

    Attributes:
        states: 配置序列 [q_start, ..., q_goal]
        terminal_vertex: 末端状态的 roadmap 顶点 ID（未知为 None）
    """
    states: List[np.ndarray] = field(default_factory=list)
    terminal_vertex: Optional[int] = None

    def __post_init__(self) -> None:
        self.states = [np.asarray(q, dtype=np.float64) for q in self.states]

    def __len__(self) -> int:
        return len(self.states)

    def __getitem__(self, idx):
        return self.states[idx]

    @property
    def terminal(self) -> Optional[np.ndarray]:
        return self.states[-1] if self.states else None

    def append(self, state, vertex: Optional[int] = None) -> None:
        """追加状态；vertex 为该状态对应的 roadmap 顶点（未知则清空出处）"""
        self.states.append(np.asarray(state, dtype=np.float64).copy())
        self.terminal_vertex = vertex

    def length(self) -> float:
        """路径总长度（关节空间 L2）"""
        if len(self.states) < 2:
            return 0.0
        return float(sum(
            np.linalg.norm(self.states[i] - self.states[i - 1])
            for i in range(1, len(self.states))
        ))


@dataclass
class SamplerConfig:
    """目标区域采样器参数配置

    Attributes:
        max_attempts: 每个区域每次调用的最大投影尝试次数
        max_state_sampling_attempts: 单次投影内部的最大尝试次数
        max_sampled_goals: 目标候选数上限，达到后停止采样 (0 = 不限)
        orientation_tolerance: fixed 姿态轴的允许偏差 (rad)
        position_tolerance: 位姿约束的位置容差
        invalid_warning_ratio: 约束不满足比例超过该值时告警一次
        verbose_sample_limit: 采样器实例生命周期内 verbose 有效性检测的次数
        queue_order: 目标队列排序 ('max' 权重大者优先 / 'min')
        goal_threshold: is_satisfied 的距离阈值
        sort_roadmap_func: roadmap 排序函数名，空串表示不构建 roadmap
        roadmap_goal_bias: roadmap 从目标候选采样的概率
        roadmap_k_neighbors: roadmap 每个新顶点尝试连接的近邻数
        roadmap_connection_radius: roadmap 连接半径 (关节空间 L2)
        roadmap_max_vertices: roadmap 顶点上限
        segment_resolution: 边有效性检测插值间隔
        ik_max_iterations: IK 投影每次尝试的最大迭代数
        ik_damping: 阻尼最小二乘阻尼系数
        ik_step: IK 步长缩放
        seed: 随机种子 (0 = 按时间生成)
    """
    max_attempts: int = 2
    max_state_sampling_attempts: int = 2
    max_sampled_goals: int = 0
    orientation_tolerance: float = 0.02
    position_tolerance: float = 0.01
    invalid_warning_ratio: float = 0.8
    verbose_sample_limit: int = 1
    queue_order: str = 'max'
    goal_threshold: float = 0.0
    sort_roadmap_func: str = ''
    roadmap_goal_bias: float = 0.3
    roadmap_k_neighbors: int = 10
    roadmap_connection_radius: float = 1.0
    roadmap_max_vertices: int = 2000
    segment_resolution: float = 0.05
    ik_max_iterations: int = 100
    ik_damping: float = 0.05
    ik_step: float = 1.0
    seed: int = 0

    def __post_init__(self) -> None:
        if self.queue_order not in ('max', 'min'):
            raise ValueError(f"queue_order 必须是 'max' 或 'min'，得到 {self.queue_order!r}")
        if self.max_attempts < 1:
            raise ValueError('max_attempts 至少为 1')
        if not 0.0 <= self.invalid_warning_ratio <= 1.0:
            raise ValueError('invalid_warning_ratio 必须在 [0, 1] 内')

    # ── JSON 序列化 ──

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in dc_fields(self)}

    def to_json(self, filepath: str | Path) -> str:
        """保存到 JSON 文件，返回保存路径"""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        return str(filepath)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SamplerConfig':
        """从字典创建（忽略未知字段，缺失字段用默认值）"""
        valid_fields = {f.name for f in dc_fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in valid_fields})

    @classmethod
    def from_json(cls, filepath: str | Path) -> 'SamplerConfig':
        with open(Path(filepath), 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls.from_dict(data)
