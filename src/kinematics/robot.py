"""
robot.py - 机器人运动学模型

基于DH参数的串联机械臂运动学计算。
提供正运动学、连杆位置、末端位姿以及关节限制，
供目标区域采样器（末端位姿评估）和碰撞检测（连杆位置）共用。
"""

import math
import json
import logging
import pathlib
import numpy as np
from typing import List, Dict, Tuple, Optional, Set
from functools import cached_property

logger = logging.getLogger(__name__)

_CONFIGS_DIR = pathlib.Path(__file__).parent / 'configs'


class Robot:
    """基于DH参数的串联机械臂

    使用修正DH约定 (Modified DH Convention)。
    实现 ``ForwardKinematics`` 接口：``end_effector_pose(q)``、
    ``joint_limits`` 与 ``n_joints``。

    Example:
        >>> dh = [
        ...     {"alpha": 0, "a": 0, "d": 0.333, "theta": 0, "type": "revolute"},
        ...     {"alpha": -math.pi/2, "a": 0, "d": 0, "theta": 0, "type": "revolute"},
        ... ]
        >>> robot = Robot(dh, name="MyRobot")
        >>> position, rotation = robot.end_effector_pose([0.1, 0.2])

    Attributes:
        name: 机器人名称
        joint_limits: 关节限制列表，每个元素为 (lo, hi)
        tool_frame: 末端工具坐标系 DH 参数 {alpha, a, d}（可选）
    """

    def __init__(
        self,
        dh_params: List[Dict],
        name: str = "Robot",
        joint_limits: Optional[List[Tuple[float, float]]] = None,
        tool_frame: Optional[Dict] = None,
    ):
        """初始化机器人

        Args:
            dh_params: DH参数列表，每个元素是包含以下键的字典：
                - alpha: 连杆扭转角 (rad)
                - a: 连杆长度
                - d: 连杆偏移
                - theta: 关节角偏移 (rad)
                - type: 'revolute' 或 'prismatic'
            name: 机器人名称，默认 "Robot"
            joint_limits: 关节限制列表 [(lo, hi), ...]，默认每个关节 [-π, π]
            tool_frame: 末端工具坐标系 DH 参数 {alpha, a, d}，默认 None。
                        Modified DH 中最后一行 DH 的平移在末端帧中不可见，
                        用 tool_frame 表示夹爪等固定末端连杆。
        """
        self.name = name
        self.dh_params = [self._normalize_param(p) for p in dh_params]
        self.n_joints = len(self.dh_params)
        if joint_limits is None:
            joint_limits = [(-math.pi, math.pi)] * self.n_joints
        if len(joint_limits) != self.n_joints:
            raise ValueError(
                f'关节限制数量 ({len(joint_limits)}) 与关节数 ({self.n_joints}) 不一致')
        self.joint_limits = [(float(lo), float(hi)) for lo, hi in joint_limits]
        for i, (lo, hi) in enumerate(self.joint_limits):
            if lo > hi:
                raise ValueError(f'关节 {i} 的限制无效: lo={lo} > hi={hi}')

        self.tool_frame: Optional[Dict] = None
        if tool_frame is not None:
            self.tool_frame = {
                'alpha': float(tool_frame.get('alpha', 0.0)),
                'a': float(tool_frame.get('a', 0.0)),
                'd': float(tool_frame.get('d', 0.0)),
            }

    @staticmethod
    def _normalize_param(p: Dict) -> Dict:
        """标准化DH参数"""
        param = {
            'alpha': float(p.get('alpha', 0.0)),
            'a': float(p.get('a', 0.0)),
            'd': float(p.get('d', 0.0)) if p.get('d') is not None else 0.0,
            'theta': float(p.get('theta', 0.0)) if p.get('theta') is not None else 0.0,
            'type': p.get('type', 'revolute')
        }
        if param['type'] not in ('revolute', 'prismatic'):
            raise ValueError("关节类型必须是 'revolute' 或 'prismatic'")
        return param

    @classmethod
    def from_json(cls, filepath: str) -> 'Robot':
        """从JSON配置文件加载机器人

        格式::

            {
                "name": "Panda",
                "dh_params": [...],
                "joint_limits": [[lo, hi], ...],
                "tool_frame": {"alpha": 0, "a": 0, "d": 0.107}
            }
        """
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls.from_dict(data, source=str(filepath))

    @classmethod
    def from_dict(cls, data: Dict, source: str = '<dict>') -> 'Robot':
        """从字典构建 Robot"""
        if not isinstance(data, dict):
            raise ValueError(f'{source}: 机器人配置必须是 dict')

        dh_list = data.get('dh_params') or data.get('dh')
        if dh_list is None:
            raise ValueError(f'{source}: 缺少 "dh_params" 或 "dh" 字段')

        joint_limits = (
            [tuple(lim) for lim in data['joint_limits']]
            if 'joint_limits' in data else None
        )
        return cls(
            dh_params=dh_list,
            name=data.get('name', 'Robot'),
            joint_limits=joint_limits,
            tool_frame=data.get('tool_frame', None),
        )

    @classmethod
    def from_config(cls, name: str) -> 'Robot':
        """按名称加载内置机器人配置

        在 ``configs/`` 目录中查找 ``<name>.json`` 文件，名称不区分大小写。

        Raises:
            FileNotFoundError: 找不到指定配置文件
        """
        target = name.lower()
        for f in _CONFIGS_DIR.iterdir():
            if f.suffix == '.json' and f.stem.lower() == target:
                return cls.from_json(str(f))
        raise FileNotFoundError(
            f'找不到配置 "{name}"。可用配置: {cls.list_configs()}'
        )

    @staticmethod
    def list_configs() -> List[str]:
        """列出所有可用的内置机器人配置名称"""
        if not _CONFIGS_DIR.exists():
            return []
        return sorted(f.stem for f in _CONFIGS_DIR.glob('*.json'))

    @staticmethod
    def dh_transform(alpha: float, a: float, d: float, theta: float) -> np.ndarray:
        """
        计算单个DH变换矩阵 (Modified DH Convention)

        Args:
            alpha: 连杆扭转角
            a: 连杆长度
            d: 连杆偏移
            theta: 关节角

        Returns:
            4x4齐次变换矩阵
        """
        ca, sa = math.cos(alpha), math.sin(alpha)
        ct, st = math.cos(theta), math.sin(theta)

        return np.array([
            [ct, -st, 0.0, a],
            [st * ca, ct * ca, -sa, -d * sa],
            [st * sa, ct * sa, ca, d * ca],
            [0.0, 0.0, 0.0, 1.0]
        ], dtype=float)

    def forward_kinematics(self, joint_values, return_all: bool = False):
        """
        正向运动学计算

        Args:
            joint_values: 关节值序列
            return_all: 是否返回所有连杆的变换矩阵

        Returns:
            如果return_all=False: 末端执行器的4x4变换矩阵
            如果return_all=True: 所有连杆变换矩阵的列表 [T0, T1, ..., Tn]
        """
        if len(joint_values) != self.n_joints:
            raise ValueError(f'期望 {self.n_joints} 个关节值，得到 {len(joint_values)}')

        transforms = [np.eye(4)]
        T = np.eye(4)

        for param, q in zip(self.dh_params, joint_values):
            if param['type'] == 'revolute':
                d = param['d']
                theta = float(q) + param['theta']
            else:  # prismatic
                d = param['d'] + float(q)
                theta = param['theta']

            T = T @ self.dh_transform(param['alpha'], param['a'], d, theta)
            transforms.append(T.copy())

        # 工具坐标系（可选末端固定连杆）
        if self.tool_frame is not None:
            A_tool = self.dh_transform(
                self.tool_frame['alpha'],
                self.tool_frame['a'],
                self.tool_frame['d'],
                0.0,
            )
            T = T @ A_tool
            transforms.append(T.copy())

        return transforms if return_all else transforms[-1]

    def get_link_positions(self, joint_values) -> List[np.ndarray]:
        """
        获取所有连杆端点的世界坐标

        Returns:
            位置列表 [p0, p1, ..., pn]，每个pi是(3,)数组
        """
        transforms = self.forward_kinematics(joint_values, return_all=True)
        return [T[:3, 3] for T in transforms]

    def end_effector_pose(self, joint_values) -> Tuple[np.ndarray, np.ndarray]:
        """
        获取末端执行器位姿

        Returns:
            (position, rotation_matrix): 位置(3,)和旋转矩阵(3,3)
        """
        T = self.forward_kinematics(joint_values)
        return T[:3, 3].copy(), T[:3, :3].copy()

    @property
    def lower_limits(self) -> np.ndarray:
        return np.array([lo for lo, _ in self.joint_limits], dtype=np.float64)

    @property
    def upper_limits(self) -> np.ndarray:
        return np.array([hi for _, hi in self.joint_limits], dtype=np.float64)

    @cached_property
    def zero_length_links(self) -> Set[int]:
        """识别零长度连杆（a=0 且 d=0 的转动连杆）

        移动关节的连杆长度随关节值变化，不计入。

        Returns:
            零长度连杆索引集合 (1-based)
        """
        result = set()
        for i, param in enumerate(self.dh_params):
            if param['type'] != 'revolute':
                continue
            if abs(param['a']) < 1e-10 and abs(param['d']) < 1e-10:
                result.add(i + 1)
        if self.tool_frame is not None:
            if abs(self.tool_frame['a']) < 1e-10 and abs(self.tool_frame['d']) < 1e-10:
                result.add(self.n_joints + 1)
        return result


def load_robot(name: str) -> Robot:
    """按名称加载内置机器人配置

    这是 ``Robot.from_config(name)`` 的快捷方式。

    Example:
        >>> robot = load_robot('panda')
        >>> robot.name
        'Panda'
    """
    return Robot.from_config(name)
