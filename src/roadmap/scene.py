"""
roadmap/scene.py - 障碍物与场景管理

管理工作空间中的 AABB 障碍物集合。场景被采样线程、roadmap 生长线程
和主搜索同时读取，修改与快照读取由同一把锁保护。
"""

import json
import logging
import threading
from dataclasses import dataclass
from typing import List, Dict, Any, Optional

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class Obstacle:
    """AABB 障碍物

    Attributes:
        min_point: AABB 最小角点 [x, y, z]
        max_point: AABB 最大角点 [x, y, z]
        name: 障碍物名称（可选）
    """
    min_point: np.ndarray
    max_point: np.ndarray
    name: str = ""

    def __post_init__(self) -> None:
        self.min_point = np.asarray(self.min_point, dtype=np.float64)
        self.max_point = np.asarray(self.max_point, dtype=np.float64)
        if self.min_point.shape != self.max_point.shape:
            raise ValueError("min_point 和 max_point 维度不匹配")
        if np.any(self.min_point > self.max_point):
            raise ValueError(f"障碍物 '{self.name}' 的 min_point 大于 max_point")

    @property
    def center(self) -> np.ndarray:
        return (self.min_point + self.max_point) / 2.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'min': self.min_point.tolist(),
            'max': self.max_point.tolist(),
            'name': self.name,
        }


class Scene:
    """工作空间场景

    Example:
        >>> scene = Scene()
        >>> scene.add_obstacle([0.5, -0.3, 0], [0.8, 0.3, 0.5], name="桌子")
        >>> scene.n_obstacles
        1
    """

    def __init__(self) -> None:
        self._obstacles: List[Obstacle] = []
        self._lock = threading.Lock()

    @property
    def n_obstacles(self) -> int:
        return len(self._obstacles)

    def add_obstacle(self, min_point, max_point, name: str = "") -> Obstacle:
        """添加一个 AABB 障碍物

        Args:
            min_point: AABB 最小角点 [x, y, z] 或 [x, y]（2D 场景时 z 方向无限延伸）
            max_point: AABB 最大角点
            name: 障碍物名称

        Returns:
            创建的 Obstacle 实例
        """
        min_pt = np.array(min_point, dtype=np.float64)
        max_pt = np.array(max_point, dtype=np.float64)

        if min_pt.shape[0] == 2:
            min_pt = np.array([min_pt[0], min_pt[1], -1e3], dtype=np.float64)
            max_pt = np.array([max_pt[0], max_pt[1], 1e3], dtype=np.float64)

        with self._lock:
            if not name:
                name = f"obstacle_{len(self._obstacles)}"
            obs = Obstacle(min_point=min_pt, max_point=max_pt, name=name)
            self._obstacles.append(obs)
        logger.debug("添加障碍物 '%s': min=%s, max=%s", name,
                     min_pt.tolist(), max_pt.tolist())
        return obs

    def remove_obstacle(self, name: str) -> bool:
        """按名称移除障碍物，返回是否找到并移除"""
        with self._lock:
            for i, obs in enumerate(self._obstacles):
                if obs.name == name:
                    self._obstacles.pop(i)
                    return True
        return False

    def clear(self) -> None:
        with self._lock:
            self._obstacles.clear()

    def get_obstacles(self) -> List[Obstacle]:
        """获取所有障碍物（快照）"""
        with self._lock:
            return list(self._obstacles)

    def get_obstacle(self, name: str) -> Optional[Obstacle]:
        for obs in self.get_obstacles():
            if obs.name == name:
                return obs
        return None

    def to_json(self, filepath: str) -> None:
        """保存场景到 JSON 文件"""
        data = {'obstacles': [obs.to_dict() for obs in self.get_obstacles()]}
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, filepath: str) -> 'Scene':
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Scene':
        """从字典加载场景

        Args:
            data: {'obstacles': [{'min': [...], 'max': [...], 'name': ...}, ...]}
        """
        scene = cls()
        for item in data.get('obstacles', []):
            scene.add_obstacle(
                min_point=item['min'],
                max_point=item['max'],
                name=item.get('name', ''),
            )
        return scene

    def __repr__(self) -> str:
        return f"Scene(n_obstacles={self.n_obstacles})"
