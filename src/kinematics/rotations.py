"""
rotations.py - 姿态表示转换

roll/pitch/yaw 与四元数、旋转矩阵之间的转换。
约定与 tf ``Matrix3x3::getRPY`` 一致：固定轴 X-Y-Z 顺序，
R = Rz(yaw) · Ry(pitch) · Rx(roll)；四元数顺序为 (x, y, z, w)。
"""

import math
import numpy as np
from scipy.spatial.transform import Rotation


def wrap_angle(angle):
    """把角度归一化到 (-π, π]（支持标量与数组）"""
    wrapped = -((-np.asarray(angle, dtype=np.float64) + math.pi) % (2.0 * math.pi) - math.pi)
    if np.ndim(wrapped) == 0:
        return float(wrapped)
    return wrapped


def matrix_to_rpy(rotation: np.ndarray) -> np.ndarray:
    """旋转矩阵 → [roll, pitch, yaw]"""
    return Rotation.from_matrix(np.asarray(rotation, dtype=np.float64)).as_euler('xyz')


def quaternion_to_rpy(quaternion) -> np.ndarray:
    """四元数 (x, y, z, w) → [roll, pitch, yaw]"""
    return Rotation.from_quat(np.asarray(quaternion, dtype=np.float64)).as_euler('xyz')


def rpy_to_quaternion(roll: float, pitch: float, yaw: float) -> np.ndarray:
    """[roll, pitch, yaw] → 四元数 (x, y, z, w)"""
    return Rotation.from_euler('xyz', [roll, pitch, yaw]).as_quat()


def rpy_to_matrix(roll: float, pitch: float, yaw: float) -> np.ndarray:
    return Rotation.from_euler('xyz', [roll, pitch, yaw]).as_matrix()


def random_quaternion(rng: np.random.Generator) -> np.ndarray:
    """SO(3) 上均匀分布的随机四元数 (x, y, z, w)

    Shoemake 方法，与 SE3 状态空间的均匀旋转采样等价。
    """
    u1, u2, u3 = rng.uniform(0.0, 1.0, size=3)
    a = math.sqrt(1.0 - u1)
    b = math.sqrt(u1)
    return np.array([
        a * math.sin(2.0 * math.pi * u2),
        a * math.cos(2.0 * math.pi * u2),
        b * math.sin(2.0 * math.pi * u3),
        b * math.cos(2.0 * math.pi * u3),
    ], dtype=np.float64)


def rpy_difference(rpy_a, rpy_b) -> np.ndarray:
    """逐轴角度差 (a - b)，归一化到 (-π, π]"""
    return wrap_angle(np.asarray(rpy_a, dtype=np.float64) - np.asarray(rpy_b, dtype=np.float64))

