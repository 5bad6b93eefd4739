"""kinematics - 串联机械臂正运动学与姿态工具"""

from .robot import Robot, load_robot
from .rotations import (
    wrap_angle,
    matrix_to_rpy,
    quaternion_to_rpy,
    rpy_to_quaternion,
    rpy_to_matrix,
    random_quaternion,
    rpy_difference,
)

__all__ = [
    'Robot',
    'load_robot',
    'wrap_angle',
    'matrix_to_rpy',
    'quaternion_to_rpy',
    'rpy_to_quaternion',
    'rpy_to_matrix',
    'random_quaternion',
    'rpy_difference',
]
