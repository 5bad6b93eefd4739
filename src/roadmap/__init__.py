"""roadmap - 有效配置图、连通分量与碰撞检测"""

from .scene import Obstacle, Scene
from .collision import CollisionChecker, aabb_overlap
from .connectivity import UnionFind
from .roadmap import Roadmap, RoadmapVertex
from .growth import RoadmapGrower

__all__ = [
	"Obstacle",
	"Scene",
	"CollisionChecker",
	"aabb_overlap",
	"UnionFind",
	"Roadmap",
	"RoadmapVertex",
	"RoadmapGrower",
]
