"""goal_sampler - 工作空间目标区域采样、目标队列与解改进"""

from .models import (
	WorkspaceGoalRegion,
	WeightedGoal,
	SolutionPath,
	SamplerConfig,
	load_regions,
)
from .goal_queue import WeightedGoalQueue
from .interfaces import (
	ConstraintEvaluation,
	SamplingContext,
	SearchState,
	ValidityChecker,
	ForwardKinematics,
	ConstraintEvaluator,
	ConstraintProjector,
	HostSearchState,
	CandidateSource,
)
from .constraints import (
	PoseConstraint,
	PoseConstraintSet,
	PoseConstraintSampler,
	ConstraintSamplerManager,
)
from .region_distance import RegionDistanceEvaluator
from .candidate_generator import CandidateGenerator
from .sampling_engine import SamplerState, SamplingEngine
from .sort_functions import (
	get_sort_function,
	register_sort_function,
	available_sort_functions,
	goal_region_centroid,
	goal_region_box,
)
from .refiner import SolutionRefiner
from .goal_region_sampler import GoalRegionSampler

__all__ = [
	"WorkspaceGoalRegion",
	"WeightedGoal",
	"SolutionPath",
	"SamplerConfig",
	"load_regions",
	"WeightedGoalQueue",
	"ConstraintEvaluation",
	"SamplingContext",
	"SearchState",
	"ValidityChecker",
	"ForwardKinematics",
	"ConstraintEvaluator",
	"ConstraintProjector",
	"HostSearchState",
	"CandidateSource",
	"PoseConstraint",
	"PoseConstraintSet",
	"PoseConstraintSampler",
	"ConstraintSamplerManager",
	"RegionDistanceEvaluator",
	"CandidateGenerator",
	"SamplerState",
	"SamplingEngine",
	"get_sort_function",
	"register_sort_function",
	"available_sort_functions",
	"goal_region_centroid",
	"goal_region_box",
	"SolutionRefiner",
	"GoalRegionSampler",
]
