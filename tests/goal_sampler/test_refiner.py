"""
test_refiner.py - roadmap-based solution refinement and sort functions.
"""

import numpy as np
import pytest

from goal_sampler import (
    SolutionPath,
    SolutionRefiner,
    WorkspaceGoalRegion,
    available_sort_functions,
    get_sort_function,
    goal_region_box,
    goal_region_centroid,
)
from roadmap import Roadmap


def _q(x, y, z):
    return np.array([x, y, z, 0.0, 0.0, 0.0])


@pytest.fixture
def abc_roadmap():
    """A (terminal) - M - B connected; C closest to the centroid but isolated."""
    rm = Roadmap()
    ids = {
        'A': rm.add_vertex(_q(0.0, 0.0, 0.0)),
        'M': rm.add_vertex(_q(0.2, 0.2, 0.2)),
        'B': rm.add_vertex(_q(0.5, 0.5, 0.3)),
        'C': rm.add_vertex(_q(0.5, 0.5, 0.5)),
    }
    rm.add_edge(ids['A'], ids['M'])
    rm.add_edge(ids['M'], ids['B'])
    return rm, ids


class TestSolutionRefiner:

    def test_selects_best_vertex_in_component(self, point_robot, unit_region, abc_roadmap):
        rm, ids = abc_roadmap
        refiner = SolutionRefiner(rm, point_robot, [unit_region])
        path = SolutionPath([_q(-1.0, 0.0, 0.0), _q(0.0, 0.0, 0.0)])
        assert refiner.improve(path) is True
        assert len(path) == 4
        np.testing.assert_allclose(path[2], _q(0.2, 0.2, 0.2))
        np.testing.assert_allclose(path.terminal, _q(0.5, 0.5, 0.3))
        assert path.terminal_vertex == ids['B']

    def test_prefix_untouched(self, point_robot, unit_region, abc_roadmap):
        rm, _ = abc_roadmap
        refiner = SolutionRefiner(rm, point_robot, [unit_region])
        start = _q(-1.0, 0.0, 0.0)
        path = SolutionPath([start, _q(0.0, 0.0, 0.0)])
        refiner.improve(path)
        np.testing.assert_array_equal(path[0], start)
        np.testing.assert_array_equal(path[1], _q(0.0, 0.0, 0.0))

    def test_terminal_not_in_roadmap(self, point_robot, unit_region, abc_roadmap):
        rm, _ = abc_roadmap
        refiner = SolutionRefiner(rm, point_robot, [unit_region])
        path = SolutionPath([_q(0.0, 0.0, 0.01)])
        assert refiner.improve(path) is False
        assert len(path) == 1

    def test_uses_recorded_terminal_vertex(self, point_robot, unit_region, abc_roadmap):
        rm, ids = abc_roadmap
        refiner = SolutionRefiner(rm, point_robot, [unit_region])
        path = SolutionPath([_q(0.0, 0.0, 0.001)], terminal_vertex=ids['A'])
        assert refiner.improve(path) is True
        assert path.terminal_vertex == ids['B']

    def test_mismatched_recorded_vertex_falls_back_to_lookup(
            self, point_robot, unit_region, abc_roadmap):
        rm, ids = abc_roadmap
        refiner = SolutionRefiner(rm, point_robot, [unit_region])
        path = SolutionPath([_q(0.0, 0.0, 0.0)], terminal_vertex=ids['C'])
        assert refiner.improve(path) is True
        np.testing.assert_allclose(path[1], _q(0.2, 0.2, 0.2))
        np.testing.assert_allclose(path.terminal, _q(0.5, 0.5, 0.3))

    def test_states_extended_by_host(self, point_robot, unit_region, abc_roadmap):
        rm, ids = abc_roadmap
        refiner = SolutionRefiner(rm, point_robot, [unit_region])
        path = SolutionPath([_q(0.0, 0.0, 0.0)], terminal_vertex=ids['A'])
        path.states.append(_q(1.9, 1.9, 1.9))
        assert refiner.improve(path) is False
        assert len(path) == 2
        np.testing.assert_array_equal(path.terminal, _q(1.9, 1.9, 1.9))

    def test_recorded_vertex_stale_after_roadmap_clear(
            self, point_robot, unit_region, abc_roadmap):
        rm, ids = abc_roadmap
        refiner = SolutionRefiner(rm, point_robot, [unit_region])
        path = SolutionPath([_q(-1.0, 0.0, 0.0), _q(0.0, 0.0, 0.0)])
        assert refiner.improve(path) is True
        assert len(path) == 4
        assert path.terminal_vertex == ids['B']

        rm.clear()
        a = rm.add_vertex(_q(-2.0, -2.0, -2.0))
        b = rm.add_vertex(_q(-1.9, -1.9, -1.9))
        c = rm.add_vertex(_q(0.1, 0.1, 0.1))
        d = rm.add_vertex(_q(0.5, 0.5, 0.5))
        rm.add_edge(a, b)
        rm.add_edge(c, d)
        assert c == ids['B']

        assert refiner.improve(path) is False
        assert len(path) == 4
        np.testing.assert_allclose(path.terminal, _q(0.5, 0.5, 0.3))

    def test_duplicate_of_terminal_is_not_an_improvement(self, point_robot, unit_region):
        rm = Roadmap()
        twin = rm.add_vertex(_q(0.5, 0.5, 0.5))
        terminal = rm.add_vertex(_q(0.5, 0.5, 0.5))
        rm.add_edge(twin, terminal)
        refiner = SolutionRefiner(rm, point_robot, [unit_region])
        path = SolutionPath([_q(0.5, 0.5, 0.5)], terminal_vertex=terminal)
        assert refiner.improve(path) is False
        assert len(path) == 1

    def test_terminal_already_best(self, point_robot, unit_region, abc_roadmap):
        rm, ids = abc_roadmap
        refiner = SolutionRefiner(rm, point_robot, [unit_region])
        path = SolutionPath([_q(0.5, 0.5, 0.5)])
        assert refiner.improve(path) is False
        assert len(path) == 1

    def test_second_improve_is_noop(self, point_robot, unit_region, abc_roadmap):
        rm, _ = abc_roadmap
        refiner = SolutionRefiner(rm, point_robot, [unit_region])
        path = SolutionPath([_q(0.0, 0.0, 0.0)])
        assert refiner.improve(path) is True
        assert refiner.improve(path) is False

    def test_empty_roadmap(self, point_robot, unit_region):
        refiner = SolutionRefiner(Roadmap(), point_robot, [unit_region])
        assert refiner.improve(SolutionPath([_q(0.0, 0.0, 0.0)])) is False

    def test_empty_path(self, point_robot, unit_region, abc_roadmap):
        rm, _ = abc_roadmap
        refiner = SolutionRefiner(rm, point_robot, [unit_region])
        assert refiner.improve(SolutionPath()) is False

    def test_unknown_sort_function(self, point_robot, unit_region):
        with pytest.raises(ValueError):
            SolutionRefiner(Roadmap(), point_robot, [unit_region], 'closest_to_moon')

    def test_box_sort_function(self, point_robot, unit_region, abc_roadmap):
        rm, ids = abc_roadmap
        refiner = SolutionRefiner(rm, point_robot, [unit_region], 'goal_region_box')
        path = SolutionPath([_q(0.0, 0.0, 0.0)])
        # every vertex is inside the box; ties resolve by vertex id
        assert refiner.improve(path) is False


class TestSortFunctions:

    def test_registry(self):
        assert {'goal_region_centroid', 'goal_region_box'} <= set(available_sort_functions())
        assert get_sort_function('goal_region_box') is goal_region_box

    def test_unknown(self):
        with pytest.raises(ValueError):
            get_sort_function('')

    def test_centroid_min_over_regions(self, unit_region):
        far = WorkspaceGoalRegion(x=(4, 6), y=(0, 0), z=(0, 0))
        assert goal_region_centroid(np.array([5.0, 0.0, 0.0]), [unit_region, far]) == 0.0
        assert goal_region_centroid(np.array([0.5, 0.5, 1.5]), [unit_region]) == \
            pytest.approx(1.0)

    def test_box_distance(self, unit_region):
        assert goal_region_box(np.array([0.3, 0.3, 0.3]), [unit_region]) == 0.0
        assert goal_region_box(np.array([2.0, 0.5, 0.5]), [unit_region]) == pytest.approx(1.0)

    def test_no_regions_is_inf(self):
        assert goal_region_centroid(np.zeros(3), []) == float('inf')
