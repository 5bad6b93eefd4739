"""
test_goal_queue.py - WeightedGoalQueue ordering, handles and locking.
"""

import threading

import numpy as np
import pytest

from goal_sampler import WeightedGoalQueue


def _filled(weights, order='max'):
    queue = WeightedGoalQueue(order)
    handles = [queue.insert(np.array([float(i)]), w) for i, w in enumerate(weights)]
    return queue, handles


class TestOrdering:

    def test_max_order(self):
        queue, _ = _filled([1.0, 3.0, 2.0])
        assert [queue.pop().weight for _ in range(3)] == [3.0, 2.0, 1.0]
        assert queue.pop() is None

    def test_min_order(self):
        queue, _ = _filled([1.0, 3.0, 2.0], order='min')
        assert [queue.pop().weight for _ in range(3)] == [1.0, 2.0, 3.0]

    def test_default_weight(self):
        queue = WeightedGoalQueue()
        h = queue.insert(np.zeros(3))
        assert queue.get(h).weight == 1.0

    def test_top_does_not_remove(self):
        queue, _ = _filled([1.0, 5.0])
        assert queue.top().weight == 5.0
        assert len(queue) == 2

    def test_empty(self):
        queue = WeightedGoalQueue()
        assert queue.top() is None
        assert not queue

    def test_bad_order(self):
        with pytest.raises(ValueError):
            WeightedGoalQueue('random')

    def test_matches_sorted_reference(self):
        rng = np.random.default_rng(11)
        queue = WeightedGoalQueue()
        reference = {}
        for _ in range(200):
            op = rng.integers(3)
            if op == 0 or not reference:
                w = float(rng.uniform())
                reference[queue.insert(np.zeros(1), w)] = w
            elif op == 1:
                h = list(reference)[int(rng.integers(len(reference)))]
                w = float(rng.uniform())
                queue.update(h, w)
                reference[h] = w
            else:
                h = list(reference)[int(rng.integers(len(reference)))]
                queue.remove(h)
                del reference[h]
            if reference:
                assert queue.top().weight == max(reference.values())
        popped = [queue.pop().weight for _ in range(len(queue))]
        assert popped == sorted(reference.values(), reverse=True)


class TestHandles:

    def test_update_reorders(self):
        queue, handles = _filled([1.0, 2.0, 3.0])
        queue.update(handles[0], 10.0)
        assert queue.top().handle == handles[0]
        queue.update(handles[0], 0.0)
        assert queue.top().handle == handles[2]

    def test_remove_arbitrary(self):
        queue, handles = _filled([4.0, 1.0, 3.0, 2.0])
        removed = queue.remove(handles[2])
        assert removed.weight == 3.0
        assert handles[2] not in queue
        assert [queue.pop().weight for _ in range(3)] == [4.0, 2.0, 1.0]

    def test_invalidated_handles_raise(self):
        queue, handles = _filled([1.0, 2.0])
        popped = queue.pop()
        with pytest.raises(KeyError):
            queue.update(popped.handle, 1.0)
        queue.clear()
        with pytest.raises(KeyError):
            queue.get(handles[0])

    def test_handles_not_reused(self):
        queue = WeightedGoalQueue()
        h1 = queue.insert(np.zeros(1))
        queue.pop()
        h2 = queue.insert(np.zeros(1))
        assert h1 != h2

    def test_states_snapshot(self):
        queue, _ = _filled([1.0, 2.0])
        states = queue.states()
        assert len(states) == 2
        np.testing.assert_array_equal(states[1], [1.0])


class TestNearestDistance:

    def test_empty_is_inf(self):
        assert WeightedGoalQueue().nearest_distance([0.0, 0.0]) == float('inf')

    def test_nearest(self):
        queue = WeightedGoalQueue()
        queue.insert(np.array([0.0, 0.0]))
        queue.insert(np.array([3.0, 4.0]))
        assert queue.nearest_distance([3.0, 3.0]) == pytest.approx(1.0)


class TestConcurrency:

    def test_concurrent_inserts(self):
        queue = WeightedGoalQueue()

        def worker(offset):
            for i in range(200):
                queue.insert(np.array([float(offset + i)]), float(i))

        threads = [threading.Thread(target=worker, args=(k * 1000,)) for k in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(queue) == 800
        assert len(set(queue.handles())) == 800
        weights = [queue.pop().weight for _ in range(800)]
        assert weights == sorted(weights, reverse=True)
