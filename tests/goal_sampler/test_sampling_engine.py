"""
test_sampling_engine.py - background sampling lifecycle.
"""

import threading
import time

import pytest

from goal_sampler import SamplerState, SamplingEngine, SearchState


class Source:
    """Candidate source that 'produces' one candidate per call."""

    def __init__(self, delay=0.001):
        self.delay = delay
        self.count = 0
        self.contexts = []
        self.lock = threading.Lock()

    def __call__(self, context):
        time.sleep(self.delay)
        with self.lock:
            self.count += 1
            if len(self.contexts) < 5:
                self.contexts.append(context)
        return True

    def state_count(self):
        with self.lock:
            return self.count


def _wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while not predicate() and time.time() < deadline:
        time.sleep(0.005)
    return predicate()


class TestLifecycle:

    def test_initial_state(self):
        engine = SamplingEngine(Source())
        assert engine.state is SamplerState.IDLE
        assert not engine.is_sampling()
        assert engine.sampling_attempts_count() == 0

    def test_start_stop(self):
        source = Source()
        engine = SamplingEngine(source, state_count=source.state_count)
        engine.start()
        assert engine.is_sampling()
        assert _wait_for(lambda: engine.sampling_attempts_count() >= 3)
        engine.stop()
        assert engine.state is SamplerState.STOPPED
        assert not engine.is_sampling()
        assert engine.wait_until_stopped(1.0)
        n = engine.sampling_attempts_count()
        time.sleep(0.05)
        assert engine.sampling_attempts_count() == n

    def test_start_is_reentrant(self):
        engine = SamplingEngine(Source())
        engine.start()
        thread = engine._thread
        engine.start()
        assert engine._thread is thread
        engine.stop()

    def test_restart_after_stop(self):
        source = Source()
        engine = SamplingEngine(source)
        engine.start()
        engine.stop()
        before = engine.sampling_attempts_count()
        engine.start()
        assert _wait_for(lambda: engine.sampling_attempts_count() > before)
        engine.stop()

    def test_clear_resets_counter(self):
        engine = SamplingEngine(Source())
        engine.start()
        _wait_for(lambda: engine.sampling_attempts_count() > 0)
        engine.clear()
        assert engine.sampling_attempts_count() == 0
        assert engine.state is SamplerState.STOPPED


class TestTermination:

    def test_stops_when_host_solved(self):
        host = SearchState()
        engine = SamplingEngine(Source(), host_state=host)
        engine.start()
        host.mark_solved()
        assert engine.wait_until_stopped(5.0)
        assert engine.state is SamplerState.STOPPED

    def test_does_not_start_loop_when_already_solved(self):
        host = SearchState()
        host.mark_solved()
        source = Source()
        engine = SamplingEngine(source, host_state=host)
        engine.start()
        assert engine.wait_until_stopped(5.0)
        assert source.count == 0

    def test_max_sampled_goals(self):
        source = Source()
        engine = SamplingEngine(source, state_count=source.state_count, max_sampled_goals=5)
        engine.start()
        assert engine.wait_until_stopped(5.0)
        assert source.count == 5

    def test_exception_stops_loop(self, caplog):
        def broken(context):
            raise RuntimeError("source failure")

        engine = SamplingEngine(broken)
        engine.start()
        assert engine.wait_until_stopped(5.0)
        assert engine.state is SamplerState.STOPPED
        assert "目标采样线程异常退出" in caplog.text


class TestContext:

    def test_context_reflects_engine(self):
        source = Source()
        engine = SamplingEngine(source, state_count=source.state_count)
        engine.start()
        _wait_for(lambda: len(source.contexts) >= 2)
        engine.stop()
        first, second = source.contexts[:2]
        assert first.sampling_attempts_count() == 0
        assert second.sampling_attempts_count() == 1
        assert not first.has_solution()
        # after stop the context reports that sampling has ended
        assert not first.is_sampling()
