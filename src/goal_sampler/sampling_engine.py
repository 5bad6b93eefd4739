"""
goal_sampler/sampling_engine.py - 后台采样引擎

状态机 IDLE → SAMPLING → STOPPED。start() 启动守护线程，循环调用候选源，
直到收到停止请求、主搜索已有解，或候选数达到上限。
取消只在两次迭代之间生效；候选源抛出的异常被记录并终止循环，
不会传播到宿主线程。
"""

import enum
import logging
import threading
from typing import Callable, Optional

from .interfaces import CandidateSource, HostSearchState, SamplingContext, SearchState

logger = logging.getLogger(__name__)


class SamplerState(enum.Enum):
    IDLE = "idle"
    SAMPLING = "sampling"
    STOPPED = "stopped"


class SamplingEngine:
    """后台采样循环

    Args:
        source: 候选源 ``source(context) -> bool``
        host_state: 宿主搜索状态（``has_solution()``）
        state_count: 当前候选数查询
        max_sampled_goals: 候选数上限，达到后停止 (0 = 不限)
        name: 线程名
    """

    def __init__(
        self,
        source: CandidateSource,
        host_state: Optional[HostSearchState] = None,
        state_count: Optional[Callable[[], int]] = None,
        max_sampled_goals: int = 0,
        name: str = "goal-sampler",
    ) -> None:
        self.source = source
        self.host_state = host_state if host_state is not None else SearchState()
        self._state_count = state_count or (lambda: 0)
        self.max_sampled_goals = max_sampled_goals
        self.name = name

        self._state = SamplerState.IDLE
        self._attempts = 0
        self._stop_event = threading.Event()
        self._stopped = threading.Event()
        self._stopped.set()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> SamplerState:
        return self._state

    def is_sampling(self) -> bool:
        return self._state is SamplerState.SAMPLING

    def sampling_attempts_count(self) -> int:
        return self._attempts

    def start(self) -> None:
        """IDLE/STOPPED → SAMPLING；已在采样时无操作"""
        with self._lock:
            if self._state is SamplerState.SAMPLING:
                return
            previous = self._thread
        # 上一轮线程可能仍在退出
        if previous is not None and previous is not threading.current_thread():
            previous.join()
        with self._lock:
            if self._state is SamplerState.SAMPLING:
                return
            self._stop_event.clear()
            self._stopped.clear()
            self._state = SamplerState.SAMPLING
            self._thread = threading.Thread(
                target=self._run, name=self.name, daemon=True)
            self._thread.start()
        logger.info("目标采样已启动")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """请求停止并等待采样线程退出"""
        self._stop_event.set()
        with self._lock:
            thread = self._thread
            if self._state is SamplerState.SAMPLING:
                self._state = SamplerState.STOPPED
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("采样线程在 %.1fs 内未退出", timeout)

    def clear(self) -> None:
        """停止并丢弃引擎状态（迭代计数）"""
        self.stop()
        self._attempts = 0

    def wait_until_stopped(self, timeout: Optional[float] = None) -> bool:
        """阻塞到采样循环结束，返回是否已结束"""
        return self._stopped.wait(timeout)

    def _should_continue(self) -> bool:
        if self._stop_event.is_set():
            return False
        if self.host_state.has_solution():
            logger.info("主搜索已找到解，停止目标采样")
            return False
        if 0 < self.max_sampled_goals <= self._state_count():
            logger.info("目标候选数达到上限 %d，停止采样", self.max_sampled_goals)
            return False
        return True

    def _run(self) -> None:
        try:
            while self._should_continue():
                context = SamplingContext(
                    host_state=self.host_state,
                    is_sampling=lambda: not self._stop_event.is_set(),
                    attempts_count=self._attempts,
                    state_count=self._state_count,
                )
                self.source(context)
                self._attempts += 1
        except Exception:
            logger.exception("目标采样线程异常退出")
        finally:
            with self._lock:
                if self._thread is threading.current_thread():
                    self._state = SamplerState.STOPPED
            self._stopped.set()
            logger.info("目标采样结束: %d 次迭代, %d 个候选",
                        self._attempts, self._state_count())
