"""Off-request execution of simulation and backtest runs with status tracking.

The engine functions are synchronous; this module is the calling layer's view
of a run: PENDING -> RUNNING -> COMPLETED | FAILED. Bookkeeping such as a
per-user count of active runs hangs off the ``on_transition`` callback rather
than living in the engine.
"""

import itertools
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TrackedRun:
    def __init__(self, run_id: int, label: str = ""):
        self.run_id = run_id
        self.label = label
        self.status = RunStatus.PENDING
        self.result: Any = None
        self.error: Optional[BaseException] = None
        self.future: Optional[Future] = None

    @property
    def done(self) -> bool:
        return self.status in (RunStatus.COMPLETED, RunStatus.FAILED)

    def wait(self, timeout: Optional[float] = None) -> Any:
        """Block until the run ends; re-raises the run's error if it failed."""
        return self.future.result(timeout=timeout)

    def __repr__(self):
        return f"TrackedRun(run_id={self.run_id}, label={self.label!r}, status={self.status.value})"


class RunTracker:
    """Thread pool that reports each run's status transitions.

    Runs share nothing but the pool: each engine call builds its own RNG and
    step list.
    """

    def __init__(self, max_workers: int = 4,
                 on_transition: Optional[Callable[[TrackedRun, RunStatus], None]] = None):
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pac-run")
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.on_transition = on_transition

    def _set(self, run: TrackedRun, status: RunStatus):
        run.status = status
        if self.on_transition is not None:
            self.on_transition(run, status)

    def _execute(self, run: TrackedRun, fn: Callable[..., Any], args, kwargs):
        self._set(run, RunStatus.RUNNING)
        try:
            run.result = fn(*args, **kwargs)
        except Exception as e:
            run.error = e
            logger.error("Run %d (%s) failed: %s", run.run_id, run.label, e)
            self._set(run, RunStatus.FAILED)
            raise
        self._set(run, RunStatus.COMPLETED)
        return run.result

    def submit(self, fn: Callable[..., Any], *args, label: str = "", **kwargs) -> TrackedRun:
        with self._lock:
            run = TrackedRun(next(self._ids), label)
        self._set(run, RunStatus.PENDING)
        run.future = self._pool.submit(self._execute, run, fn, args, kwargs)
        return run

    def shutdown(self, wait: bool = True):
        self._pool.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()
        return False
