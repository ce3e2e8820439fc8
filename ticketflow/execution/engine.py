# ticketflow/execution/engine.py
import logging
from concurrent.futures import CancelledError, Executor, Future
from functools import partial
from threading import RLock
from typing import Callable, Dict, List, Optional

from ticketflow.common.exceptions import (
    SchedulerStoppedError,
    TaskAlreadyRunningError,
    TaskExecutionError,
    TaskTimeoutError,
)
from ticketflow.common.result import TaskResult
from ticketflow.common.task import Task
from ticketflow.server.registry import TaskRegistry

logger = logging.getLogger(__name__)


class ExecutionEngine:
    """
    Runs tasks on one of two executors and keeps the latest result per task.

    Every execution, whether fired by a timer or requested on demand, goes through
    the same running-handle map. A task id therefore never has two executions in
    flight: a timer fire that finds one is skipped, and an on-demand request that
    finds one gets the existing future back.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        periodic_executor: Executor,
        on_demand_executor: Executor,
    ):
        self.registry = registry
        self._periodic = periodic_executor
        self._on_demand = on_demand_executor
        self._last_results: Dict[str, TaskResult] = {}
        self._running: Dict[str, Future] = {}
        self._lock = RLock()

    # --- Scheduled path ---

    def submit_scheduled(self, task: Task) -> Optional[Future]:
        """Hand a timer fire to the periodic pool. Returns None when the fire is skipped."""
        with self._lock:
            if self._in_flight(task.task_id) is not None:
                logger.warning(
                    "Task %s is still running, skipping scheduled fire", task.task_id
                )
                return None
            return self._submit(self._periodic, task, self.run_scheduled)

    def run_scheduled(self, task: Task) -> Optional[TaskResult]:
        # Never raises: an exception escaping here would be lost in the pool and
        # the next fire must still happen.
        try:
            result = task.execute()
            self._store(task.task_id, result)
            return result
        except Exception:
            logger.exception("Unexpected error executing task %s", task.task_id)
            return None

    # --- On-demand path ---

    def run_on_demand(self, task_id: str, reject_if_running: bool = False) -> Future:
        task = self.registry.require(task_id)
        with self._lock:
            existing = self._in_flight(task_id)
            if existing is not None:
                if reject_if_running:
                    raise TaskAlreadyRunningError(task_id)
                logger.warning(
                    "Task %s is already running, returning existing handle", task_id
                )
                return existing
            logger.info("Running task %s on-demand", task_id)
            return self._submit(self._on_demand, task, self._execute_on_demand)

    def run_on_demand_sync(
        self, task_id: str, timeout_seconds: float, reject_if_running: bool = False
    ) -> TaskResult:
        future = self.run_on_demand(task_id, reject_if_running=reject_if_running)
        try:
            result = future.result(timeout=timeout_seconds)
        except CancelledError:
            raise TaskExecutionError(task_id, "execution was cancelled") from None
        except TimeoutError as e:
            if not future.done():
                # Leave the execution alone; its result still lands in last results.
                raise TaskTimeoutError(task_id, timeout_seconds) from None
            raise TaskExecutionError(task_id, str(e)) from e
        except Exception as e:
            raise TaskExecutionError(task_id, str(e) or type(e).__name__) from e

        if result is None:
            raise TaskExecutionError(task_id, "execution produced no result")
        return result

    def _execute_on_demand(self, task: Task) -> TaskResult:
        result = task.execute()
        self._store(task.task_id, result)
        return result

    # --- Queries ---

    def get_last_result(self, task_id: str) -> Optional[TaskResult]:
        with self._lock:
            return self._last_results.get(task_id)

    def is_running(self, task_id: str) -> bool:
        with self._lock:
            return self._in_flight(task_id) is not None

    def in_flight(self) -> List[Future]:
        with self._lock:
            return [f for f in self._running.values() if not f.done()]

    # --- Internals ---

    def _store(self, task_id: str, result: TaskResult) -> None:
        with self._lock:
            self._last_results[task_id] = result

    def _in_flight(self, task_id: str) -> Optional[Future]:
        future = self._running.get(task_id)
        if future is not None and not future.done():
            return future
        return None

    def _submit(
        self, executor: Executor, task: Task, fn: Callable[[Task], Optional[TaskResult]]
    ) -> Future:
        try:
            future = executor.submit(fn, task)
        except RuntimeError as e:
            raise SchedulerStoppedError(
                f"Cannot run task {task.task_id}: executor has been shut down"
            ) from e
        self._running[task.task_id] = future
        future.add_done_callback(partial(self._clear_running, task.task_id))
        return future

    def _clear_running(self, task_id: str, future: Future) -> None:
        with self._lock:
            if self._running.get(task_id) is future:
                del self._running[task_id]
