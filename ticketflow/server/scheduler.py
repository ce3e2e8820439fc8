# ticketflow/server/scheduler.py
import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from threading import Event, RLock, Thread
from typing import Dict, List, Optional

from ticketflow.common.exceptions import SchedulerStoppedError
from ticketflow.common.result import TaskResult
from ticketflow.common.task import Task, TaskCategory
from ticketflow.execution.engine import ExecutionEngine
from ticketflow.server.clock import Clock, SystemClock
from ticketflow.server.registry import TaskRegistry

logger = logging.getLogger(__name__)

SECONDS_PER_MINUTE = 60
DEFAULT_PERIODIC_POOL_SIZE = 4
DEFAULT_ON_DEMAND_POOL_SIZE = 2
DEFAULT_SHUTDOWN_GRACE_SECONDS = 30.0


@dataclass
class ScheduledHandle:
    """A fixed-rate timer for one task. Fire times are measured from ``first_fire_at``."""

    task_id: str
    first_fire_at: float
    interval_seconds: float
    next_fire_at: float
    fire_count: int = 0
    cancelled: bool = False

    def advance(self, now: float) -> None:
        # Periods missed while the timer thread was busy collapse into one fire.
        missed = int((now - self.next_fire_at) // self.interval_seconds)
        self.next_fire_at += (missed + 1) * self.interval_seconds
        self.fire_count += 1


class Scheduler:
    """
    Fires registered tasks on fixed-rate timers and runs them on demand.

    The scheduler owns two disjoint thread pools: one for timer fires and one for
    on-demand runs, so neither kind of work can starve the other. A single timer
    thread wakes up when the next handle is due and hands the fire to the
    execution engine. Timer dispatch, cancel and reschedule all take the same lock,
    so once ``cancel_scheduled_task`` or ``reschedule_task`` returns, the old
    timer can no longer fire.
    """

    def __init__(
        self,
        registry: Optional[TaskRegistry] = None,
        periodic_pool_size: int = DEFAULT_PERIODIC_POOL_SIZE,
        on_demand_pool_size: int = DEFAULT_ON_DEMAND_POOL_SIZE,
        clock: Optional[Clock] = None,
        poll_interval: float = 1.0,
    ):
        if periodic_pool_size < 1 or on_demand_pool_size < 1:
            raise ValueError("Pool sizes must be at least 1")

        self.registry = registry or TaskRegistry()
        self.clock = clock or SystemClock()
        self.poll_interval = poll_interval

        self._periodic_pool = ThreadPoolExecutor(
            max_workers=periodic_pool_size, thread_name_prefix="task-scheduler"
        )
        self._on_demand_pool = ThreadPoolExecutor(
            max_workers=on_demand_pool_size, thread_name_prefix="task-ondemand"
        )
        self.engine = ExecutionEngine(
            self.registry, self._periodic_pool, self._on_demand_pool
        )

        self._scheduled: Dict[str, ScheduledHandle] = {}
        self._timer_lock = RLock()
        self._wakeup = Event()
        self._stopping = Event()
        self._timer_thread: Optional[Thread] = None
        self._shut_down = False

    # --- Registration and scheduling ---

    def register_task(self, task: Task, replace: bool = False) -> None:
        self.registry.register(task, replace=replace)

    def schedule_all_tasks(self) -> None:
        for task in self.registry.all():
            with self._timer_lock:
                if task.task_id in self._scheduled:
                    continue
                self._schedule(task)

    def cancel_scheduled_task(self, task_id: str) -> bool:
        with self._timer_lock:
            handle = self._scheduled.pop(task_id, None)
            if handle is None:
                return False
            handle.cancelled = True
        logger.info("Cancelled scheduled task: %s", task_id)
        return True

    def reschedule_task(self, task_id: str) -> bool:
        """Replace the task's timer with a fresh one. Returns whether a timer now exists."""
        task = self.registry.require(task_id)
        with self._timer_lock:
            self.cancel_scheduled_task(task_id)
            return self._schedule(task) is not None

    def is_scheduled(self, task_id: str) -> bool:
        with self._timer_lock:
            return task_id in self._scheduled

    def get_scheduled_handle(self, task_id: str) -> Optional[ScheduledHandle]:
        with self._timer_lock:
            return self._scheduled.get(task_id)

    def _schedule(self, task: Task) -> Optional[ScheduledHandle]:
        if self._shut_down:
            raise SchedulerStoppedError("Scheduler has been shut down")
        if not task.enabled:
            logger.info("Task %s is disabled, not scheduling", task.task_id)
            return None

        now = self.clock.now()
        first_fire_at = now + task.initial_delay_minutes * SECONDS_PER_MINUTE
        handle = ScheduledHandle(
            task_id=task.task_id,
            first_fire_at=first_fire_at,
            interval_seconds=task.interval_minutes * SECONDS_PER_MINUTE,
            next_fire_at=first_fire_at,
        )
        self._scheduled[task.task_id] = handle
        self._wakeup.set()
        logger.info(
            "Scheduled task %s to run every %d minutes (initial delay: %d minutes)",
            task.task_id,
            task.interval_minutes,
            task.initial_delay_minutes,
        )
        return handle

    # --- Timer loop ---

    def start(self) -> None:
        """Start the timer thread. Timers scheduled before this call fire once it runs."""
        if self._timer_thread is not None:
            return
        self._stopping.clear()
        self._timer_thread = Thread(
            target=self._timer_loop, name="task-timer", daemon=True
        )
        self._timer_thread.start()

    def run_pending(self) -> Optional[float]:
        """
        Fire every timer that is due at ``clock.now()``.

        Returns the number of seconds until the next timer is due, or None when no
        timer is scheduled. The timer thread calls this in a loop; tests driving a
        ManualClock call it directly.
        """
        with self._timer_lock:
            now = self.clock.now()
            for handle in list(self._scheduled.values()):
                if handle.cancelled or handle.next_fire_at > now:
                    continue
                handle.advance(now)
                self._fire(handle.task_id)

            if not self._scheduled:
                return None
            next_fire_at = min(h.next_fire_at for h in self._scheduled.values())
            return max(0.0, next_fire_at - now)

    def _fire(self, task_id: str) -> Optional[Future]:
        task = self.registry.get(task_id)
        if task is None:
            logger.warning("Scheduled task %s is no longer registered", task_id)
            return None
        try:
            return self.engine.submit_scheduled(task)
        except SchedulerStoppedError:
            logger.warning("Dropping fire of %s, scheduler is shutting down", task_id)
            return None

    def _timer_loop(self) -> None:
        logger.debug("Timer thread started")
        while not self._stopping.is_set():
            try:
                delay = self.run_pending()
            except Exception:
                logger.exception("Unhandled exception in timer loop")
                delay = None
            timeout = self.poll_interval if delay is None else min(delay, self.poll_interval)
            self._wakeup.wait(timeout)
            self._wakeup.clear()
        logger.debug("Timer thread stopped")

    # --- On-demand runs ---

    def run_task_async(self, task_id: str, reject_if_running: bool = False) -> Future:
        return self.engine.run_on_demand(task_id, reject_if_running=reject_if_running)

    def run_task_sync(
        self, task_id: str, timeout_seconds: float, reject_if_running: bool = False
    ) -> TaskResult:
        return self.engine.run_on_demand_sync(
            task_id, timeout_seconds, reject_if_running=reject_if_running
        )

    # --- Queries ---

    def get_all_tasks(self) -> List[Task]:
        return self.registry.all()

    def get_tasks_by_category(self, category: TaskCategory) -> List[Task]:
        return self.registry.by_category(category)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.registry.get(task_id)

    def get_last_result(self, task_id: str) -> Optional[TaskResult]:
        return self.engine.get_last_result(task_id)

    def is_task_running(self, task_id: str) -> bool:
        return self.engine.is_running(task_id)

    # --- Shutdown ---

    def shutdown(self, grace_seconds: float = DEFAULT_SHUTDOWN_GRACE_SECONDS) -> bool:
        """
        Stop all timers, refuse new work and drain in-flight executions.

        Waits up to ``grace_seconds`` for running work. When the grace period runs
        out, or the wait is interrupted, queued work is cancelled; threads already
        inside a task body are left to finish on their own. Returns True when
        everything drained in time.
        """
        logger.info("Stopping task scheduler")
        with self._timer_lock:
            for handle in self._scheduled.values():
                handle.cancelled = True
            self._scheduled.clear()
            self._shut_down = True

        self._stopping.set()
        self._wakeup.set()
        if self._timer_thread is not None:
            self._timer_thread.join(timeout=max(self.poll_interval, 1.0) * 2)
            self._timer_thread = None

        self._periodic_pool.shutdown(wait=False)
        self._on_demand_pool.shutdown(wait=False)

        drained = False
        try:
            _, not_done = wait(self.engine.in_flight(), timeout=grace_seconds)
            drained = not not_done
            if not drained:
                logger.warning(
                    "%d task(s) still running after %.0f seconds, forcing shutdown",
                    len(not_done),
                    grace_seconds,
                )
        except KeyboardInterrupt:
            logger.warning("Interrupted while draining tasks, forcing shutdown")

        if not drained:
            self._periodic_pool.shutdown(wait=False, cancel_futures=True)
            self._on_demand_pool.shutdown(wait=False, cancel_futures=True)

        logger.info("Task scheduler stopped")
        return drained
