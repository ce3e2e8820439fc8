# ticketflow/server/lifecycle.py
import logging
from threading import Lock
from typing import Iterable, List, Optional, Protocol

from ticketflow.server.scheduler import DEFAULT_SHUTDOWN_GRACE_SECONDS, Scheduler

logger = logging.getLogger(__name__)


class Closeable(Protocol):
    def close(self) -> None: ...


class LifecycleController:
    """Starts scheduling at process boot and drains everything at shutdown."""

    def __init__(
        self,
        scheduler: Scheduler,
        grace_seconds: float = DEFAULT_SHUTDOWN_GRACE_SECONDS,
        closeables: Optional[Iterable[Closeable]] = None,
    ):
        self.scheduler = scheduler
        self.grace_seconds = grace_seconds
        self._closeables: List[Closeable] = list(closeables or [])
        self._lock = Lock()
        self._started = False
        self._stopped = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self) -> None:
        with self._lock:
            if self._started:
                logger.debug("Lifecycle already started")
                return
            logger.info(
                "Starting task scheduler with %d registered tasks",
                len(self.scheduler.registry),
            )
            self.scheduler.schedule_all_tasks()
            self.scheduler.start()
            self._started = True

    def stop(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self._stopped = True

        try:
            self.scheduler.shutdown(self.grace_seconds)
        except Exception:
            logger.exception("Error while stopping the task scheduler")

        for closeable in self._closeables:
            try:
                closeable.close()
            except Exception:
                logger.exception("Error closing %s", type(closeable).__name__)
