# ticketflow/common/task.py
import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from .result import TaskResult

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MINUTES = 60
DEFAULT_INITIAL_DELAY_MINUTES = 1


class TaskCategory(str, Enum):
    SYNC = "SYNC"
    CLEANUP = "CLEANUP"
    NOTIFICATION = "NOTIFICATION"
    REPORTING = "REPORTING"
    MAINTENANCE = "MAINTENANCE"


class TaskConfig(BaseModel):
    """Schedule settings shared by every task. Task-specific configs extend this."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = True
    interval_minutes: int = Field(default=DEFAULT_INTERVAL_MINUTES, ge=1)
    initial_delay_minutes: int = Field(default=DEFAULT_INITIAL_DELAY_MINUTES, ge=0)


# A task body receives the start time captured by execute_task() and must
# classify its own domain failures into the returned result.
TaskBody = Callable[[datetime], TaskResult]


@dataclass(frozen=True)
class Task:
    """
    A named, independently configured unit of work.

    Tasks are built once at startup by composing a body with its identity and
    config, and are never mutated afterwards. ``execute()`` is total: it always
    returns a TaskResult and never raises.
    """

    task_id: str
    task_name: str
    category: TaskCategory
    body: TaskBody
    config: Optional[TaskConfig] = None

    def __post_init__(self):
        if not self.task_id or not self.task_id.strip():
            raise ValueError("task_id must be a non-empty string")
        if not isinstance(self.category, TaskCategory):
            raise ValueError(f"Invalid task category: {self.category!r}")

    @property
    def enabled(self) -> bool:
        return self.config.enabled if self.config is not None else True

    @property
    def interval_minutes(self) -> int:
        if self.config is None:
            return DEFAULT_INTERVAL_MINUTES
        return self.config.interval_minutes

    @property
    def initial_delay_minutes(self) -> int:
        if self.config is None:
            return DEFAULT_INITIAL_DELAY_MINUTES
        return self.config.initial_delay_minutes

    def execute(self) -> TaskResult:
        return execute_task(self)


def execute_task(task: Task) -> TaskResult:
    """Run ``task.body`` with the skip, timing and catch-all rules applied."""
    started_at = datetime.now(UTC)
    logger.info("Starting task: %s (%s)", task.task_name, task.task_id)

    if not task.enabled:
        logger.info("Task %s is disabled, skipping", task.task_id)
        return TaskResult.skipped(task.task_id, started_at, "Task is disabled")

    try:
        result = task.body(started_at)
    except Exception as e:
        logger.error("Task %s failed with exception", task.task_id, exc_info=True)
        return TaskResult.failure(task.task_id, started_at, f"Exception: {e}")

    if not isinstance(result, TaskResult):
        logger.error(
            "Task %s returned %s instead of a TaskResult",
            task.task_id,
            type(result).__name__,
        )
        return TaskResult.failure(
            task.task_id, started_at, "Task body did not return a result"
        )

    logger.info("Task %s completed with status: %s", task.task_id, result.status.value)
    return result
