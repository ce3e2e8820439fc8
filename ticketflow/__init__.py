from .common.exceptions import (
    TaskAlreadyRunningError,
    TaskExecutionError,
    TaskNotFoundError,
    TaskTimeoutError,
    TicketFlowException,
)
from .common.result import TaskResult, TaskStatus
from .common.task import Task, TaskCategory, TaskConfig, execute_task
from .config import Settings, configure, get_settings, load_settings
from .server.lifecycle import LifecycleController
from .server.registry import TaskRegistry
from .server.scheduler import Scheduler

__all__ = [
    "LifecycleController",
    "Scheduler",
    "Settings",
    "Task",
    "TaskAlreadyRunningError",
    "TaskCategory",
    "TaskConfig",
    "TaskExecutionError",
    "TaskNotFoundError",
    "TaskRegistry",
    "TaskResult",
    "TaskStatus",
    "TaskTimeoutError",
    "TicketFlowException",
    "configure",
    "execute_task",
    "get_settings",
    "load_settings",
]
