# ticketflow/server/registry.py
import logging
from threading import RLock
from typing import Dict, List, Optional

from ticketflow.common.exceptions import DuplicateTaskError, TaskNotFoundError
from ticketflow.common.task import Task, TaskCategory

logger = logging.getLogger(__name__)


class TaskRegistry:
    """All known tasks keyed by id, in registration order."""

    def __init__(self):
        self._tasks: Dict[str, Task] = {}
        self._lock = RLock()

    def register(self, task: Task, replace: bool = False) -> None:
        with self._lock:
            if task.task_id in self._tasks and not replace:
                raise DuplicateTaskError(task.task_id)
            self._tasks[task.task_id] = task
        logger.info("Registered task: %s (%s)", task.task_name, task.task_id)

    def get(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self._tasks.get(task_id)

    def require(self, task_id: str) -> Task:
        task = self.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def all(self) -> List[Task]:
        with self._lock:
            return list(self._tasks.values())

    def by_category(self, category: TaskCategory) -> List[Task]:
        return [task for task in self.all() if task.category == category]

    def __contains__(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._tasks

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)
