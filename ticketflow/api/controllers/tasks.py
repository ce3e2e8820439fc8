"""Task listing, results and on-demand runs."""
import logging
from typing import Any, Dict, List, Optional

from litestar import Controller, Response, delete, get, post
from litestar.params import Parameter
from litestar.status_codes import HTTP_200_OK, HTTP_202_ACCEPTED

from ticketflow.common.exceptions import InvalidRequestError, TaskNotFoundError
from ticketflow.common.task import Task, TaskCategory
from ticketflow.server.scheduler import Scheduler

logger = logging.getLogger(__name__)

DEFAULT_RUN_TIMEOUT_SECONDS = 300


def task_info(scheduler: Scheduler, task: Task) -> Dict[str, Any]:
    last = scheduler.get_last_result(task.task_id)
    return {
        "taskId": task.task_id,
        "taskName": task.task_name,
        "category": task.category.value,
        "enabled": task.enabled,
        "intervalMinutes": task.interval_minutes,
        "initialDelayMinutes": task.initial_delay_minutes,
        "scheduled": scheduler.is_scheduled(task.task_id),
        "running": scheduler.is_task_running(task.task_id),
        "lastStatus": last.status.value if last else None,
        "lastExecutionTime": last.ended_at.isoformat() if last else None,
    }


class TasksController(Controller):
    path = "/api/tasks"

    @get(sync_to_thread=False)
    def list_tasks(
        self, scheduler: Scheduler, category: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        if category is None:
            tasks = scheduler.get_all_tasks()
        else:
            try:
                tasks = scheduler.get_tasks_by_category(TaskCategory(category.upper()))
            except ValueError:
                raise InvalidRequestError(f"Invalid category: {category}") from None
        return [task_info(scheduler, task) for task in tasks]

    @get("/{task_id:str}", sync_to_thread=False)
    def get_task(self, scheduler: Scheduler, task_id: str) -> Dict[str, Any]:
        return task_info(scheduler, scheduler.registry.require(task_id))

    @get("/{task_id:str}/result", sync_to_thread=False)
    def get_task_result(self, scheduler: Scheduler, task_id: str) -> Dict[str, Any]:
        scheduler.registry.require(task_id)
        result = scheduler.get_last_result(task_id)
        if result is None:
            raise TaskNotFoundError.no_result(task_id)
        return result.serialize_data()

    @post("/{task_id:str}/run", sync_to_thread=True)
    def run_task(
        self,
        scheduler: Scheduler,
        task_id: str,
        run_async: bool = Parameter(query="async", default=True),
        timeout: float = Parameter(query="timeout", default=DEFAULT_RUN_TIMEOUT_SECONDS, gt=0),
    ) -> Response:
        scheduler.registry.require(task_id)
        logger.info("Running task %s on-demand (async=%s)", task_id, run_async)

        if run_async:
            scheduler.run_task_async(task_id, reject_if_running=True)
            return Response(
                {"taskId": task_id, "message": "Task started", "async": True},
                status_code=HTTP_202_ACCEPTED,
            )

        result = scheduler.run_task_sync(task_id, timeout, reject_if_running=True)
        return Response(result.serialize_data(), status_code=HTTP_200_OK)

    @delete("/{task_id:str}/schedule", status_code=HTTP_200_OK, sync_to_thread=False)
    def cancel_schedule(self, scheduler: Scheduler, task_id: str) -> Dict[str, str]:
        scheduler.registry.require(task_id)
        if not scheduler.cancel_scheduled_task(task_id):
            raise TaskNotFoundError.no_schedule(task_id)
        return {"message": f"Task schedule cancelled: {task_id}"}

    @post("/{task_id:str}/reschedule", status_code=HTTP_200_OK, sync_to_thread=False)
    def reschedule(self, scheduler: Scheduler, task_id: str) -> Dict[str, Any]:
        scheduled = scheduler.reschedule_task(task_id)
        return {"message": f"Task rescheduled: {task_id}", "scheduled": scheduled}
