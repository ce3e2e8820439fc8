"""Litestar application factory for the TicketFlow HTTP facade."""
import asyncio
from typing import Optional

from litestar import Litestar, Request, Response
from litestar.datastructures import State
from litestar.di import Provide
from litestar.status_codes import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_408_REQUEST_TIMEOUT,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from ticketflow.clients.confluence import ConfluenceClient
from ticketflow.clients.jira import JiraClient
from ticketflow.common.exceptions import (
    InvalidRequestError,
    IssueTrackerError,
    SchedulerStoppedError,
    ServiceNotConfiguredError,
    TaskAlreadyRunningError,
    TaskExecutionError,
    TaskNotFoundError,
    TaskTimeoutError,
    TicketFlowException,
    WikiError,
)
from ticketflow.config import Settings
from ticketflow.server.lifecycle import LifecycleController
from ticketflow.server.scheduler import Scheduler

from .controllers.health import health
from .controllers.reports import ReportsController
from .controllers.tasks import TasksController
from .controllers.tickets import TicketsController

_STATUS_BY_EXCEPTION = (
    (TaskNotFoundError, HTTP_404_NOT_FOUND),
    (TaskAlreadyRunningError, HTTP_409_CONFLICT),
    (TaskTimeoutError, HTTP_408_REQUEST_TIMEOUT),
    (TaskExecutionError, HTTP_500_INTERNAL_SERVER_ERROR),
    (InvalidRequestError, HTTP_400_BAD_REQUEST),
    (SchedulerStoppedError, HTTP_503_SERVICE_UNAVAILABLE),
    (ServiceNotConfiguredError, HTTP_503_SERVICE_UNAVAILABLE),
)


def error_response(message: str, status_code: int) -> Response:
    return Response({"error": message}, status_code=status_code)


def ticketflow_exception_handler(request: Request, exc: TicketFlowException) -> Response:
    if isinstance(exc, (IssueTrackerError, WikiError)):
        status_code = HTTP_404_NOT_FOUND if exc.status_code == 404 else HTTP_502_BAD_GATEWAY
        return error_response(str(exc), status_code)
    for exc_type, status_code in _STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return error_response(str(exc), status_code)
    return error_response(str(exc), HTTP_500_INTERNAL_SERVER_ERROR)


def get_scheduler(state: State) -> Scheduler:
    return state.scheduler


def get_jira(state: State) -> JiraClient:
    return state.jira


def get_wiki(state: State) -> Optional[ConfluenceClient]:
    return state.wiki


def get_settings(state: State) -> Settings:
    return state.settings


def _start_lifecycle(app: Litestar) -> None:
    lifecycle: Optional[LifecycleController] = app.state.lifecycle
    if lifecycle is not None:
        lifecycle.start()


async def _stop_lifecycle(app: Litestar) -> None:
    lifecycle: Optional[LifecycleController] = app.state.lifecycle
    if lifecycle is not None:
        # Draining may block for the whole grace period.
        await asyncio.to_thread(lifecycle.stop)


def create_app(
    scheduler: Scheduler,
    jira: JiraClient,
    settings: Settings,
    wiki: Optional[ConfluenceClient] = None,
    lifecycle: Optional[LifecycleController] = None,
    debug: bool = False,
) -> Litestar:
    """Create the Litestar application.

    Args:
        scheduler: The scheduler whose tasks are exposed under ``/api/tasks``.
        jira: Issue tracker client used by the ticket, report and health routes.
        settings: Loaded settings, for default project and space keys.
        wiki: Optional wiki client. Report routes answer 503 without it.
        lifecycle: When given, started on app startup and stopped on shutdown.

    Returns:
        A Litestar application.
    """
    return Litestar(
        route_handlers=[TasksController, TicketsController, ReportsController, health],
        state=State(
            {
                "scheduler": scheduler,
                "jira": jira,
                "wiki": wiki,
                "settings": settings,
                "lifecycle": lifecycle,
            }
        ),
        dependencies={
            "scheduler": Provide(get_scheduler, sync_to_thread=False),
            "jira": Provide(get_jira, sync_to_thread=False),
            "wiki": Provide(get_wiki, sync_to_thread=False),
            "settings": Provide(get_settings, sync_to_thread=False),
        },
        exception_handlers={TicketFlowException: ticketflow_exception_handler},
        on_startup=[_start_lifecycle],
        on_shutdown=[_stop_lifecycle],
        debug=debug,
    )
