# ticketflow/bootstrap.py
import logging
from dataclasses import dataclass
from typing import Optional

from ticketflow.clients.confluence import ConfluenceClient
from ticketflow.clients.jira import JiraClient
from ticketflow.config import Settings, StorageSettings
from ticketflow.server.clock import Clock
from ticketflow.server.lifecycle import LifecycleController
from ticketflow.server.scheduler import Scheduler
from ticketflow.storage import (
    FileMarkerStore,
    MarkerStore,
    MemoryMarkerStore,
    RedisMarkerStore,
)
from ticketflow.tasks import (
    comment_watch_task,
    issue_sync_task,
    stale_issue_cleanup_task,
    wiki_test_page_task,
)
from ticketflow.validation import run_startup_validation

logger = logging.getLogger(__name__)


@dataclass
class Application:
    settings: Settings
    jira: JiraClient
    confluence: Optional[ConfluenceClient]
    markers: MarkerStore
    scheduler: Scheduler
    lifecycle: LifecycleController


def build_marker_store(storage: StorageSettings) -> MarkerStore:
    if storage.backend == "memory":
        return MemoryMarkerStore()
    if storage.backend == "redis":
        if storage.redis_url:
            return RedisMarkerStore.from_url(storage.redis_url)
        return RedisMarkerStore()
    return FileMarkerStore(storage.data_dir)


def register_tasks(
    scheduler: Scheduler,
    settings: Settings,
    jira: JiraClient,
    markers: MarkerStore,
    confluence: Optional[ConfluenceClient] = None,
) -> None:
    tasks = settings.tasks
    project = settings.jira.base_project
    data_dir = settings.storage.data_dir

    scheduler.register_task(issue_sync_task(tasks.issue_sync, jira, markers, project, data_dir))
    scheduler.register_task(stale_issue_cleanup_task(tasks.stale_issue_cleanup, jira))
    scheduler.register_task(
        comment_watch_task(tasks.comment_watch, jira, markers, project, data_dir)
    )
    if confluence is not None and settings.confluence is not None:
        scheduler.register_task(
            wiki_test_page_task(
                tasks.wiki_test_page, confluence, settings.confluence.default_space_key
            )
        )

    logger.info(
        "Registered %d background tasks for project: %s",
        len(scheduler.get_all_tasks()),
        project,
    )


def build_application(
    settings: Settings,
    jira: Optional[JiraClient] = None,
    confluence: Optional[ConfluenceClient] = None,
    markers: Optional[MarkerStore] = None,
    clock: Optional[Clock] = None,
    validate: bool = True,
) -> Application:
    """
    Wire clients, marker store, tasks, scheduler and lifecycle from settings.

    Clients and the marker store can be passed in to replace the ones the settings
    describe. Nothing is scheduled until ``lifecycle.start()`` is called.
    """
    logger.info(
        "Connecting to Jira at: %s (project: %s)",
        settings.jira.base_url,
        settings.jira.base_project,
    )
    jira = jira or JiraClient(settings.jira)
    if confluence is None and settings.confluence is not None:
        confluence = ConfluenceClient(settings.confluence)
    markers = markers or build_marker_store(settings.storage)

    if validate:
        run_startup_validation(jira, settings)

    scheduler = Scheduler(
        periodic_pool_size=settings.tasks.scheduler_pool_size,
        on_demand_pool_size=settings.tasks.on_demand_pool_size,
        clock=clock,
    )
    register_tasks(scheduler, settings, jira, markers, confluence)

    closeables = [jira] + ([confluence] if confluence is not None else [])
    lifecycle = LifecycleController(
        scheduler,
        grace_seconds=settings.tasks.shutdown_grace_seconds,
        closeables=closeables,
    )
    return Application(
        settings=settings,
        jira=jira,
        confluence=confluence,
        markers=markers,
        scheduler=scheduler,
        lifecycle=lifecycle,
    )
