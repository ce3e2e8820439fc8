import pytest

pytest.importorskip("fastapi")

from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from ticketflow.bootstrap import build_application
from ticketflow.clients import JiraClient
from ticketflow.config import Settings
from ticketflow.integrations.fastapi import add_ticketflow_to_fastapi, get_ticketflow_scheduler
from ticketflow.server.clock import ManualClock
from ticketflow.server.scheduler import Scheduler

from tests.fakes import JiraServer, issue_document


# --- Fixtures ---
@pytest.fixture
def application(tmp_path):
    settings = Settings.model_validate(
        {
            "jira": {"base_url": "https://jira.example.com", "base_project": "PROJ"},
            "storage": {"backend": "memory", "data_dir": str(tmp_path)},
            "tasks": {"shutdown_grace_seconds": 1},
        }
    )
    jira = JiraClient(settings.jira, transport=JiraServer(issues=[issue_document("PROJ-1")]).transport())
    return build_application(settings, jira=jira, clock=ManualClock())


def test_lifespan_starts_and_stops_scheduler(application):
    app = FastAPI()
    add_ticketflow_to_fastapi(app, application)

    with TestClient(app):
        assert application.lifecycle.started
        assert application.scheduler.is_scheduled("issue-sync")

    assert application.lifecycle.stopped
    assert not application.scheduler.is_scheduled("issue-sync")


def test_scheduler_dependency(application):
    app = FastAPI()
    add_ticketflow_to_fastapi(app, application)

    @app.get("/task-count")
    def task_count(scheduler: Scheduler = Depends(get_ticketflow_scheduler)):
        return {"count": len(scheduler.get_all_tasks())}

    with TestClient(app) as client:
        assert client.get("/task-count").json() == {"count": 3}


def test_mounted_api(application):
    app = FastAPI()
    plugin = add_ticketflow_to_fastapi(app, application)
    plugin.include_api("/ticketflow")

    with TestClient(app) as client:
        tasks = client.get("/ticketflow/api/tasks").json()
        ticket = client.get("/ticketflow/api/tickets/PROJ-1").json()

    assert {t["taskId"] for t in tasks} == {"issue-sync", "stale-issue-cleanup", "comment-watch"}
    assert ticket["key"] == "PROJ-1"
