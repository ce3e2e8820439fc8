"""Wiki reports built from issue tracker queries."""
from typing import Any, Dict, Optional

from litestar import Controller, get, post
from litestar.status_codes import HTTP_200_OK
from pydantic import BaseModel, ConfigDict, Field

from ticketflow.clients.confluence import ConfluenceClient
from ticketflow.clients.jira import JiraClient
from ticketflow.common.exceptions import InvalidRequestError, ServiceNotConfiguredError
from ticketflow.config import Settings
from ticketflow.reports import IssueReportGenerator, parse_report_time


class ReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_time: Optional[str] = Field(default=None, alias="startTime")
    end_time: Optional[str] = Field(default=None, alias="endTime")
    space_key: Optional[str] = Field(default=None, alias="spaceKey")
    project_key: Optional[str] = Field(default=None, alias="projectKey")


def _require_wiki(wiki: Optional[ConfluenceClient]) -> ConfluenceClient:
    if wiki is None:
        raise ServiceNotConfiguredError("Wiki is not configured")
    return wiki


def _or_default(value: Optional[str], default: str) -> str:
    if value and value.strip():
        return value.strip()
    return default


class ReportsController(Controller):
    path = "/api/reports"

    @get("/confluence/spaces/{space_key:str}/pages", sync_to_thread=True)
    def list_space_pages(
        self, wiki: Optional[ConfluenceClient], space_key: str
    ) -> Dict[str, Any]:
        if not space_key.strip():
            raise InvalidRequestError("spaceKey is required")
        pages = _require_wiki(wiki).get_space_pages(space_key.strip())
        return {
            "spaceKey": space_key,
            "pages": [{"id": p.id, "title": p.title, "webUrl": p.web_url} for p in pages],
        }

    @post("/confluence", status_code=HTTP_200_OK, sync_to_thread=True)
    def generate_report(
        self,
        jira: JiraClient,
        wiki: Optional[ConfluenceClient],
        settings: Settings,
        data: ReportRequest,
    ) -> Dict[str, Any]:
        wiki = _require_wiki(wiki)
        if not data.start_time or not data.end_time:
            raise InvalidRequestError("startTime and endTime are required (ISO-8601)")
        try:
            start = parse_report_time(data.start_time)
            end = parse_report_time(data.end_time)
        except ValueError:
            raise InvalidRequestError(
                "Invalid date format. Use ISO-8601 (e.g. 2024-01-15T10:00:00Z)"
            ) from None
        if end <= start:
            raise InvalidRequestError("endTime must be after startTime")

        default_space = settings.confluence.default_space_key if settings.confluence else ""
        space_key = _or_default(data.space_key, default_space)
        project_key = _or_default(data.project_key, settings.jira.base_project)

        result = IssueReportGenerator(jira, wiki).generate(project_key, space_key, start, end)
        return result.serialize_data()
