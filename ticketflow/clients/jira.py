# ticketflow/clients/jira.py
import logging
from datetime import date, datetime, UTC
from typing import Any, Dict, List, Optional

import httpx

from ticketflow.common.exceptions import IssueTrackerError
from ticketflow.common.issue import (
    Comment,
    CreateIssueRequest,
    Issue,
    IssueLink,
    SearchResult,
    Transition,
    UpdateIssueRequest,
)
from ticketflow.config import JiraSettings

logger = logging.getLogger(__name__)

API_PATH = "/rest/api/2"

_DATETIME_FORMATS = ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z")


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Unparseable timestamp from issue tracker: %r", value)
        return None
    # Offset-less timestamps are UTC.
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _name(field: Optional[Dict[str, Any]], attr: str = "name") -> Optional[str]:
    if not field:
        return None
    return field.get(attr)


def _parse_links(raw_links: List[Dict[str, Any]]) -> List[IssueLink]:
    links = []
    for raw in raw_links or []:
        link_type = raw.get("type") or {}
        if "outwardIssue" in raw:
            target = raw["outwardIssue"].get("key")
            description = link_type.get("outward")
        elif "inwardIssue" in raw:
            target = raw["inwardIssue"].get("key")
            description = link_type.get("inward")
        else:
            continue
        if target:
            links.append(IssueLink(description=description or "linked to", target_key=target))
    return links


def parse_issue(raw: Dict[str, Any]) -> Issue:
    """Convert an issue document from the REST API into an :class:`Issue`."""
    fields = raw.get("fields") or {}
    comment_field = fields.get("comment") or {}
    comments = [
        Comment(
            author=_name(c.get("author"), "displayName"),
            body=c.get("body") or "",
            created=parse_datetime(c.get("created")),
        )
        for c in comment_field.get("comments", [])
    ]
    return Issue(
        key=raw["key"],
        summary=fields.get("summary") or "",
        description=fields.get("description"),
        status=_name(fields.get("status")),
        issue_type=_name(fields.get("issuetype")),
        priority=_name(fields.get("priority")),
        assignee=_name(fields.get("assignee"), "displayName"),
        reporter=_name(fields.get("reporter"), "displayName"),
        project=_name(fields.get("project"), "key"),
        created=parse_datetime(fields.get("created")),
        updated=parse_datetime(fields.get("updated")),
        due_date=parse_date(fields.get("duedate")),
        labels=list(fields.get("labels") or []),
        comments=comments,
        links=_parse_links(fields.get("issuelinks")),
        self_url=raw.get("self"),
    )


class JiraClient:
    """
    Synchronous client for the issue tracker's REST API.

    Every failure (network, timeout, non-2xx status) is raised as
    :class:`IssueTrackerError`; the HTTP status is kept when there is one.
    """

    def __init__(self, settings: JiraSettings, transport: Optional[httpx.BaseTransport] = None):
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        timeout = httpx.Timeout(
            settings.read_timeout_ms / 1000,
            connect=settings.connection_timeout_ms / 1000,
        )
        self._http = httpx.Client(
            base_url=self.base_url + API_PATH,
            auth=httpx.BasicAuth(settings.username, settings.effective_api_token),
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )
        logger.info("Initialized Jira client for: %s", self.base_url)

    def _request(self, method: str, path: str, action: str, **kwargs) -> httpx.Response:
        try:
            response = self._http.request(method, path, **kwargs)
            response.raise_for_status()
            return response
        except httpx.TimeoutException as e:
            raise IssueTrackerError(f"Timeout {action}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise IssueTrackerError(
                f"Failed {action}: HTTP {status}", status_code=status
            ) from e
        except httpx.HTTPError as e:
            raise IssueTrackerError(f"Failed {action}: {e}") from e

    def get_issue(self, issue_key: str) -> Issue:
        logger.debug("Fetching issue: %s", issue_key)
        response = self._request("GET", f"/issue/{issue_key}", f"fetching issue {issue_key}")
        return parse_issue(response.json())

    def search_issues(self, jql: str, start_at: int, max_results: int) -> SearchResult:
        logger.debug("Searching issues with JQL: %s", jql)
        response = self._request(
            "POST",
            "/search",
            "searching issues",
            json={"jql": jql, "startAt": start_at, "maxResults": max_results},
        )
        body = response.json()
        issues = [parse_issue(raw) for raw in body.get("issues", [])]
        return SearchResult(
            issues=issues,
            total=body.get("total", len(issues)),
            start_at=body.get("startAt", start_at),
            max_results=body.get("maxResults", max_results),
        )

    def create_issue(self, request: CreateIssueRequest) -> str:
        """Create an issue and return its key."""
        fields: Dict[str, Any] = {
            "project": {"key": request.project_key},
            "summary": request.summary,
            "issuetype": {"name": request.issue_type},
        }
        if request.description is not None:
            fields["description"] = request.description
        if request.priority is not None:
            fields["priority"] = {"name": request.priority}
        if request.assignee is not None:
            fields["assignee"] = {"name": request.assignee}
        if request.labels is not None:
            fields["labels"] = request.labels

        logger.debug("Creating issue in project %s", request.project_key)
        response = self._request("POST", "/issue", "creating issue", json={"fields": fields})
        return response.json()["key"]

    def update_issue(self, issue_key: str, request: UpdateIssueRequest) -> None:
        fields: Dict[str, Any] = {}
        if request.summary is not None:
            fields["summary"] = request.summary
        if request.description is not None:
            fields["description"] = request.description
        if request.priority is not None:
            fields["priority"] = {"name": request.priority}
        if request.assignee is not None:
            fields["assignee"] = {"name": request.assignee}
        if request.labels is not None:
            fields["labels"] = request.labels

        logger.debug("Updating issue: %s", issue_key)
        self._request(
            "PUT", f"/issue/{issue_key}", f"updating issue {issue_key}", json={"fields": fields}
        )

    def delete_issue(self, issue_key: str, delete_subtasks: bool = False) -> None:
        logger.debug("Deleting issue: %s", issue_key)
        self._request(
            "DELETE",
            f"/issue/{issue_key}",
            f"deleting issue {issue_key}",
            params={"deleteSubtasks": "true" if delete_subtasks else "false"},
        )

    def get_transitions(self, issue_key: str) -> List[Transition]:
        logger.debug("Getting transitions for issue: %s", issue_key)
        response = self._request(
            "GET", f"/issue/{issue_key}/transitions", f"getting transitions for {issue_key}"
        )
        return [
            Transition(id=str(t["id"]), name=t.get("name", ""))
            for t in response.json().get("transitions", [])
        ]

    def transition_issue(self, issue_key: str, transition_id: str) -> None:
        logger.debug("Transitioning issue %s with transition %s", issue_key, transition_id)
        self._request(
            "POST",
            f"/issue/{issue_key}/transitions",
            f"transitioning issue {issue_key}",
            json={"transition": {"id": str(transition_id)}},
        )

    def add_comment(self, issue_key: str, body: str) -> None:
        logger.debug("Adding comment to issue: %s", issue_key)
        self._request(
            "POST",
            f"/issue/{issue_key}/comment",
            f"adding comment to {issue_key}",
            json={"body": body},
        )

    def get_project(self, project_key: str) -> Dict[str, Any]:
        response = self._request(
            "GET", f"/project/{project_key}", f"fetching project {project_key}"
        )
        return response.json()

    def test_connection(self) -> bool:
        try:
            self._request(
                "GET",
                "/serverInfo",
                "fetching server info",
                timeout=self.settings.connection_timeout_ms / 1000,
            )
            return True
        except IssueTrackerError:
            logger.error("Failed to connect to Jira", exc_info=True)
            return False

    def close(self) -> None:
        self._http.close()
