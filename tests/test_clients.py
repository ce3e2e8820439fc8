import base64
import json
from datetime import date, datetime, timedelta, timezone

import httpx
import pytest

from ticketflow.clients import ConfluenceClient, JiraClient
from ticketflow.clients.jira import parse_datetime, parse_issue
from ticketflow.common.exceptions import IssueTrackerError, WikiError
from ticketflow.common.issue import CreateIssueRequest, UpdateIssueRequest
from ticketflow.config import ConfluenceSettings, JiraSettings

from tests.fakes import JiraServer, issue_document


def basic_auth(username, password):
    token = base64.b64encode(f"{username}:{password}".encode()).decode()
    return f"Basic {token}"


# --- Fixtures ---
@pytest.fixture
def jira_settings():
    return JiraSettings(
        base_url="https://jira.example.com/",
        base_project="PROJ",
        username="svc",
        api_token="token",
    )


@pytest.fixture
def server():
    return JiraServer(issues=[issue_document("PROJ-1", "First"), issue_document("PROJ-2", "Second")])


@pytest.fixture
def jira(jira_settings, server):
    client = JiraClient(jira_settings, transport=server.transport())
    yield client
    client.close()


@pytest.fixture
def confluence_settings():
    return ConfluenceSettings(base_url="https://wiki.example.com", username="svc", api_token="t")


# --- Parsing ---

def test_parse_datetime_formats():
    assert parse_datetime("2024-01-15T10:30:00.000+0000") == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
    assert parse_datetime("2024-01-15T10:30:00+0200") == datetime(
        2024, 1, 15, 10, 30, tzinfo=timezone(timedelta(hours=2))
    )
    assert parse_datetime("2024-01-15T10:30:00+00:00") is not None
    assert parse_datetime("2024-01-15T10:30:00") == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
    assert parse_datetime("yesterday") is None
    assert parse_datetime(None) is None


def test_parse_issue_document():
    raw = issue_document(
        "PROJ-9",
        "Broken login",
        status="In Progress",
        priority={"name": "High"},
        assignee={"displayName": "Alice"},
        duedate="2024-02-01",
        labels=["auth"],
        comment={
            "comments": [
                {"author": {"displayName": "Bob"}, "body": "seen it", "created": "2024-01-16T09:00:00.000+0000"}
            ]
        },
        issuelinks=[
            {"type": {"outward": "blocks", "inward": "is blocked by"}, "outwardIssue": {"key": "PROJ-10"}},
            {"type": {"outward": "causes", "inward": "is caused by"}, "inwardIssue": {"key": "NOC-789"}},
        ],
    )

    issue = parse_issue(raw)

    assert issue.key == "PROJ-9"
    assert issue.number == 9
    assert issue.status == "In Progress"
    assert issue.priority == "High"
    assert issue.assignee == "Alice"
    assert issue.project == "PROJ"
    assert issue.due_date == date(2024, 2, 1)
    assert issue.comments[0].author == "Bob"
    assert [(l.description, l.target_key) for l in issue.links] == [
        ("blocks", "PROJ-10"),
        ("is caused by", "NOC-789"),
    ]
    assert issue.serialize_data()["linkedIssues"] == [
        {"key": "PROJ-10", "linkType": "blocks"},
        {"key": "NOC-789", "linkType": "is caused by"},
    ]


# --- JiraClient ---

def test_requests_use_api_path_and_basic_auth(jira, server):
    jira.get_issue("PROJ-1")

    request = server.requests[-1]
    assert request.url == "https://jira.example.com/rest/api/2/issue/PROJ-1"
    assert request.headers["Authorization"] == basic_auth("svc", "token")


def test_token_override_is_used_for_auth(jira_settings, server):
    settings = jira_settings.model_copy(update={"api_token_override": "override"})
    client = JiraClient(settings, transport=server.transport())

    client.test_connection()

    assert server.requests[-1].headers["Authorization"] == basic_auth("svc", "override")


def test_search_issues(jira, server):
    result = jira.search_issues("project = PROJ", 1, 10)

    assert result.total == 2
    assert [i.key for i in result.issues] == ["PROJ-2"]
    assert json.loads(server.requests[-1].content) == {"jql": "project = PROJ", "startAt": 1, "maxResults": 10}


def test_missing_issue_keeps_status_code(jira):
    with pytest.raises(IssueTrackerError) as exc_info:
        jira.get_issue("PROJ-404")

    assert exc_info.value.status_code == 404
    assert "HTTP 404" in str(exc_info.value)


def test_transport_errors_are_wrapped(jira_settings):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = JiraClient(jira_settings, transport=httpx.MockTransport(refuse))

    with pytest.raises(IssueTrackerError) as exc_info:
        client.get_issue("PROJ-1")
    assert exc_info.value.status_code is None
    assert client.test_connection() is False


def test_timeouts_are_wrapped(jira_settings):
    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = JiraClient(jira_settings, transport=httpx.MockTransport(slow))

    with pytest.raises(IssueTrackerError, match="Timeout fetching issue PROJ-1"):
        client.get_issue("PROJ-1")


def test_create_update_and_delete(jira, server):
    key = jira.create_issue(
        CreateIssueRequest(projectKey="PROJ", summary="New", issueType="Task", priority="Low", labels=["x"])
    )
    sent = json.loads(server.requests[-1].content)["fields"]
    assert key == "PROJ-100"
    assert sent["issuetype"] == {"name": "Task"}
    assert sent["priority"] == {"name": "Low"}
    assert "description" not in sent

    jira.update_issue(key, UpdateIssueRequest(summary="Renamed"))
    assert json.loads(server.requests[-1].content) == {"fields": {"summary": "Renamed"}}
    assert jira.get_issue(key).summary == "Renamed"

    jira.delete_issue(key)
    assert server.requests[-1].url.params["deleteSubtasks"] == "false"
    assert key not in server.issues


def test_transitions_and_comments(jira, server):
    transitions = jira.get_transitions("PROJ-1")
    assert [(t.id, t.name) for t in transitions] == [("31", "Close")]

    jira.transition_issue("PROJ-1", 31)
    assert json.loads(server.requests[-1].content) == {"transition": {"id": "31"}}

    jira.add_comment("PROJ-1", "hello")
    assert server.comments["PROJ-1"] == ["hello"]


def test_connection_check(jira_settings):
    healthy = JiraClient(jira_settings, transport=JiraServer().transport())
    broken = JiraClient(jira_settings, transport=JiraServer(healthy=False).transport())

    assert healthy.test_connection() is True
    assert broken.test_connection() is False


# --- ConfluenceClient ---

def test_create_page(confluence_settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": 12345, "_links": {"webui": "/display/ENG/Report"}})

    wiki = ConfluenceClient(confluence_settings, transport=httpx.MockTransport(handler))

    result = wiki.create_page("ENG", "Report", "<p>hi</p>")

    assert result.page_id == "12345"
    assert result.page_url == "https://wiki.example.com/display/ENG/Report"
    body = json.loads(seen[0].content)
    assert seen[0].url.path == "/rest/api/content"
    assert body["space"] == {"key": "ENG"}
    assert body["body"]["storage"] == {"value": "<p>hi</p>", "representation": "storage"}


def test_create_page_error(confluence_settings):
    wiki = ConfluenceClient(
        confluence_settings,
        transport=httpx.MockTransport(lambda request: httpx.Response(403, text="forbidden")),
    )

    with pytest.raises(WikiError) as exc_info:
        wiki.create_page("ENG", "Report", "<p/>")
    assert exc_info.value.status_code == 403
    assert str(exc_info.value) == "Confluence API error: 403 - forbidden"


def test_space_pages_are_paged(confluence_settings):
    def handler(request):
        start = int(request.url.params["start"])
        count = 100 if start == 0 else 3
        results = [
            {"id": str(start + n), "title": f"Page {start + n}", "_links": {"webui": f"/p/{start + n}"}}
            for n in range(count)
        ]
        return httpx.Response(200, json={"results": results, "size": count})

    wiki = ConfluenceClient(confluence_settings, transport=httpx.MockTransport(handler))

    pages = wiki.get_space_pages("ENG")

    assert len(pages) == 103
    assert pages[-1].title == "Page 102"
    assert pages[0].web_url == "https://wiki.example.com/p/0"
