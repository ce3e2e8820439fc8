import csv
from datetime import date, datetime, timedelta, UTC

import pytest

from ticketflow.clients.jira import parse_datetime
from ticketflow.common.exceptions import IssueTrackerError
from ticketflow.common.issue import Issue, IssueLink
from ticketflow.common.result import TaskStatus
from ticketflow.config import IssueSyncConfig
from ticketflow.storage import LAST_SYNC_TIME, MemoryMarkerStore
from ticketflow.tasks.export import CSV_HEADER, SYNCED_ISSUES_FILE, read_issue_keys
from ticketflow.tasks.issue_sync import IssueSyncBody, build_jql, is_new_issue, issue_sync_task

from tests.fakes import FakeJiraClient


LAST_SYNC = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


# --- Fixtures ---
@pytest.fixture
def markers():
    return MemoryMarkerStore()


def make_issues(count, created=None):
    return [
        Issue(key=f"PROJ-{n}", summary=f"Issue {n}", status="Open", created=created)
        for n in range(1, count + 1)
    ]


def sync_body(jira, markers, tmp_path, **config):
    return IssueSyncBody(IssueSyncConfig(**config), jira, markers, "PROJ", tmp_path)


# --- JQL ---

def test_jql_for_first_sync():
    config = IssueSyncConfig(excluded_labels=["bot"], min_ticket_number=0)

    assert build_jql("PROJ", config) == (
        'project = PROJ AND resolution = Unresolved AND (labels IS EMPTY OR labels NOT IN ("bot"))'
        " ORDER BY key ASC"
    )


def test_jql_with_marker_filter_and_minimum():
    config = IssueSyncConfig(excluded_labels=[], jql_filter="component = API", min_ticket_number=100)
    last_sync = datetime(2024, 3, 1, 12, 30).astimezone()

    jql = build_jql("PROJ", config, last_sync)

    assert jql == (
        'project = PROJ AND resolution = Unresolved AND (component = API)'
        ' AND updated >= "2024-03-01 12:30" AND key >= PROJ-100 ORDER BY key ASC'
    )


def test_is_new_issue():
    assert is_new_issue(Issue("PROJ-1"), None)
    assert not is_new_issue(Issue("PROJ-1"), LAST_SYNC)
    assert is_new_issue(Issue("PROJ-1", created=LAST_SYNC + timedelta(minutes=1)), LAST_SYNC)
    assert not is_new_issue(Issue("PROJ-1", created=LAST_SYNC), LAST_SYNC)


def test_is_new_issue_with_offsetless_timestamp():
    created = parse_datetime("2024-03-01T12:30:00")

    assert is_new_issue(Issue("PROJ-1", created=created), LAST_SYNC)


# --- Sweep ---

def test_pagination_stops_after_short_page(markers, tmp_path):
    jira = FakeJiraClient(search_issues=make_issues(5))

    result = sync_body(jira, markers, tmp_path, batch_size=2)(datetime.now(UTC))

    assert result.status == TaskStatus.SUCCESS
    assert result.metadata["totalIssues"] == 5
    assert [start for _, start, _ in jira.searches] == [0, 2, 4]
    assert read_issue_keys(tmp_path / SYNCED_ISSUES_FILE) == [f"PROJ-{n}" for n in range(1, 6)]


def test_pagination_stops_when_total_reached(markers, tmp_path):
    jira = FakeJiraClient(search_issues=make_issues(4))

    result = sync_body(jira, markers, tmp_path, batch_size=2)(datetime.now(UTC))

    assert result.metadata["totalIssues"] == 4
    assert len(jira.searches) == 2


def test_first_sync_counts_everything_as_new(markers, tmp_path):
    jira = FakeJiraClient(search_issues=make_issues(3))

    result = sync_body(jira, markers, tmp_path)(datetime.now(UTC))

    assert result.metadata["newIssues"] == 3
    assert result.metadata["updatedIssues"] == 0
    assert result.message == "Synced 3 issues (3 new, 0 updated, 0 skipped)"


def test_new_and_updated_split_on_marker(markers, tmp_path):
    markers.write(LAST_SYNC_TIME, LAST_SYNC)
    issues = [
        Issue("PROJ-1", created=LAST_SYNC - timedelta(days=3)),
        Issue("PROJ-2", created=LAST_SYNC + timedelta(hours=1)),
        Issue("PROJ-3"),
    ]
    jira = FakeJiraClient(search_issues=issues)

    result = sync_body(jira, markers, tmp_path)(datetime.now(UTC))

    assert result.metadata["newIssues"] == 1
    assert result.metadata["updatedIssues"] == 2
    assert 'updated >= "' in jira.searches[0][0]


def test_marker_moves_to_run_start_on_success(markers, tmp_path):
    started_at = datetime(2024, 3, 2, 9, 0, tzinfo=UTC)
    jira = FakeJiraClient(search_issues=make_issues(1))

    sync_body(jira, markers, tmp_path)(started_at)

    assert markers.read(LAST_SYNC_TIME) == started_at


def test_failed_sync_keeps_previous_marker(markers, tmp_path):
    markers.write(LAST_SYNC_TIME, LAST_SYNC)
    jira = FakeJiraClient()
    jira.search_error = IssueTrackerError("Search failed: HTTP 503", 503)

    result = sync_body(jira, markers, tmp_path)(datetime.now(UTC))

    assert result.status == TaskStatus.FAILURE
    assert result.message == "Sync failed: Search failed: HTTP 503"
    assert result.metadata["error"] == "IssueTrackerError"
    assert markers.read(LAST_SYNC_TIME) == LAST_SYNC


def test_issues_below_minimum_are_skipped(markers, tmp_path):
    issues = [Issue("PROJ-5"), Issue("PROJ-10"), Issue("PROJ-12")]
    jira = FakeJiraClient(search_issues=issues)

    result = sync_body(jira, markers, tmp_path, min_ticket_number=10)(datetime.now(UTC))

    assert result.metadata["totalIssues"] == 2
    assert result.metadata["skippedIssues"] == 1
    assert read_issue_keys(tmp_path / SYNCED_ISSUES_FILE) == ["PROJ-10", "PROJ-12"]


def test_csv_export_rows(markers, tmp_path):
    issue = Issue(
        key="PROJ-7",
        summary="Line one\nline two",
        priority="High",
        status="In Progress",
        assignee=None,
        created=datetime(2024, 1, 15, 10, 30, tzinfo=UTC),
        due_date=date(2024, 2, 1),
        links=[IssueLink("blocks", "PROJ-8"), IssueLink("is caused by", "NOC-1")],
    )
    jira = FakeJiraClient(search_issues=[issue])

    result = sync_body(jira, markers, tmp_path)(datetime.now(UTC))

    with open(result.metadata["csvFile"], newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[0] == CSV_HEADER
    row = rows[1]
    assert row[0] == "PROJ-7"
    assert row[1] == "Line one\nline two"
    assert row[4] == "Unassigned"
    assert row[7] == "2024-02-01 00:00:00"
    assert row[8] == "blocks PROJ-8, is caused by NOC-1"


def test_export_is_rewritten_each_run(markers, tmp_path):
    jira = FakeJiraClient(search_issues=make_issues(3))
    body = sync_body(jira, markers, tmp_path)
    body(datetime.now(UTC))

    jira.search_pool = make_issues(1)
    body(datetime.now(UTC))

    assert read_issue_keys(tmp_path / SYNCED_ISSUES_FILE) == ["PROJ-1"]


def test_task_factory(markers, tmp_path):
    task = issue_sync_task(IssueSyncConfig(), FakeJiraClient(), markers, "PROJ", tmp_path)

    assert task.task_id == "issue-sync"
    assert task.interval_minutes == 30
    assert task.execute().status == TaskStatus.SUCCESS
