# ticketflow/reports.py
import html
import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import List

from ticketflow.clients.confluence import ConfluenceClient
from ticketflow.clients.jira import JiraClient
from ticketflow.common.issue import Issue

logger = logging.getLogger(__name__)

SEARCH_PAGE_SIZE = 100
JQL_TIME_FORMAT = "%Y-%m-%d %H:%M"


@dataclass
class ReportResult:
    page_id: str
    page_url: str
    issue_count: int

    def serialize_data(self):
        return {"pageId": self.page_id, "pageUrl": self.page_url, "issueCount": self.issue_count}


def parse_report_time(value: str) -> datetime:
    """Parse an ISO-8601 instant. Naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _cell(value) -> str:
    return f"<td>{html.escape(value or '')}</td>"


def build_report_html(issues: List[Issue], start: str, end: str, project_key: str) -> str:
    rows = "".join(
        "<tr>"
        + _cell(issue.key)
        + _cell(issue.summary)
        + _cell(issue.status)
        + _cell(issue.issue_type)
        + _cell(issue.assignee)
        + _cell(issue.created.isoformat() if issue.created else "")
        + "</tr>"
        for issue in issues
    )
    return (
        f"<p>Report of <strong>issues opened</strong> between <strong>{html.escape(start)}</strong>"
        f" and <strong>{html.escape(end)}</strong> (project: {html.escape(project_key)}).</p>"
        f"<p><strong>Total: {len(issues)}</strong> issue(s).</p>"
        '<table data-layout="default"><colgroup><col/><col/><col/><col/><col/><col/></colgroup>'
        "<thead><tr><th>Key</th><th>Summary</th><th>Status</th><th>Type</th>"
        "<th>Assignee</th><th>Created</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
    )


class IssueReportGenerator:
    """Publishes a wiki page listing the issues created in a time window."""

    def __init__(self, jira: JiraClient, wiki: ConfluenceClient):
        self.jira = jira
        self.wiki = wiki

    def fetch_created_between(
        self, project_key: str, start: datetime, end: datetime
    ) -> List[Issue]:
        start_str = start.astimezone(UTC).strftime(JQL_TIME_FORMAT)
        end_str = end.astimezone(UTC).strftime(JQL_TIME_FORMAT)
        jql = (
            f'project = "{project_key}" AND created >= "{start_str}" '
            f'AND created < "{end_str}" ORDER BY created ASC'
        )
        issues: List[Issue] = []
        start_at = 0
        while True:
            result = self.jira.search_issues(jql, start_at, SEARCH_PAGE_SIZE)
            issues.extend(result.issues)
            start_at += SEARCH_PAGE_SIZE
            if start_at >= result.total or not result.issues:
                return issues

    def generate(
        self, project_key: str, space_key: str, start: datetime, end: datetime
    ) -> ReportResult:
        if end <= start:
            raise ValueError("endTime must be after startTime")

        issues = self.fetch_created_between(project_key, start, end)
        start_str = start.astimezone(UTC).strftime(JQL_TIME_FORMAT)
        end_str = end.astimezone(UTC).strftime(JQL_TIME_FORMAT)
        logger.info("Generating wiki report for %s in space %s", project_key, space_key)

        page = self.wiki.create_page(
            space_key,
            f"Issues opened {start_str} – {end_str}",
            build_report_html(issues, start_str, end_str, project_key),
        )
        logger.info("Created wiki report: %d issues, page %s", len(issues), page.page_url)
        return ReportResult(page.page_id, page.page_url, len(issues))
