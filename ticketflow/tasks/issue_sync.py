# ticketflow/tasks/issue_sync.py
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from ticketflow.clients.jira import JiraClient
from ticketflow.common.issue import Issue
from ticketflow.common.result import TaskResult
from ticketflow.common.task import Task, TaskCategory
from ticketflow.config import IssueSyncConfig
from ticketflow.storage.base import LAST_SYNC_TIME, MarkerStore
from ticketflow.tasks.export import (
    SYNCED_ISSUES_FILE,
    IssueCsvWriter,
    format_linked_issues,
    format_timestamp,
    single_line,
)

logger = logging.getLogger(__name__)

TASK_ID = "issue-sync"
TASK_NAME = "Issue Sync Task"

JQL_TIME_FORMAT = "%Y-%m-%d %H:%M"


def build_jql(
    project: str,
    config: IssueSyncConfig,
    last_sync: Optional[datetime] = None,
) -> str:
    """Unresolved issues in ``project``, optionally only those updated since ``last_sync``."""
    parts = [f"project = {project}", "resolution = Unresolved"]
    if config.excluded_labels:
        labels = ", ".join(f'"{label}"' for label in config.excluded_labels)
        parts.append(f"(labels IS EMPTY OR labels NOT IN ({labels}))")
    if config.jql_filter:
        parts.append(f"({config.jql_filter})")
    if last_sync is not None:
        parts.append(f'updated >= "{last_sync.astimezone().strftime(JQL_TIME_FORMAT)}"')
    if config.min_ticket_number > 0:
        parts.append(f"key >= {project}-{config.min_ticket_number}")
    return " AND ".join(parts) + " ORDER BY key ASC"


def is_new_issue(issue: Issue, last_sync: Optional[datetime]) -> bool:
    if last_sync is None:
        return True
    if issue.created is None:
        return False
    return issue.created > last_sync


class IssueSyncBody:
    """
    Pages through the project's unresolved issues and writes them to a CSV export.

    The export is rewritten on every run. The last-sync marker is moved to this
    run's start time only when the whole sweep succeeds, so a failed run is retried
    from the same point next time.
    """

    def __init__(
        self,
        config: IssueSyncConfig,
        jira: JiraClient,
        markers: MarkerStore,
        project: str,
        data_dir: Union[str, Path],
    ):
        self.config = config
        self.jira = jira
        self.markers = markers
        self.project = project
        self.csv_path = Path(data_dir) / SYNCED_ISSUES_FILE

    def __call__(self, started_at: datetime) -> TaskResult:
        batch_size = self.config.batch_size
        min_ticket_number = self.config.min_ticket_number

        last_sync = self.markers.read(LAST_SYNC_TIME)
        if last_sync is None:
            logger.info("No previous sync time found, will fetch all unresolved issues")
        jql = build_jql(self.project, self.config, last_sync)
        logger.info(
            "Starting issue sync for project %s with JQL: %s (batch size: %d)",
            self.project,
            jql,
            batch_size,
        )

        processed = new = updated = skipped = 0
        start_at = 0
        try:
            with IssueCsvWriter(self.csv_path) as writer:
                while True:
                    result = self.jira.search_issues(jql, start_at, batch_size)
                    fetched = 0
                    for issue in result.issues:
                        fetched += 1
                        if min_ticket_number > 0 and issue.number < min_ticket_number:
                            skipped += 1
                            logger.debug(
                                "Skipping %s (below minimum ticket number %d)",
                                issue.key,
                                min_ticket_number,
                            )
                            continue

                        writer.write(issue)
                        if is_new_issue(issue, last_sync):
                            new += 1
                            self._announce(issue)
                        else:
                            updated += 1
                        processed += 1

                    logger.debug(
                        "Fetched %d issues (total processed: %d, skipped: %d)",
                        fetched,
                        processed,
                        skipped,
                    )
                    if fetched < batch_size or processed + skipped >= result.total:
                        break
                    start_at += batch_size
        except Exception as e:
            logger.error("Issue sync failed", exc_info=True)
            return TaskResult.failure(
                TASK_ID,
                started_at,
                f"Sync failed: {e}",
                metadata={"issuesProcessed": processed, "error": type(e).__name__},
            )

        self.markers.write(LAST_SYNC_TIME, started_at)
        csv_file = str(self.csv_path.resolve())
        logger.info(
            "Issue sync completed. Total: %d, New: %d, Updated: %d, Skipped: %d. CSV saved to: %s",
            processed,
            new,
            updated,
            skipped,
            csv_file,
        )
        return TaskResult.success(
            TASK_ID,
            started_at,
            f"Synced {processed} issues ({new} new, {updated} updated, {skipped} skipped)",
            metadata={
                "totalIssues": processed,
                "newIssues": new,
                "updatedIssues": updated,
                "skippedIssues": skipped,
                "csvFile": csv_file,
                "project": self.project,
            },
        )

    def _announce(self, issue: Issue) -> None:
        due = f" | Due: {format_timestamp(issue.due_date)}" if issue.due_date else ""
        links = format_linked_issues(issue)
        logger.info(
            "NEW [%s] %s | %s | %s | %s | Created: %s%s%s",
            issue.key,
            single_line(issue.summary),
            issue.priority or "None",
            issue.status or "Unknown",
            issue.assignee or "Unassigned",
            format_timestamp(issue.created),
            due,
            f" | Links: {links}" if links else "",
        )


def issue_sync_task(
    config: IssueSyncConfig,
    jira: JiraClient,
    markers: MarkerStore,
    project: str,
    data_dir: Union[str, Path],
) -> Task:
    return Task(
        task_id=TASK_ID,
        task_name=TASK_NAME,
        category=TaskCategory.SYNC,
        body=IssueSyncBody(config, jira, markers, project, data_dir),
        config=config,
    )
