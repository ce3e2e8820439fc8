# ticketflow/tasks/stale_cleanup.py
import logging
from datetime import datetime
from typing import List, Set

from ticketflow.clients.jira import JiraClient
from ticketflow.common.exceptions import TicketFlowException
from ticketflow.common.result import TaskResult
from ticketflow.common.task import Task, TaskCategory
from ticketflow.config import StaleIssueCleanupConfig

logger = logging.getLogger(__name__)

TASK_ID = "stale-issue-cleanup"
TASK_NAME = "Stale Issue Cleanup"


class NoMatchingTransitionError(TicketFlowException):
    def __init__(self, issue_key: str, target_status: str):
        super().__init__(f"No transition found to status: {target_status}")
        self.issue_key = issue_key
        self.target_status = target_status


class StaleIssueCleanupBody:
    """Moves issues that have not been updated for ``stale_days`` into ``target_status``."""

    def __init__(self, config: StaleIssueCleanupConfig, jira: JiraClient):
        self.config = config
        self.jira = jira

    def jql(self) -> str:
        return f'updated <= -{self.config.stale_days}d AND status != "{self.config.target_status}"'

    def __call__(self, started_at: datetime) -> TaskResult:
        stale_days = self.config.stale_days
        target_status = self.config.target_status
        dry_run = self.config.dry_run
        batch_size = self.config.batch_size
        jql = self.jql()

        logger.info(
            "Starting stale issue cleanup (dry_run=%s, stale_days=%d, target_status=%s)",
            dry_run,
            stale_days,
            target_status,
        )

        processed: List[str] = []
        failed: List[str] = []
        seen: Set[str] = set()
        start_at = 0
        try:
            while True:
                result = self.jira.search_issues(jql, start_at, batch_size)
                page_new = page_failed = 0
                for issue in result.issues:
                    if issue.key in seen:
                        continue
                    seen.add(issue.key)
                    page_new += 1
                    if dry_run:
                        logger.info("[DRY-RUN] Would transition %s to %s", issue.key, target_status)
                        processed.append(issue.key)
                        continue
                    try:
                        self.transition_to_status(issue.key, target_status)
                        processed.append(issue.key)
                        logger.info("Transitioned %s to %s", issue.key, target_status)
                    except Exception as e:
                        logger.warning("Failed to transition %s: %s", issue.key, e)
                        failed.append(issue.key)
                        page_failed += 1

                if len(result.issues) < batch_size or page_new == 0:
                    break
                # Transitioned issues drop out of the query; only failures keep their place.
                start_at += batch_size if dry_run else page_failed
        except Exception as e:
            logger.error("Stale issue cleanup failed", exc_info=True)
            return TaskResult.failure(
                TASK_ID,
                started_at,
                f"Cleanup failed: {e}",
                metadata={"error": type(e).__name__},
            )

        if dry_run:
            message = f"[DRY-RUN] Would process {len(processed)} stale issues"
        else:
            message = f"Processed {len(processed)} stale issues ({len(failed)} failed)"
        logger.info("Stale issue cleanup completed: %s", message)

        metadata = {
            "processedCount": len(processed),
            "failedCount": len(failed),
            "dryRun": dry_run,
            "staleDays": stale_days,
            "targetStatus": target_status,
        }
        if failed:
            return TaskResult.failure(TASK_ID, started_at, message, metadata=metadata)
        return TaskResult.success(TASK_ID, started_at, message, metadata=metadata)

    def transition_to_status(self, issue_key: str, target_status: str) -> None:
        # Transitions are matched by name, e.g. "Close", "Done", "Resolve"
        for transition in self.jira.get_transitions(issue_key):
            if transition.name.casefold() == target_status.casefold():
                self.jira.transition_issue(issue_key, transition.id)
                return
        raise NoMatchingTransitionError(issue_key, target_status)


def stale_issue_cleanup_task(config: StaleIssueCleanupConfig, jira: JiraClient) -> Task:
    return Task(
        task_id=TASK_ID,
        task_name=TASK_NAME,
        category=TaskCategory.CLEANUP,
        body=StaleIssueCleanupBody(config, jira),
        config=config,
    )
