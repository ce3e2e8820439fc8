# ticketflow/tasks/comment_watch.py
import logging
import re
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional, Union

from ticketflow.clients.jira import JiraClient
from ticketflow.common.issue import Comment
from ticketflow.common.result import TaskResult
from ticketflow.common.task import Task, TaskCategory
from ticketflow.config import CommentWatchConfig
from ticketflow.storage.base import LAST_COMMENT_CHECK_TIME, MarkerStore
from ticketflow.tasks.export import SYNCED_ISSUES_FILE, format_timestamp, read_issue_keys

logger = logging.getLogger(__name__)

TASK_ID = "comment-watch"
TASK_NAME = "Comment Watch Task"

NOTIFICATION_LOG_FILE = "comment-notifications.log"
CONSOLE_SNIPPET_LENGTH = 100


@lru_cache(maxsize=64)
def _compile_author_pattern(pattern: str) -> "re.Pattern[str]":
    regex = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(regex, re.IGNORECASE)


def matches_author_pattern(author: Optional[str], pattern: Optional[str]) -> bool:
    """Case-insensitive whole-name match where ``*`` matches any run of characters."""
    if not author or not pattern:
        return False
    return _compile_author_pattern(pattern).fullmatch(author) is not None


def is_automated_author(author: Optional[str], patterns: Iterable[str]) -> bool:
    return any(matches_author_pattern(author, pattern) for pattern in patterns)


def truncate(text: Optional[str], max_length: int) -> str:
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def notification_line(issue_key: str, author: str, comment: Comment, max_length: int) -> str:
    snippet = truncate(comment.body, max_length).replace("\n", " ").replace("\r", "")
    return (
        f"[{format_timestamp(comment.created)}] {issue_key} | "
        f"Author: {author} | Comment: {snippet}"
    )


class CommentWatchBody:
    """
    Reports comments added since the last sweep on every issue in the sync export.

    Each new comment from a non-automated author produces a log line and a line
    appended to the notification log. A failure on one issue is logged and the
    sweep moves on; the check marker is saved once the sweep is over.
    """

    def __init__(
        self,
        config: CommentWatchConfig,
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
        self.notification_log = Path(data_dir) / NOTIFICATION_LOG_FILE

    def __call__(self, started_at: datetime) -> TaskResult:
        issue_keys = read_issue_keys(self.csv_path)
        if not issue_keys:
            logger.info("No active issues found in %s. Skipping comment check.", self.csv_path)
            return TaskResult.success(
                TASK_ID,
                started_at,
                "No active issues to check",
                metadata={"totalIssuesChecked": 0, "newCommentsFound": 0},
            )

        last_check = self.markers.read(LAST_COMMENT_CHECK_TIME)
        if last_check is None:
            logger.info("No previous comment check time found, will fetch all comments")

        checked = found = issues_with_new = 0
        for issue_key in issue_keys:
            try:
                issue_new = self._check_issue(issue_key, last_check)
            except Exception as e:
                logger.warning("Failed to check comments for issue %s: %s", issue_key, e)
                continue

            checked += 1
            found += issue_new
            if issue_new:
                issues_with_new += 1

        self.markers.write(LAST_COMMENT_CHECK_TIME, started_at)
        logger.info(
            "Comment watch completed. Issues checked: %d, New comments: %d, "
            "Issues with new comments: %d",
            checked,
            found,
            issues_with_new,
        )
        return TaskResult.success(
            TASK_ID,
            started_at,
            f"Checked {checked} issues, found {found} new comments across {issues_with_new} issues",
            metadata={
                "totalIssuesChecked": checked,
                "newCommentsFound": found,
                "issuesWithNewComments": issues_with_new,
                "project": self.project,
            },
        )

    def _check_issue(self, issue_key: str, last_check: Optional[datetime]) -> int:
        issue = self.jira.get_issue(issue_key)
        new = 0
        for comment in issue.comments:
            if comment.created is None:
                continue
            if last_check is not None and comment.created <= last_check:
                continue
            author = comment.author or "Unknown"
            if self.config.filter_automated_comments and is_automated_author(
                author, self.config.automated_author_patterns
            ):
                logger.debug("Skipping automated comment from '%s' on %s", author, issue_key)
                continue
            new += 1
            self._notify(issue_key, author, comment)
        return new

    def _notify(self, issue_key: str, author: str, comment: Comment) -> None:
        logger.info(
            "COMMENT [%s] by %s | %s",
            issue_key,
            author,
            truncate(comment.body, CONSOLE_SNIPPET_LENGTH),
        )
        line = notification_line(issue_key, author, comment, self.config.max_comment_length)
        try:
            self.notification_log.parent.mkdir(parents=True, exist_ok=True)
            with self.notification_log.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.error("Failed to append to notification log: %s", e)


def comment_watch_task(
    config: CommentWatchConfig,
    jira: JiraClient,
    markers: MarkerStore,
    project: str,
    data_dir: Union[str, Path],
) -> Task:
    return Task(
        task_id=TASK_ID,
        task_name=TASK_NAME,
        category=TaskCategory.NOTIFICATION,
        body=CommentWatchBody(config, jira, markers, project, data_dir),
        config=config,
    )
