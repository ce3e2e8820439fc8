# ticketflow/tasks/export.py
import csv
import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional, Union

from ticketflow.common.issue import Issue

logger = logging.getLogger(__name__)

SYNCED_ISSUES_FILE = "synced-issues.csv"
CSV_HEADER = [
    "Key",
    "Summary",
    "Priority",
    "Status",
    "Assignee",
    "Created Date",
    "Updated Date",
    "Due Date",
    "Linked Issues",
]
DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"

_CONTROL_CHARS = re.compile(r"[\r\n\t]+")


def format_timestamp(value: Union[datetime, date, None]) -> str:
    """Render a timestamp in local time, or "" when absent."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.astimezone().strftime(DISPLAY_FORMAT)
    return value.strftime(DISPLAY_FORMAT)


def format_linked_issues(issue: Issue) -> str:
    """e.g. "is caused by NOC-789, blocks LM-456" """
    return ", ".join(f"{link.description} {link.target_key}" for link in issue.links)


def single_line(text: Optional[str]) -> str:
    if not text:
        return ""
    return _CONTROL_CHARS.sub(" ", text).strip()


def issue_row(issue: Issue) -> List[str]:
    return [
        issue.key,
        issue.summary or "",
        issue.priority or "",
        issue.status or "",
        issue.assignee or "Unassigned",
        format_timestamp(issue.created),
        format_timestamp(issue.updated),
        format_timestamp(issue.due_date),
        format_linked_issues(issue),
    ]


class IssueCsvWriter:
    """Rewrites the export file on open and flushes after every row."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._file = None
        self._writer = None

    def __enter__(self) -> "IssueCsvWriter":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("w", encoding="utf-8", newline="")
        self._writer = csv.writer(self._file, lineterminator="\n")
        self._writer.writerow(CSV_HEADER)
        self._file.flush()
        return self

    def write(self, issue: Issue) -> None:
        self._writer.writerow(issue_row(issue))
        self._file.flush()

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self._writer = None


def read_issue_keys(path: Union[str, Path]) -> List[str]:
    """Issue keys from the first column of an export, header and blank lines skipped."""
    path = Path(path)
    if not path.exists():
        logger.warning("CSV file not found: %s", path)
        return []

    keys = []
    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.reader(f)
        next(reader, None)
        for row in reader:
            if row and row[0].strip():
                keys.append(row[0].strip())
    return keys
