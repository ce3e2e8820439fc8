# ticketflow/common/issue.py
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


@dataclass
class Comment:
    author: Optional[str]
    body: str
    created: Optional[datetime]


@dataclass
class IssueLink:
    # e.g. "blocks", "is caused by"
    description: str
    target_key: str


@dataclass
class Issue:
    """An issue as returned by the issue tracker, reduced to the fields we use."""

    key: str
    summary: str = ""
    description: Optional[str] = None
    status: Optional[str] = None
    issue_type: Optional[str] = None
    priority: Optional[str] = None
    assignee: Optional[str] = None
    reporter: Optional[str] = None
    project: Optional[str] = None
    created: Optional[datetime] = None
    updated: Optional[datetime] = None
    due_date: Optional[date] = None
    labels: List[str] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)
    links: List[IssueLink] = field(default_factory=list)
    self_url: Optional[str] = None

    @property
    def number(self) -> int:
        """Numeric part of the key ("PROJ-123" -> 123), 0 when there is none."""
        if not self.key or "-" not in self.key:
            return 0
        try:
            return int(self.key.rsplit("-", 1)[1])
        except ValueError:
            return 0

    def serialize_data(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "self": self.self_url,
            "summary": self.summary,
            "description": self.description,
            "status": self.status,
            "issueType": self.issue_type,
            "priority": self.priority,
            "assignee": self.assignee,
            "reporter": self.reporter,
            "project": self.project,
            "created": self.created.isoformat() if self.created else None,
            "updated": self.updated.isoformat() if self.updated else None,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "labels": list(self.labels),
            "linkedIssues": [
                {"key": link.target_key, "linkType": link.description}
                for link in self.links
            ],
        }


@dataclass
class SearchResult:
    issues: List[Issue]
    total: int
    start_at: int = 0
    max_results: int = 0


@dataclass
class Transition:
    id: str
    name: str


@dataclass
class CreatePageResult:
    page_id: str
    page_url: str


@dataclass
class PageSummary:
    id: str
    title: str
    web_url: Optional[str] = None


class CreateIssueRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_key: str = Field(alias="projectKey", min_length=1)
    summary: str = Field(min_length=1)
    issue_type: str = Field(alias="issueType", min_length=1)
    description: Optional[str] = None
    priority: Optional[str] = None
    assignee: Optional[str] = None
    labels: Optional[List[str]] = None


class UpdateIssueRequest(BaseModel):
    """Only the fields that are set are sent to the issue tracker."""

    summary: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    assignee: Optional[str] = None
    labels: Optional[List[str]] = None


class TransitionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transition_id: Union[int, str] = Field(alias="transitionId")


class CommentRequest(BaseModel):
    body: str = Field(min_length=1)
