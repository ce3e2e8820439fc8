"""Pass-through routes for issues in the issue tracker."""
import logging
from typing import Any, Dict, List

from litestar import Controller, delete, get, post, put
from litestar.params import Parameter
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED, HTTP_204_NO_CONTENT

from ticketflow.clients.jira import JiraClient
from ticketflow.common.issue import (
    CommentRequest,
    CreateIssueRequest,
    TransitionRequest,
    UpdateIssueRequest,
)

logger = logging.getLogger(__name__)


class TicketsController(Controller):
    path = "/api/tickets"

    @get(sync_to_thread=True)
    def search_tickets(
        self,
        jira: JiraClient,
        jql: str,
        start_at: int = Parameter(query="startAt", default=0, ge=0),
        max_results: int = Parameter(query="maxResults", default=50, ge=1),
    ) -> Dict[str, Any]:
        logger.info("Searching tickets with JQL: %s", jql)
        result = jira.search_issues(jql, start_at, max_results)
        return {
            "startAt": start_at,
            "maxResults": max_results,
            "total": result.total,
            "issues": [issue.serialize_data() for issue in result.issues],
        }

    @get("/{issue_key:str}", sync_to_thread=True)
    def get_ticket(self, jira: JiraClient, issue_key: str) -> Dict[str, Any]:
        logger.info("Getting ticket: %s", issue_key)
        return jira.get_issue(issue_key).serialize_data()

    @post(status_code=HTTP_201_CREATED, sync_to_thread=True)
    def create_ticket(self, jira: JiraClient, data: CreateIssueRequest) -> Dict[str, Any]:
        logger.info("Creating ticket in project: %s", data.project_key)
        key = jira.create_issue(data)
        return jira.get_issue(key).serialize_data()

    @put("/{issue_key:str}", sync_to_thread=True)
    def update_ticket(
        self, jira: JiraClient, issue_key: str, data: UpdateIssueRequest
    ) -> Dict[str, Any]:
        logger.info("Updating ticket: %s", issue_key)
        jira.update_issue(issue_key, data)
        return jira.get_issue(issue_key).serialize_data()

    @delete("/{issue_key:str}", status_code=HTTP_204_NO_CONTENT, sync_to_thread=True)
    def delete_ticket(
        self,
        jira: JiraClient,
        issue_key: str,
        delete_subtasks: bool = Parameter(query="deleteSubtasks", default=False),
    ) -> None:
        logger.info("Deleting ticket: %s", issue_key)
        jira.delete_issue(issue_key, delete_subtasks)

    @get("/{issue_key:str}/transitions", sync_to_thread=True)
    def get_transitions(self, jira: JiraClient, issue_key: str) -> List[Dict[str, str]]:
        logger.info("Getting transitions for ticket: %s", issue_key)
        return [{"id": t.id, "name": t.name} for t in jira.get_transitions(issue_key)]

    @post("/{issue_key:str}/transitions", status_code=HTTP_200_OK, sync_to_thread=True)
    def transition_ticket(
        self, jira: JiraClient, issue_key: str, data: TransitionRequest
    ) -> Dict[str, Any]:
        logger.info("Transitioning ticket %s with transition %s", issue_key, data.transition_id)
        jira.transition_issue(issue_key, str(data.transition_id))
        return jira.get_issue(issue_key).serialize_data()

    @post("/{issue_key:str}/comments", status_code=HTTP_201_CREATED, sync_to_thread=True)
    def add_comment(self, jira: JiraClient, issue_key: str, data: CommentRequest) -> None:
        logger.info("Adding comment to ticket: %s", issue_key)
        jira.add_comment(issue_key, data.body)
