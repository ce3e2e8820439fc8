# ticketflow/tasks/wiki_test_page.py
import html
from datetime import datetime

from ticketflow.clients.confluence import ConfluenceClient
from ticketflow.common.result import TaskResult
from ticketflow.common.task import Task, TaskCategory
from ticketflow.config import WikiTestPageConfig

TASK_ID = "wiki-test-page"
TASK_NAME = "Wiki test page (create page in configured space)"

PAGE_TITLE = "Ticket Flow – wiki test page"


def build_page_body(space_key: str) -> str:
    return (
        f"<p>This page was created by the <strong>Ticket Flow</strong> maintenance task "
        f"<code>{TASK_ID}</code>.</p>"
        f"<p>If you see this, wiki connectivity and the configured space "
        f"(<strong>{html.escape(space_key or '')}</strong>) are working.</p>"
        f"<p><em>You can delete this page if it was only used for testing.</em></p>"
    )


class WikiTestPageBody:
    """Creates a page in the default space to prove wiki connectivity and permissions."""

    def __init__(self, wiki: ConfluenceClient, space_key: str):
        self.wiki = wiki
        self.space_key = space_key

    def __call__(self, started_at: datetime) -> TaskResult:
        page = self.wiki.create_page(self.space_key, PAGE_TITLE, build_page_body(self.space_key))
        return TaskResult.success(
            TASK_ID,
            started_at,
            f"Test page created in space {self.space_key}",
            metadata={
                "pageId": page.page_id,
                "pageUrl": page.page_url,
                "spaceKey": self.space_key,
            },
        )


def wiki_test_page_task(
    config: WikiTestPageConfig, wiki: ConfluenceClient, space_key: str
) -> Task:
    return Task(
        task_id=TASK_ID,
        task_name=TASK_NAME,
        category=TaskCategory.MAINTENANCE,
        body=WikiTestPageBody(wiki, space_key),
        config=config,
    )
