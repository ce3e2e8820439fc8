from .comment_watch import comment_watch_task
from .issue_sync import issue_sync_task
from .stale_cleanup import stale_issue_cleanup_task
from .wiki_test_page import wiki_test_page_task

__all__ = [
    "comment_watch_task",
    "issue_sync_task",
    "stale_issue_cleanup_task",
    "wiki_test_page_task",
]
