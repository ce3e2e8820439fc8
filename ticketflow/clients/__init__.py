from .confluence import ConfluenceClient
from .jira import JiraClient

__all__ = ["ConfluenceClient", "JiraClient"]
