# ticketflow/clients/confluence.py
import logging
from typing import List, Optional

import httpx

from ticketflow.common.exceptions import WikiError
from ticketflow.common.issue import CreatePageResult, PageSummary
from ticketflow.config import ConfluenceSettings

logger = logging.getLogger(__name__)

SPACE_PAGE_LIMIT = 100


class ConfluenceClient:
    """Creates pages and lists space content through the wiki's REST API."""

    def __init__(
        self, settings: ConfluenceSettings, transport: Optional[httpx.BaseTransport] = None
    ):
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self._http = httpx.Client(
            base_url=self.base_url,
            auth=httpx.BasicAuth(settings.username, settings.api_token),
            headers={"Accept": "application/json"},
            timeout=httpx.Timeout(
                settings.read_timeout_ms / 1000,
                connect=settings.connection_timeout_ms / 1000,
            ),
            transport=transport,
        )

    def _request(self, method: str, path: str, action: str, **kwargs) -> httpx.Response:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise WikiError(f"Failed to {action}: {e}") from e
        if not response.is_success:
            logger.error("Confluence %s failed: %s %s", action, response.status_code, response.text)
            raise WikiError(
                f"Confluence API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )
        return response

    def create_page(self, space_key: str, title: str, body_html: str) -> CreatePageResult:
        """Create a page whose body is in storage format (XHTML)."""
        payload = {
            "type": "page",
            "title": title,
            "space": {"key": space_key},
            "body": {"storage": {"value": body_html, "representation": "storage"}},
        }
        response = self._request("POST", "/rest/api/content", "create page", json=payload)
        data = response.json()
        webui = (data.get("_links") or {}).get("webui", "")
        return CreatePageResult(page_id=str(data.get("id", "")), page_url=self.base_url + webui)

    def get_space_pages(self, space_key: str) -> List[PageSummary]:
        pages: List[PageSummary] = []
        start = 0
        while True:
            response = self._request(
                "GET",
                f"/rest/api/space/{space_key}/content/page",
                "list space pages",
                params={"limit": SPACE_PAGE_LIMIT, "start": start},
            )
            data = response.json()
            for node in data.get("results", []):
                webui = (node.get("_links") or {}).get("webui", "")
                pages.append(
                    PageSummary(
                        id=str(node.get("id", "")),
                        title=node.get("title", ""),
                        web_url=self.base_url + webui if webui else None,
                    )
                )
            size = data.get("size", 0)
            start += size
            if size < SPACE_PAGE_LIMIT:
                return pages

    def close(self) -> None:
        self._http.close()
