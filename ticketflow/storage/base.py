# ticketflow/storage/base.py
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

LAST_SYNC_TIME = "last-sync-time"
LAST_COMMENT_CHECK_TIME = "last-comment-check-time"


class MarkerStore(ABC):
    """Named timestamps that tasks carry from one run to the next."""

    @abstractmethod
    def read(self, name: str) -> Optional[datetime]: ...

    @abstractmethod
    def write(self, name: str, value: datetime) -> None: ...
