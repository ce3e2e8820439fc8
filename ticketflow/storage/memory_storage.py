# ticketflow/storage/memory_storage.py
from datetime import datetime
from threading import RLock
from typing import Dict, Optional

from ticketflow.storage.base import MarkerStore


class MemoryMarkerStore(MarkerStore):
    def __init__(self):
        self._markers: Dict[str, datetime] = {}
        self._lock = RLock()

    def read(self, name: str) -> Optional[datetime]:
        with self._lock:
            return self._markers.get(name)

    def write(self, name: str, value: datetime) -> None:
        with self._lock:
            self._markers[name] = value
