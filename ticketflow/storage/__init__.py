from .base import LAST_COMMENT_CHECK_TIME, LAST_SYNC_TIME, MarkerStore
from .file_storage import FileMarkerStore
from .memory_storage import MemoryMarkerStore
from .redis_storage import RedisMarkerStore

__all__ = [
    "LAST_COMMENT_CHECK_TIME",
    "LAST_SYNC_TIME",
    "FileMarkerStore",
    "MarkerStore",
    "MemoryMarkerStore",
    "RedisMarkerStore",
]
