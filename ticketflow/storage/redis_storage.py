# ticketflow/storage/redis_storage.py
import logging
from datetime import datetime
from typing import Optional

import redis

from ticketflow.storage.base import MarkerStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "ticketflow:marker:"


class RedisMarkerStore(MarkerStore):
    def __init__(self, connection_pool=None, redis_client=None):
        if redis_client:
            self.redis_client = redis_client
            if not getattr(self.redis_client, "decode_responses", False):
                self.redis_client = redis.Redis(
                    connection_pool=self.redis_client.connection_pool,
                    decode_responses=True,
                )
        elif connection_pool:
            self.redis_client = redis.Redis(
                connection_pool=connection_pool, decode_responses=True
            )
        else:
            self.redis_client = redis.Redis(
                host="localhost", port=6379, db=0, decode_responses=True
            )

    @classmethod
    def from_url(cls, url: str) -> "RedisMarkerStore":
        return cls(redis_client=redis.Redis.from_url(url, decode_responses=True))

    def read(self, name: str) -> Optional[datetime]:
        value = self.redis_client.get(KEY_PREFIX + name)
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            logger.warning("Ignoring malformed marker %s: %r", name, value)
            return None

    def write(self, name: str, value: datetime) -> None:
        self.redis_client.set(KEY_PREFIX + name, value.isoformat())
