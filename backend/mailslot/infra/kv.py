# mailslot/infra/kv.py

"""Key/value storage with per-key expiry.

Rate-limit markers, the moderation session and (with STORE_BACKEND=kv) the
pending messages all live behind this interface. Every method is a single
atomic round-trip; nothing here spans more than one store operation.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from itertools import islice
from typing import Callable, Dict, List, Optional, Tuple

import redis

from mailslot.errors import StorageError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        ...

    @abstractmethod
    def put_if_absent(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> bool:
        """Write only when ``key`` is not present. Returns True if written."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True only for the caller that actually removed it."""

    @abstractmethod
    def list_keys(self, prefix: str, limit: int) -> List[str]:
        """Up to ``limit`` live keys starting with ``prefix``, in no particular order."""


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store for development and tests. Not shared between workers."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _expires_at(self, ttl_seconds: Optional[int]) -> Optional[float]:
        return self._clock() + ttl_seconds if ttl_seconds else None

    def _live(self, key: str) -> Optional[str]:
        # Caller holds the lock
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return value

    def get(self, key):
        with self._lock:
            return self._live(key)

    def put(self, key, value, ttl_seconds=None):
        with self._lock:
            self._data[key] = (value, self._expires_at(ttl_seconds))

    def put_if_absent(self, key, value, ttl_seconds=None):
        with self._lock:
            if self._live(key) is not None:
                return False
            self._data[key] = (value, self._expires_at(ttl_seconds))
            return True

    def delete(self, key):
        with self._lock:
            if self._live(key) is None:
                return False
            del self._data[key]
            return True

    def list_keys(self, prefix, limit):
        with self._lock:
            keys = [k for k in list(self._data) if k.startswith(prefix)]
            return [k for k in keys if self._live(k) is not None][:limit]


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store shared by every worker process."""

    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisKeyValueStore":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get(self, key):
        try:
            return self._client.get(key)
        except redis.RedisError as e:
            logger.error("Redis GET %s failed: %s", key, e)
            raise StorageError() from e

    def put(self, key, value, ttl_seconds=None):
        try:
            self._client.set(key, value, ex=ttl_seconds or None)
        except redis.RedisError as e:
            logger.error("Redis SET %s failed: %s", key, e)
            raise StorageError() from e

    def put_if_absent(self, key, value, ttl_seconds=None):
        try:
            return bool(self._client.set(key, value, ex=ttl_seconds or None, nx=True))
        except redis.RedisError as e:
            logger.error("Redis SET NX %s failed: %s", key, e)
            raise StorageError() from e

    def delete(self, key):
        try:
            return self._client.delete(key) == 1
        except redis.RedisError as e:
            logger.error("Redis DEL %s failed: %s", key, e)
            raise StorageError() from e

    def list_keys(self, prefix, limit):
        # SCAN cost grows with the keyspace, so the listing is capped
        try:
            keys = self._client.scan_iter(match=f"{prefix}*", count=min(limit, 1000))
            # SCAN may yield a key more than once
            return list(islice(dict.fromkeys(keys), limit))
        except redis.RedisError as e:
            logger.error("Redis SCAN %s* failed: %s", prefix, e)
            raise StorageError() from e
