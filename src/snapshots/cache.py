import logging
LOGGER = logging.getLogger(__name__)

import json
import os
import threading
from abc import ABC, abstractmethod

import redis

from snapshots.entities import ENTITY_CLASSES, Entity
from snapshots.errors import CacheError
from snapshots.timeframes import EntityType


class EntityCache(ABC):
    """
    Spotify id -> resolved entity, one namespace per entity type.

    No expiry is enforced here; whatever the backing store evicts simply shows up as a miss.
    """

    @abstractmethod
    def get_many(self, entity_type: EntityType, keys: list[str]) -> list[Entity | None]:
        """Same length and order as `keys`, None for a miss."""

    @abstractmethod
    def set_many(self, entity_type: EntityType, items: dict[str, Entity]):
        pass


class InMemoryCache(EntityCache):
    def __init__(self):
        self._data: dict[EntityType, dict[str, Entity]] = {t: {} for t in EntityType}
        self._lock = threading.Lock()

    def get_many(self, entity_type: EntityType, keys: list[str]) -> list[Entity | None]:
        with self._lock:
            return [self._data[entity_type].get(k) for k in keys]

    def set_many(self, entity_type: EntityType, items: dict[str, Entity]):
        with self._lock:
            self._data[entity_type].update(items)

    def __len__(self) -> int:
        return sum(len(d) for d in self._data.values())


class RedisCache(EntityCache):
    """Each entity type lives in its own Redis hash, values are the entity's JSON."""

    def __init__(self, client: redis.Redis, hash_names: dict[EntityType, str] | None = None):
        self.client = client
        self.hash_names = hash_names or {
            EntityType.tracks: os.getenv("TRACKS_CACHE_HASH_NAME", "tracks"),
            EntityType.artists: os.getenv("ARTISTS_CACHE_HASH_NAME", "artists"),
        }

    @classmethod
    def from_url(cls, url: str | None = None) -> "RedisCache":
        url = url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        LOGGER.info(f"Using Redis cache at {url}.")
        return cls(redis.Redis.from_url(url))

    def _decode(self, entity_type: EntityType, key: str, raw: bytes | str | None) -> Entity | None:
        if raw is None:
            return None

        try:
            return ENTITY_CLASSES[entity_type].from_dict(json.loads(raw))
        except (ValueError, TypeError) as e:
            LOGGER.warning(f"Discarding unreadable cache entry {self.hash_names[entity_type]}/{key}: {e}")
            return None

    def get_many(self, entity_type: EntityType, keys: list[str]) -> list[Entity | None]:
        if not keys:
            return []

        hash_name = self.hash_names[entity_type]
        try:
            raw = self.client.hmget(hash_name, keys)
        except redis.exceptions.RedisError as e:
            LOGGER.error(f"Cache read from '{hash_name}' failed: {e}")
            raise CacheError(f"Cache read failed: {e}", hash=hash_name, n_keys=len(keys)) from e

        if len(raw) != len(keys):
            raise CacheError("Cache returned a different number of values than requested",
                             hash=hash_name, n_keys=len(keys), n_values=len(raw))

        return [self._decode(entity_type, k, r) for k, r in zip(keys, raw)]

    def set_many(self, entity_type: EntityType, items: dict[str, Entity]):
        if not items:
            return

        hash_name = self.hash_names[entity_type]
        mapping = {k: json.dumps(v.to_dict()) for k, v in items.items()}
        try:
            self.client.hset(hash_name, mapping=mapping)
        except redis.exceptions.RedisError as e:
            LOGGER.error(f"Cache write to '{hash_name}' failed: {e}")
            raise CacheError(f"Cache write failed: {e}", hash=hash_name, n_keys=len(items)) from e


_cache: EntityCache | None = None

def get_cache() -> EntityCache:
    global _cache
    if _cache is None:
        _cache = InMemoryCache() if os.getenv("TEST_MODE") else RedisCache.from_url()

    return _cache
