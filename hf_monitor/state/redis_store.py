"""Redis-backed key-value store for cooldown records and throttle timers."""
from __future__ import annotations

import logging

import redis.asyncio as redis

from ..config import StateConfig
from ..interfaces.key_value_store import KeyValueStore

logger = logging.getLogger(__name__)

METADATA_SUFFIX = ":metadata"


class RedisStore:
    """KeyValueStore on top of a Redis client.

    Values are plain strings with Redis-native expiration. Metadata lives
    under a sibling key (``<key>:metadata``) with the same TTL.
    """

    def __init__(self, client: redis.Redis, key_prefix: str = "") -> None:
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "") -> RedisStore:
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
        return cls(client, key_prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str | None:
        return await self._client.get(self._key(key))

    async def put(
        self,
        key: str,
        value: str,
        expiration_ttl: int | None = None,
        metadata: str | None = None,
    ) -> None:
        full_key = self._key(key)
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.set(full_key, value, ex=expiration_ttl)
            if metadata is not None:
                pipe.set(full_key + METADATA_SUFFIX, metadata, ex=expiration_ttl)
            await pipe.execute()

    async def close(self) -> None:
        await self._client.aclose()


def build_store(config: StateConfig) -> KeyValueStore | None:
    """Return a store for the configured Redis URL, or None when unset."""
    if not config.redis_url:
        logger.info("No state store configured, alert cooldowns are disabled")
        return None
    logger.info("Using Redis state store at %s", config.redis_url.split("@")[-1])
    return RedisStore.from_url(config.redis_url, config.key_prefix)
