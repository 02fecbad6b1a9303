"""Redis client proxy and the small cache helpers used by reputation lookups.

The proxy keeps `redis_client` stable across imports while the underlying client
is swapped at runtime (fakeredis in tests).
"""

from __future__ import annotations

import redis.asyncio as redis

from app.settings import settings


class RedisProxy:
	"""Lightweight proxy that forwards attribute access to an underlying Redis client."""

	def __init__(self, client: redis.Redis):
		self._client: redis.Redis = client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	@property
	def client(self) -> redis.Redis:
		return self._client

	def __getattr__(self, item):
		return getattr(self._client, item)


_real_client = redis.from_url(settings.redis_url, decode_responses=True)
redis_client: RedisProxy = RedisProxy(_real_client)


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)


async def get_flag(key: str) -> bool | None:
	"""Read a cached boolean stored as "1"/"0"; ``None`` when absent."""
	value = await redis_client.get(key)
	if value is None:
		return None
	return value == "1"


async def set_flag(key: str, value: bool, *, ttl_seconds: int) -> None:
	await redis_client.set(key, "1" if value else "0", ex=ttl_seconds)
