"""AsyncPG pool management for the squads backend."""

from __future__ import annotations

import asyncio
from typing import Optional

import asyncpg

from app.settings import settings

_pool: Optional[asyncpg.pool.Pool] = None


async def init_pool() -> asyncpg.pool.Pool:
	global _pool
	if _pool is None:
		_pool = await asyncpg.create_pool(
			dsn=settings.postgres_url,
			min_size=settings.postgres_min_pool_size,
			max_size=settings.postgres_max_pool_size,
			command_timeout=settings.postgres_command_timeout_seconds,
			ssl="require" if settings.postgres_ssl else "disable",
			server_settings={"application_name": settings.service_name},
		)
	return _pool


async def get_pool() -> asyncpg.pool.Pool:
	if _pool is None:
		await init_pool()
	assert _pool is not None
	return _pool


async def latest_migration(timeout: float) -> Optional[str]:
	"""Return the newest applied schema version; doubles as a connectivity ping."""
	pool = await get_pool()
	async with pool.acquire() as conn:
		version = await asyncio.wait_for(
			conn.fetchval("SELECT max(version) FROM schema_migrations"),
			timeout=timeout,
		)
	return str(version) if version else None


async def close_pool() -> None:
	global _pool
	if _pool is not None:
		await _pool.close()
		_pool = None
