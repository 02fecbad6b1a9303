"""Reputation score and mutual-vouch collaborators used by eligibility and quotas."""

from __future__ import annotations

import logging
from typing import Protocol
from uuid import UUID

from app.infra import redis as redis_cache
from app.settings import settings
from app.squads.domain import repo as repo_module
from app.squads.infra.ethos import EthosClient, EthosUnavailable, profile_key

logger = logging.getLogger(__name__)

_VOUCH_CACHE_PREFIX = "squads:vouch"


class ReputationSource(Protocol):
	"""Given a user, return an integer score or ``None``."""

	async def get_score(self, user_id: UUID) -> int | None:
		...

	async def is_validator(self, user_id: UUID) -> bool:
		...


class VouchSource(Protocol):
	"""Report whether two users share a mutual vouch."""

	async def has_mutual_vouch(self, user_id: UUID, other_id: UUID) -> bool:
		...


class ProfileReputationSource:
	"""Reads the last synced score from ``squad_profile``; refreshed only by profile sync."""

	def __init__(self, *, repository: repo_module.SquadsRepository | None = None) -> None:
		self.repo = repository or repo_module.SquadsRepository()

	async def get_score(self, user_id: UUID) -> int | None:
		profile = await self.repo.get_profile(user_id)
		return profile.ethos_score if profile else None

	async def is_validator(self, user_id: UUID) -> bool:
		profile = await self.repo.get_profile(user_id)
		return bool(profile and profile.is_validator)


class EthosVouchSource:
	"""Checks mutual vouches against Ethos and caches positive and negative answers.

	A missing profile id or an unreachable API answers ``False``.
	"""

	def __init__(
		self,
		*,
		repository: repo_module.SquadsRepository | None = None,
		client: EthosClient | None = None,
		cache_ttl_seconds: int | None = None,
	) -> None:
		self.repo = repository or repo_module.SquadsRepository()
		self.client = client or EthosClient()
		self.cache_ttl_seconds = cache_ttl_seconds if cache_ttl_seconds is not None else settings.reputation_cache_ttl_seconds

	async def has_mutual_vouch(self, user_id: UUID, other_id: UUID) -> bool:
		user_profile = await self.repo.get_profile(user_id)
		other_profile = await self.repo.get_profile(other_id)
		if not user_profile or not other_profile:
			return False
		if not user_profile.ethos_profile_id or not other_profile.ethos_profile_id:
			return False
		cache_key = f"{_VOUCH_CACHE_PREFIX}:{user_profile.ethos_profile_id}:{other_profile.ethos_profile_id}"
		cached = await redis_cache.get_flag(cache_key)
		if cached is not None:
			return cached
		try:
			vouchers = await self.client.get_mutual_vouchers(user_profile.ethos_profile_id)
		except EthosUnavailable:
			return False
		result = profile_key(other_profile.ethos_profile_id) in vouchers
		await redis_cache.set_flag(cache_key, result, ttl_seconds=self.cache_ttl_seconds)
		return result
