"""Reputation profile snapshots refreshed from Ethos."""

from __future__ import annotations

import logging

from app.infra.auth import AuthenticatedUser
from app.squads.domain import expiry, repo as repo_module
from app.squads.domain.exceptions import ExternalDependencyError, NotFoundError, ValidationError
from app.squads.infra.ethos import EthosClient, EthosUnavailable
from app.squads.schemas import dto

logger = logging.getLogger(__name__)


class ProfilesService:
	def __init__(
		self,
		*,
		repository: repo_module.SquadsRepository | None = None,
		ethos: EthosClient | None = None,
	) -> None:
		self.repo = repository or repo_module.SquadsRepository()
		self.ethos = ethos or EthosClient()

	async def get_profile(self, user: AuthenticatedUser) -> dto.ProfileResponse:
		profile = await self.repo.get_profile(user.uuid)
		if profile is None:
			raise NotFoundError("profile_not_found", "Profile not found")
		return dto.ProfileResponse.model_validate(profile)

	async def sync_profile(self, user: AuthenticatedUser, payload: dto.ProfileSyncRequest) -> dto.ProfileResponse:
		"""Pull score and validator status for the caller's Ethos profile.

		The profile id comes from the request or from the stored profile.
		"""
		existing = await self.repo.get_profile(user.uuid)
		profile_id = payload.ethos_profile_id or (existing.ethos_profile_id if existing else None)
		if profile_id is None:
			raise ValidationError("ethos_profile_required", "An Ethos profile id is required to sync reputation")
		try:
			ethos_user = await self.ethos.get_user_by_profile_id(profile_id)
			if ethos_user is None:
				raise NotFoundError("ethos_profile_not_found", "Ethos profile not found")
			is_validator = await self.ethos.owns_validator(profile_id)
		except EthosUnavailable as exc:
			logger.warning("ethos sync failed", extra={"user_id": user.id, "profile_id": profile_id})
			raise ExternalDependencyError("ethos_unavailable", "Reputation service is unavailable") from exc
		display_name = payload.display_name or ethos_user.display_name or user.display_name
		profile = await self.repo.upsert_profile(
			user.uuid,
			display_name=display_name,
			ethos_profile_id=profile_id,
			ethos_score=ethos_user.score,
			is_validator=is_validator,
			synced_at=expiry.utcnow(),
		)
		logger.info("profile synced", extra={"user_id": user.id, "score": ethos_user.score})
		return dto.ProfileResponse.model_validate(profile)
