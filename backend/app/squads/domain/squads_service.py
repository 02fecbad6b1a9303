"""Squad lifecycle: creation, membership changes, captaincy and dismantling."""

from __future__ import annotations

import logging
from uuid import UUID

import asyncpg

from app.infra.auth import AuthenticatedUser
from app.infra.postgres import get_pool
from app.obs import metrics as obs_metrics
from app.squads.domain import expiry, models, policies, repo as repo_module
from app.squads.domain.exceptions import InvalidStateError, NotFoundError
from app.squads.infra import reputation as reputation_module
from app.squads.schemas import dto

logger = logging.getLogger(__name__)

_MAX_PAGE_SIZE = 50


class SquadsService:
	"""Owns every write to ``squad`` and ``squad_member``."""

	def __init__(
		self,
		*,
		repository: repo_module.SquadsRepository | None = None,
		reputation: reputation_module.ReputationSource | None = None,
	) -> None:
		self.repo = repository or repo_module.SquadsRepository()
		self.reputation = reputation or reputation_module.ProfileReputationSource(repository=self.repo)

	async def _response(
		self,
		squad: models.Squad,
		*,
		conn: asyncpg.Connection | None = None,
	) -> dto.SquadResponse:
		members = await self.repo.list_members(squad.id, conn=conn)
		response = dto.SquadResponse.model_validate(squad)
		response.members = [dto.MemberResponse.model_validate(member) for member in members]
		return response

	async def _require_member(
		self,
		squad_id: UUID,
		member_id: UUID,
		*,
		conn: asyncpg.Connection,
	) -> models.SquadMember:
		member = await self.repo.get_member_by_id(member_id, conn=conn)
		if member is None or member.squad_id != squad_id:
			raise NotFoundError("member_not_found", "Member not found in this squad")
		return member

	# --- Reads --------------------------------------------------------------

	async def get_squad(self, squad_id: UUID) -> dto.SquadResponse:
		squad = policies.require_squad(await self.repo.get_squad(squad_id))
		return await self._response(squad)

	async def list_squads(self, *, page: int = 1, limit: int = 20, active_only: bool = False) -> dto.SquadListResponse:
		page = max(page, 1)
		limit = max(1, min(limit, _MAX_PAGE_SIZE))
		squads, total = await self.repo.list_squads(
			limit=limit,
			offset=(page - 1) * limit,
			active_only=active_only,
		)
		return dto.SquadListResponse(
			items=[dto.SquadResponse.model_validate(squad) for squad in squads],
			total=total,
			page=page,
			limit=limit,
		)

	async def list_user_squads(self, user_id: UUID) -> list[dto.SquadResponse]:
		squads = await self.repo.list_user_squads(user_id)
		return [await self._response(squad) for squad in squads]

	async def creation_quota(self, user_id: UUID, *, conn: asyncpg.Connection | None = None) -> dto.CreationQuotaResponse:
		score = await self.reputation.get_score(user_id)
		is_validator = await self.reputation.is_validator(user_id)
		max_allowed = policies.squad_quota(score, is_validator=is_validator)
		current = await self.repo.count_created_squads(user_id, conn=conn)
		return dto.CreationQuotaResponse(
			can_create=current < max_allowed,
			current_count=current,
			max_allowed=max_allowed,
			score=score,
		)

	# --- Mutations ----------------------------------------------------------

	async def create_squad(self, user: AuthenticatedUser, payload: dto.SquadCreateRequest) -> dto.SquadResponse:
		creator_id = user.uuid
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await self.repo.lock_creator(creator_id, conn=conn)
				quota = await self.creation_quota(creator_id, conn=conn)
				if not quota.can_create:
					raise policies.quota_exhausted(quota.max_allowed)
				squad = await self.repo.create_squad(
					conn=conn,
					name=payload.name,
					description=payload.description,
					avatar_url=payload.avatar_url,
					min_size=models.SQUAD_MIN_SIZE,
					max_size=policies.clamp_max_size(payload.max_size),
					is_fixed_size=payload.is_fixed_size,
					creator_id=creator_id,
				)
				await self.repo.insert_member(conn=conn, squad_id=squad.id, user_id=creator_id, role=payload.role)
				squad = await self.repo.refresh_squad_activity(squad.id, conn=conn)
				response = await self._response(squad, conn=conn)
		obs_metrics.inc_squad_created()
		logger.info("squad created", extra={"squad_id": str(squad.id), "creator_id": str(creator_id)})
		return response

	async def update_squad(
		self,
		user: AuthenticatedUser,
		squad_id: UUID,
		payload: dto.SquadUpdateRequest,
	) -> dto.SquadResponse:
		fields = payload.model_dump(exclude_unset=True)
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				squad = policies.require_squad(await self.repo.get_squad(squad_id, conn=conn, for_update=True))
				policies.assert_captain(squad, user.uuid, "update the squad")
				if fields.get("max_size") is not None:
					fields["max_size"] = policies.clamp_max_size(fields["max_size"])
					policies.assert_max_size_fits(fields["max_size"], squad.member_count)
					open_positions = await self.repo.count_accepting_positions(squad_id, conn=conn, now=expiry.utcnow())
					policies.assert_positions_fit(fields["max_size"], squad.member_count, open_positions)
				else:
					fields.pop("max_size", None)
				if "name" in fields and not (fields["name"] or "").strip():
					fields.pop("name")
				squad = await self.repo.update_squad(squad_id, conn=conn, fields=fields)
				return await self._response(squad, conn=conn)

	async def change_member_role(
		self,
		user: AuthenticatedUser,
		squad_id: UUID,
		member_id: UUID,
		role: models.SquadRole,
	) -> dto.MemberResponse:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				squad = policies.require_squad(await self.repo.get_squad(squad_id, conn=conn, for_update=True))
				policies.assert_captain(squad, user.uuid, "change member roles")
				member = await self._require_member(squad_id, member_id, conn=conn)
				updated = await self.repo.update_member_role(member.id, role, conn=conn)
		obs_metrics.inc_membership_change("role_changed")
		return dto.MemberResponse.model_validate(updated)

	async def remove_member(self, user: AuthenticatedUser, squad_id: UUID, member_id: UUID) -> dto.SquadResponse:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				squad = policies.require_squad(await self.repo.get_squad(squad_id, conn=conn, for_update=True))
				policies.assert_captain(squad, user.uuid, "remove members")
				member = await self._require_member(squad_id, member_id, conn=conn)
				if member.user_id == squad.captain_id:
					raise InvalidStateError(
						"captain_cannot_be_removed",
						"Captain cannot remove themselves. Transfer captaincy first.",
					)
				await self.repo.delete_member(member.id, conn=conn)
				squad = await self.repo.refresh_squad_activity(squad_id, conn=conn)
				response = await self._response(squad, conn=conn)
		obs_metrics.inc_membership_change("removed")
		return response

	async def leave_squad(self, user: AuthenticatedUser, squad_id: UUID) -> None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				squad = policies.require_squad(await self.repo.get_squad(squad_id, conn=conn, for_update=True))
				if squad.captain_id == user.uuid:
					raise InvalidStateError(
						"captain_cannot_leave",
						"Captain cannot leave. Transfer captaincy first or dismantle the squad.",
					)
				member = await self.repo.get_member(squad_id, user.uuid, conn=conn)
				if member is None:
					raise NotFoundError("not_a_member", "You are not a member of this squad")
				await self.repo.delete_member(member.id, conn=conn)
				await self.repo.refresh_squad_activity(squad_id, conn=conn)
		obs_metrics.inc_membership_change("left")

	async def transfer_captaincy(
		self,
		user: AuthenticatedUser,
		squad_id: UUID,
		new_captain_id: UUID,
	) -> dto.SquadResponse:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				squad = policies.require_squad(await self.repo.get_squad(squad_id, conn=conn, for_update=True))
				policies.assert_captain(squad, user.uuid, "transfer captaincy")
				if await self.repo.get_member(squad_id, new_captain_id, conn=conn) is None:
					raise InvalidStateError("new_captain_not_member", "New captain must be a member of the squad")
				if new_captain_id != squad.captain_id:
					await self.repo.set_captain(squad_id, new_captain_id, conn=conn)
				squad = policies.require_squad(await self.repo.get_squad(squad_id, conn=conn))
				response = await self._response(squad, conn=conn)
		obs_metrics.inc_membership_change("captain_transferred")
		return response

	async def dismantle_squad(self, user: AuthenticatedUser, squad_id: UUID) -> None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				squad = policies.require_squad(await self.repo.get_squad(squad_id, conn=conn, for_update=True))
				policies.assert_can_dismantle(squad, user.uuid)
				await self.repo.delete_squad(squad_id, conn=conn)
		obs_metrics.inc_squad_dismantled()
		logger.info("squad dismantled", extra={"squad_id": str(squad_id), "actor_id": user.id})

	async def add_member(
		self,
		squad_id: UUID,
		user_id: UUID,
		role: models.SquadRole,
		*,
		conn: asyncpg.Connection,
	) -> tuple[models.SquadMember, models.Squad]:
		"""Insert a member inside the caller's transaction.

		Locks the squad row, enforces capacity and uniqueness, then recomputes
		``is_active``. Returns the new member and the refreshed squad.
		"""
		squad = policies.require_squad(await self.repo.get_squad(squad_id, conn=conn, for_update=True))
		if await self.repo.get_member(squad_id, user_id, conn=conn) is not None:
			raise InvalidStateError("already_member", "User is already a member of this squad")
		policies.assert_has_room(squad, squad.member_count)
		member = await self.repo.insert_member(conn=conn, squad_id=squad_id, user_id=user_id, role=role)
		squad = await self.repo.refresh_squad_activity(squad_id, conn=conn)
		obs_metrics.inc_membership_change("added")
		return member, squad
