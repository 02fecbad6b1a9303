"""Captain-to-user invitations."""

from __future__ import annotations

import logging
from uuid import UUID

from app.infra.auth import AuthenticatedUser
from app.infra.postgres import get_pool
from app.obs import metrics as obs_metrics
from app.squads.domain import (
	expiry,
	models,
	notifications_service,
	policies,
	positions_service,
	repo as repo_module,
	squads_service,
)
from app.squads.domain.exceptions import (
	AuthorizationError,
	ExpiredError,
	InvalidStateError,
	NotFoundError,
)
from app.squads.schemas import dto

logger = logging.getLogger(__name__)


def _require_invite(invite: models.SquadInvite | None) -> models.SquadInvite:
	if invite is None:
		raise NotFoundError("invite_not_found", "Invite not found")
	return invite


def _invite_response(invite: models.SquadInvite, now=None) -> dto.InviteResponse:
	return dto.InviteResponse.model_validate(expiry.with_effective_status(invite, now))


class InvitesService:
	"""PENDING invites move once to ACCEPTED, DECLINED, CANCELLED or EXPIRED."""

	def __init__(
		self,
		*,
		repository: repo_module.SquadsRepository | None = None,
		squads: squads_service.SquadsService | None = None,
		positions: positions_service.PositionsService | None = None,
		notifications: notifications_service.NotificationService | None = None,
	) -> None:
		self.repo = repository or repo_module.SquadsRepository()
		self.squads = squads or squads_service.SquadsService(repository=self.repo)
		self.notifications = notifications or notifications_service.NotificationService(repository=self.repo)
		self.positions = positions or positions_service.PositionsService(
			repository=self.repo,
			squads=self.squads,
			notifications=self.notifications,
		)

	async def create_invite(
		self,
		user: AuthenticatedUser,
		squad_id: UUID,
		payload: dto.InviteCreateRequest,
	) -> dto.InviteResponse:
		now = expiry.utcnow()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				squad = policies.require_squad(await self.repo.get_squad(squad_id, conn=conn, for_update=True))
				policies.assert_captain(squad, user.uuid, "send invites")
				policies.assert_has_room(squad, squad.member_count)
				if await self.repo.get_member(squad_id, payload.invitee_id, conn=conn) is not None:
					raise InvalidStateError("already_member", "User is already a member of this squad")
				existing = await self.repo.get_pending_invite(squad_id, payload.invitee_id, conn=conn)
				if existing is not None:
					if not expiry.is_lapsed(existing.expires_at, now):
						raise InvalidStateError("invite_pending", "User already has a pending invite to this squad")
					await self.repo.set_invite_status(
						existing.id, models.InviteStatus.EXPIRED, conn=conn, responded_at=now
					)
				invite = await self.repo.create_invite(
					conn=conn,
					squad_id=squad_id,
					inviter_id=user.uuid,
					invitee_id=payload.invitee_id,
					role=payload.role,
					message=payload.message,
					expires_at=now + models.INVITE_EXPIRY,
				)
		obs_metrics.inc_invite_transition(models.InviteStatus.PENDING.value)
		return _invite_response(invite, now)

	async def accept_invite(self, user: AuthenticatedUser, invite_id: UUID) -> dto.SquadResponse:
		now = expiry.utcnow()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				invite = _require_invite(await self.repo.get_invite(invite_id, conn=conn))
				if invite.invitee_id != user.uuid:
					raise AuthorizationError("not_invitee", "Only the invitee can accept this invite")
				squad = policies.require_squad(
					await self.repo.get_squad(invite.squad_id, conn=conn, for_update=True)
				)
				invite = _require_invite(await self.repo.get_invite(invite_id, conn=conn, for_update=True))
				self._assert_pending(invite, now)
				await self.repo.set_invite_status(
					invite.id, models.InviteStatus.ACCEPTED, conn=conn, responded_at=now
				)
				_, squad = await self.squads.add_member(squad.id, user.uuid, invite.role, conn=conn)
				drafts = await self.positions._close_excess_positions_tx(conn, squad, now=now)
				response = await self.squads._response(squad, conn=conn)
		obs_metrics.inc_invite_transition(models.InviteStatus.ACCEPTED.value)
		logger.info("invite accepted", extra={"invite_id": str(invite_id), "squad_id": str(squad.id)})
		await self.notifications.deliver(drafts)
		return response

	async def decline_invite(self, user: AuthenticatedUser, invite_id: UUID) -> dto.InviteResponse:
		now = expiry.utcnow()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				invite = _require_invite(await self.repo.get_invite(invite_id, conn=conn, for_update=True))
				if invite.invitee_id != user.uuid:
					raise AuthorizationError("not_invitee", "Only the invitee can decline this invite")
				self._assert_pending(invite, now)
				invite = await self.repo.set_invite_status(
					invite.id, models.InviteStatus.DECLINED, conn=conn, responded_at=now
				)
		obs_metrics.inc_invite_transition(models.InviteStatus.DECLINED.value)
		return _invite_response(invite, now)

	async def cancel_invite(self, user: AuthenticatedUser, invite_id: UUID) -> dto.InviteResponse:
		now = expiry.utcnow()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				invite = _require_invite(await self.repo.get_invite(invite_id, conn=conn))
				squad = policies.require_squad(
					await self.repo.get_squad(invite.squad_id, conn=conn, for_update=True)
				)
				# Captaincy may have moved since the invite was sent.
				if user.uuid not in (invite.inviter_id, squad.captain_id):
					raise AuthorizationError("not_inviter_or_captain", "Only the inviter or captain can cancel this invite")
				invite = _require_invite(await self.repo.get_invite(invite_id, conn=conn, for_update=True))
				self._assert_pending(invite, now)
				invite = await self.repo.set_invite_status(
					invite.id, models.InviteStatus.CANCELLED, conn=conn, responded_at=now
				)
		obs_metrics.inc_invite_transition(models.InviteStatus.CANCELLED.value)
		return _invite_response(invite, now)

	@staticmethod
	def _assert_pending(invite: models.SquadInvite, now) -> None:
		status = expiry.effective_invite_status(invite, now)
		if status == models.InviteStatus.EXPIRED and invite.status == models.InviteStatus.PENDING:
			raise ExpiredError("invite_expired", "Invite has expired")
		if status != models.InviteStatus.PENDING:
			raise InvalidStateError("invite_not_pending", f"Invite has already been {status.value.lower()}")

	async def get_invite(self, user: AuthenticatedUser, invite_id: UUID) -> dto.InviteResponse:
		invite = _require_invite(await self.repo.get_invite(invite_id))
		if user.uuid not in (invite.invitee_id, invite.inviter_id):
			squad = await self.repo.get_squad(invite.squad_id)
			if squad is None or squad.captain_id != user.uuid:
				raise NotFoundError("invite_not_found", "Invite not found")
		return _invite_response(invite)

	async def list_user_pending_invites(self, user: AuthenticatedUser) -> list[dto.InviteResponse]:
		now = expiry.utcnow()
		invites = await self.repo.list_pending_invites_for_user(user.uuid, now=now)
		return [_invite_response(invite, now) for invite in invites]

	async def list_squad_pending_invites(self, user: AuthenticatedUser, squad_id: UUID) -> list[dto.InviteResponse]:
		squad = policies.require_squad(await self.repo.get_squad(squad_id))
		policies.assert_captain(squad, user.uuid, "view pending invites")
		now = expiry.utcnow()
		invites = await self.repo.list_pending_invites_for_squad(squad_id, now=now)
		return [_invite_response(invite, now) for invite in invites]
