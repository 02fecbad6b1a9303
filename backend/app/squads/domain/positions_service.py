"""Open positions, applications and the expiry sweep."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from uuid import UUID

import asyncpg

from app.infra.auth import AuthenticatedUser
from app.infra.postgres import get_pool
from app.obs import metrics as obs_metrics
from app.squads.domain import (
	eligibility as eligibility_module,
	expiry,
	models,
	notifications_service,
	policies,
	repo as repo_module,
	squads_service,
)
from app.squads.domain.exceptions import (
	AuthorizationError,
	CapacityExceededError,
	EligibilityError,
	ExpiredError,
	InvalidStateError,
	NotFoundError,
	ValidationError,
)
from app.squads.domain.notifications_service import NotificationDraft
from app.squads.schemas import dto

logger = logging.getLogger(__name__)

_MAX_PAGE_SIZE = 50


@dataclass(slots=True)
class PositionFilters:
	role: Optional[models.SquadRole] = None
	score_tiers: List[models.ScoreTier] = field(default_factory=list)
	benefits: List[models.Benefit] = field(default_factory=list)
	page: int = 1
	limit: int = 20


def _position_response(position: models.OpenPosition, now=None) -> dto.PositionResponse:
	response = dto.PositionResponse.model_validate(expiry.position_with_effective_state(position, now))
	response.required_min_score = models.tier_minimum(position.score_tier)
	return response


def _application_response(application: models.Application, now=None) -> dto.ApplicationResponse:
	return dto.ApplicationResponse.model_validate(expiry.application_with_effective_status(application, now))


def _require_position(position: models.OpenPosition | None) -> models.OpenPosition:
	if position is None:
		raise NotFoundError("position_not_found", "Position not found")
	return position


def _require_application(application: models.Application | None) -> models.Application:
	if application is None:
		raise NotFoundError("application_not_found", "Application not found")
	return application


def _rejection_drafts(
	applications: Sequence[models.Application],
	builder,
	squad: models.Squad,
) -> list[NotificationDraft]:
	return [
		builder(app.applicant_id, app.squad_name or squad.name, squad.id, app.position_id, app.id)
		for app in applications
	]


class PositionsService:
	"""Recruitment through open positions; the captain reviews applications."""

	def __init__(
		self,
		*,
		repository: repo_module.SquadsRepository | None = None,
		squads: squads_service.SquadsService | None = None,
		eligibility: eligibility_module.EligibilityEvaluator | None = None,
		notifications: notifications_service.NotificationService | None = None,
	) -> None:
		self.repo = repository or repo_module.SquadsRepository()
		self.squads = squads or squads_service.SquadsService(repository=self.repo)
		self.eligibility = eligibility or eligibility_module.EligibilityEvaluator(repository=self.repo)
		self.notifications = notifications or notifications_service.NotificationService(repository=self.repo)

	# --- Positions ----------------------------------------------------------

	async def create_position(
		self,
		user: AuthenticatedUser,
		squad_id: UUID,
		payload: dto.PositionCreateRequest,
	) -> dto.PositionResponse:
		now = expiry.utcnow()
		expires_at = payload.expires_at or now + models.POSITION_EXPIRY
		if expiry.is_lapsed(expires_at, now):
			raise ValidationError("expires_in_past", "Position expiry must be in the future")
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				squad = policies.require_squad(await self.repo.get_squad(squad_id, conn=conn, for_update=True))
				policies.assert_captain(squad, user.uuid, "create positions")
				accepting = await self.repo.count_accepting_positions(squad_id, conn=conn, now=now)
				if accepting >= squad.free_slots:
					raise CapacityExceededError(
						"no_free_slots",
						f"Squad has {squad.free_slots} free slot(s) and {accepting} open position(s)",
					)
				position = await self.repo.create_position(
					conn=conn,
					squad_id=squad_id,
					role=payload.role,
					description=payload.description,
					score_tier=payload.score_tier,
					requires_mutual_vouch=payload.requires_mutual_vouch,
					benefits=payload.benefits,
					expires_at=expires_at,
				)
		obs_metrics.inc_position_event("created")
		return _position_response(position, now)

	async def delete_position(self, user: AuthenticatedUser, position_id: UUID) -> int:
		"""Reject pending applications, delete the position and notify applicants.

		Returns the number of applications rejected.
		"""
		now = expiry.utcnow()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				position = _require_position(await self.repo.get_position(position_id, conn=conn))
				squad = policies.require_squad(
					await self.repo.get_squad(position.squad_id, conn=conn, for_update=True)
				)
				policies.assert_captain(squad, user.uuid, "delete positions")
				rejected = await self.repo.reject_pending_applications([position_id], conn=conn, now=now)
				await self.repo.delete_position(position_id, conn=conn)
		obs_metrics.inc_position_event("deleted")
		obs_metrics.inc_application_transition(models.ApplicationStatus.REJECTED.value, len(rejected))
		await self.notifications.deliver(_rejection_drafts(rejected, notifications_service.position_closed, squad))
		return len(rejected)

	async def get_position(self, position_id: UUID) -> dto.PositionResponse:
		return _position_response(_require_position(await self.repo.get_position(position_id)))

	async def get_squad_positions(self, squad_id: UUID) -> list[dto.PositionResponse]:
		policies.require_squad(await self.repo.get_squad(squad_id))
		now = expiry.utcnow()
		positions = await self.repo.list_squad_positions(squad_id, now=now)
		return [_position_response(position, now) for position in positions]

	async def list_open_positions(self, filters: PositionFilters) -> dto.PositionListResponse:
		now = expiry.utcnow()
		page = max(filters.page, 1)
		limit = max(1, min(filters.limit, _MAX_PAGE_SIZE))
		positions, total = await self.repo.list_open_positions(
			now=now,
			limit=limit,
			offset=(page - 1) * limit,
			role=filters.role,
			score_tiers=filters.score_tiers or None,
			benefits=filters.benefits or None,
		)
		return dto.PositionListResponse(
			items=[_position_response(position, now) for position in positions],
			total=total,
			page=page,
			limit=limit,
		)

	# --- Eligibility --------------------------------------------------------

	async def check_eligibility(self, user: AuthenticatedUser, position_id: UUID) -> dto.EligibilityResponse:
		position = _require_position(await self.repo.get_position(position_id))
		squad = policies.require_squad(await self.repo.get_squad(position.squad_id))
		result = await self.eligibility.check(position, squad.captain_id, user.uuid)
		failure = result.failure()
		return dto.EligibilityResponse(**result.as_dict(), reason=failure[1] if failure else None)

	# --- Applications -------------------------------------------------------

	async def apply_to_position(self, user: AuthenticatedUser, payload: dto.ApplicationCreateRequest) -> dto.ApplicationResponse:
		now = expiry.utcnow()
		applicant_id = user.uuid
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				position = _require_position(await self.repo.get_position(payload.position_id, conn=conn))
				squad = policies.require_squad(
					await self.repo.get_squad(position.squad_id, conn=conn, for_update=True)
				)
				result = await self.eligibility.check(position, squad.captain_id, applicant_id, conn=conn)
				result.raise_if_ineligible()
				if not expiry.position_is_accepting(position, now):
					raise InvalidStateError("position_closed", "Position is no longer open")
				stale = await self.repo.get_active_application(position.id, applicant_id, conn=conn)
				if stale is not None and stale.status == models.ApplicationStatus.PENDING:
					# Effectively expired, otherwise eligibility would have failed.
					await self.repo.set_application_status(
						stale.id, models.ApplicationStatus.EXPIRED, conn=conn, responded_at=now
					)
				application = await self.repo.create_application(
					conn=conn,
					position_id=position.id,
					applicant_id=applicant_id,
					message=payload.message,
					expires_at=now + models.APPLICATION_EXPIRY,
				)
		obs_metrics.inc_application_transition(models.ApplicationStatus.PENDING.value)
		applicant_name = await self._display_name(user)
		await self.notifications.deliver(
			[
				notifications_service.application_received(
					squad.captain_id, applicant_name, squad.name, squad.id, position.id, application.id
				)
			]
		)
		return _application_response(application, now)

	async def _display_name(self, user: AuthenticatedUser) -> str:
		try:
			profile = await self.repo.get_profile(user.uuid)
		except Exception:
			logger.warning("profile lookup failed", exc_info=True)
			profile = None
		if profile is not None and profile.display_name:
			return profile.display_name
		return user.display_name or user.handle or "Someone"

	async def approve_application(self, user: AuthenticatedUser, application_id: UUID) -> dto.ApprovalResponse:
		now = expiry.utcnow()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				application = _require_application(await self.repo.get_application(application_id, conn=conn))
				position = _require_position(await self.repo.get_position(application.position_id, conn=conn))
				squad = policies.require_squad(
					await self.repo.get_squad(position.squad_id, conn=conn, for_update=True)
				)
				policies.assert_captain(squad, user.uuid, "approve applications")
				application = _require_application(
					await self.repo.get_application(application_id, conn=conn, for_update=True)
				)
				self._assert_pending(application, now)
				if not expiry.position_is_accepting(position, now):
					raise InvalidStateError("position_closed", "Position is no longer open")
				result = await self.eligibility.check(
					position,
					squad.captain_id,
					application.applicant_id,
					conn=conn,
					ignore_application_id=application.id,
				)
				failure = result.failure()
				if failure is not None:
					raise EligibilityError(
						failure[0],
						"Applicant no longer meets eligibility requirements",
						result=result,
					)
				policies.assert_has_room(squad, squad.member_count)
				application = await self.repo.set_application_status(
					application.id, models.ApplicationStatus.APPROVED, conn=conn, responded_at=now
				)
				member, squad = await self.squads.add_member(
					squad.id, application.applicant_id, position.role, conn=conn
				)
				await self.repo.close_position(position.id, conn=conn)
				rejected = await self.repo.reject_pending_applications(
					[position.id], conn=conn, now=now, exclude_id=application.id
				)
				drafts = [
					notifications_service.application_approved(
						application.applicant_id, squad.name, squad.id, position.id, application.id
					)
				]
				drafts.extend(_rejection_drafts(rejected, notifications_service.application_rejected, squad))
				drafts.extend(await self._close_excess_positions_tx(conn, squad, now=now))
		obs_metrics.inc_application_transition(models.ApplicationStatus.APPROVED.value)
		obs_metrics.inc_application_transition(models.ApplicationStatus.REJECTED.value, len(rejected))
		obs_metrics.inc_position_event("filled")
		logger.info(
			"application approved",
			extra={"squad_id": str(squad.id), "application_id": str(application.id), "rejected": len(rejected)},
		)
		await self.notifications.deliver(drafts)
		return dto.ApprovalResponse(
			application=_application_response(application, now),
			member=dto.MemberResponse.model_validate(member),
			rejected_count=len(rejected),
		)

	async def reject_application(self, user: AuthenticatedUser, application_id: UUID) -> dto.ApplicationResponse:
		now = expiry.utcnow()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				application = _require_application(await self.repo.get_application(application_id, conn=conn))
				position = _require_position(await self.repo.get_position(application.position_id, conn=conn))
				squad = policies.require_squad(
					await self.repo.get_squad(position.squad_id, conn=conn, for_update=True)
				)
				policies.assert_captain(squad, user.uuid, "reject applications")
				application = _require_application(
					await self.repo.get_application(application_id, conn=conn, for_update=True)
				)
				self._assert_pending(application, now)
				application = await self.repo.set_application_status(
					application.id, models.ApplicationStatus.REJECTED, conn=conn, responded_at=now
				)
		obs_metrics.inc_application_transition(models.ApplicationStatus.REJECTED.value)
		await self.notifications.deliver(
			[
				notifications_service.application_rejected(
					application.applicant_id, squad.name, squad.id, position.id, application.id
				)
			]
		)
		return _application_response(application, now)

	async def withdraw_application(self, user: AuthenticatedUser, application_id: UUID) -> dto.ApplicationResponse:
		now = expiry.utcnow()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				application = _require_application(
					await self.repo.get_application(application_id, conn=conn, for_update=True)
				)
				if application.applicant_id != user.uuid:
					raise AuthorizationError("not_applicant", "Only the applicant can withdraw this application")
				self._assert_pending(application, now)
				application = await self.repo.set_application_status(
					application.id, models.ApplicationStatus.WITHDRAWN, conn=conn, responded_at=now
				)
		obs_metrics.inc_application_transition(models.ApplicationStatus.WITHDRAWN.value)
		return _application_response(application, now)

	@staticmethod
	def _assert_pending(application: models.Application, now) -> None:
		status = expiry.effective_application_status(application, now)
		if status == models.ApplicationStatus.EXPIRED and application.status == models.ApplicationStatus.PENDING:
			raise ExpiredError("application_expired", "Application has expired")
		if status != models.ApplicationStatus.PENDING:
			raise InvalidStateError(
				"application_not_pending",
				f"Application has already been {status.value.lower()}",
			)

	async def get_position_applications(
		self,
		user: AuthenticatedUser,
		position_id: UUID,
	) -> list[dto.ApplicationResponse]:
		position = _require_position(await self.repo.get_position(position_id))
		squad = policies.require_squad(await self.repo.get_squad(position.squad_id))
		policies.assert_captain(squad, user.uuid, "view applications")
		now = expiry.utcnow()
		return [_application_response(item, now) for item in await self.repo.list_position_applications(position_id)]

	async def get_user_applications(self, user: AuthenticatedUser) -> list[dto.ApplicationResponse]:
		now = expiry.utcnow()
		return [_application_response(item, now) for item in await self.repo.list_user_applications(user.uuid)]

	# --- Slot reconciliation ------------------------------------------------

	async def _close_excess_positions_tx(
		self,
		conn: asyncpg.Connection,
		squad: models.Squad,
		*,
		now,
	) -> list[NotificationDraft]:
		"""Close every open position once the squad has no free slots.

		Runs inside the caller's transaction with the squad row already locked.
		Returns the notifications to send after commit.
		"""
		if squad.free_slots > 0:
			return []
		closed = await self.repo.close_squad_positions(squad.id, conn=conn)
		if not closed:
			return []
		rejected = await self.repo.reject_pending_applications(closed, conn=conn, now=now)
		obs_metrics.inc_position_event("closed_full", len(closed))
		obs_metrics.inc_application_transition(models.ApplicationStatus.REJECTED.value, len(rejected))
		logger.info(
			"closed positions on full squad",
			extra={"squad_id": str(squad.id), "positions": len(closed), "rejected": len(rejected)},
		)
		return _rejection_drafts(rejected, notifications_service.position_closed, squad)

	async def close_excess_positions(self, squad_id: UUID) -> int:
		"""Close open positions when the squad filled up through another channel."""
		now = expiry.utcnow()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				squad = policies.require_squad(await self.repo.get_squad(squad_id, conn=conn, for_update=True))
				drafts = await self._close_excess_positions_tx(conn, squad, now=now)
		await self.notifications.deliver(drafts)
		return len(drafts)

	# --- Expiry sweep -------------------------------------------------------

	async def process_expirations(self) -> dto.ExpirationSweepResponse:
		now = expiry.utcnow()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				positions = await self.repo.close_expired_positions(conn=conn, now=now)
				applications = await self.repo.expire_applications(conn=conn, now=now)
				invites = await self.repo.expire_invites(conn=conn, now=now)
		obs_metrics.inc_expired("position", positions)
		obs_metrics.inc_expired("application", len(applications))
		obs_metrics.inc_expired("invite", invites)
		drafts = [
			notifications_service.application_expired(
				app.applicant_id, app.squad_name or "the squad", app.squad_id, app.position_id, app.id
			)
			for app in applications
			if app.squad_id is not None
		]
		await self.notifications.deliver(drafts)
		logger.info(
			"expiration sweep complete",
			extra={"positions": positions, "applications": len(applications), "invites": invites},
		)
		return dto.ExpirationSweepResponse(
			expired_positions=positions,
			expired_applications=len(applications),
			expired_invites=invites,
		)
