"""Effective-status computation for time-boxed squad entities.

Read paths call these helpers and never write; the expiry sweep selects rows
with the same ``expires_at <= now`` predicate before persisting the change.
"""

from __future__ import annotations

from datetime import datetime, timezone

from app.squads.domain.models import (
	Application,
	ApplicationStatus,
	InviteStatus,
	OpenPosition,
	SquadInvite,
)


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


def is_lapsed(expires_at: datetime, now: datetime) -> bool:
	return expires_at <= now


def effective_invite_status(invite: SquadInvite, now: datetime | None = None) -> InviteStatus:
	now = now or utcnow()
	if invite.status == InviteStatus.PENDING and is_lapsed(invite.expires_at, now):
		return InviteStatus.EXPIRED
	return invite.status


def effective_application_status(application: Application, now: datetime | None = None) -> ApplicationStatus:
	now = now or utcnow()
	if application.status == ApplicationStatus.PENDING and is_lapsed(application.expires_at, now):
		return ApplicationStatus.EXPIRED
	return application.status


def position_is_accepting(position: OpenPosition, now: datetime | None = None) -> bool:
	now = now or utcnow()
	return position.is_open and not is_lapsed(position.expires_at, now)


def with_effective_status(invite: SquadInvite, now: datetime | None = None) -> SquadInvite:
	status = effective_invite_status(invite, now)
	return invite if status == invite.status else invite.model_copy(update={"status": status})


def application_with_effective_status(application: Application, now: datetime | None = None) -> Application:
	status = effective_application_status(application, now)
	if status == application.status:
		return application
	return application.model_copy(update={"status": status})


def position_with_effective_state(position: OpenPosition, now: datetime | None = None) -> OpenPosition:
	accepting = position_is_accepting(position, now)
	return position if accepting == position.is_open else position.model_copy(update={"is_open": accepting})
