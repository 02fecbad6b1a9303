"""Notification sink and inbox queries for squad workflow events."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from uuid import UUID

from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics
from app.squads.domain import repo as repo_module
from app.squads.domain.exceptions import NotFoundError
from app.squads.domain.models import Notification, NotificationType
from app.squads.schemas import dto

logger = logging.getLogger(__name__)

_MAX_PAGE = 50


@dataclass(slots=True, frozen=True)
class NotificationDraft:
	user_id: UUID
	type: NotificationType
	title: str
	message: str
	squad_id: Optional[UUID] = None
	position_id: Optional[UUID] = None
	application_id: Optional[UUID] = None


def application_received(
	captain_id: UUID,
	applicant_name: str,
	squad_name: str,
	squad_id: UUID,
	position_id: UUID,
	application_id: UUID,
) -> NotificationDraft:
	return NotificationDraft(
		user_id=captain_id,
		type=NotificationType.APPLICATION_RECEIVED,
		title="New Application",
		message=f"{applicant_name} applied to join {squad_name}",
		squad_id=squad_id,
		position_id=position_id,
		application_id=application_id,
	)


def application_approved(
	applicant_id: UUID,
	squad_name: str,
	squad_id: UUID,
	position_id: UUID,
	application_id: UUID,
) -> NotificationDraft:
	return NotificationDraft(
		user_id=applicant_id,
		type=NotificationType.APPLICATION_APPROVED,
		title="Application Approved",
		message=f"Your application to join {squad_name} has been approved!",
		squad_id=squad_id,
		position_id=position_id,
		application_id=application_id,
	)


def application_rejected(
	applicant_id: UUID,
	squad_name: str,
	squad_id: UUID,
	position_id: UUID,
	application_id: UUID,
) -> NotificationDraft:
	return NotificationDraft(
		user_id=applicant_id,
		type=NotificationType.APPLICATION_REJECTED,
		title="Application Rejected",
		message=f"Your application to join {squad_name} was not accepted",
		squad_id=squad_id,
		position_id=position_id,
		application_id=application_id,
	)


def application_expired(
	applicant_id: UUID,
	squad_name: str,
	squad_id: UUID,
	position_id: UUID,
	application_id: UUID,
) -> NotificationDraft:
	return NotificationDraft(
		user_id=applicant_id,
		type=NotificationType.APPLICATION_EXPIRED,
		title="Application Expired",
		message=f"Your application to join {squad_name} has expired",
		squad_id=squad_id,
		position_id=position_id,
		application_id=application_id,
	)


def position_closed(
	applicant_id: UUID,
	squad_name: str,
	squad_id: UUID,
	position_id: UUID,
	application_id: UUID,
) -> NotificationDraft:
	# The position row may be gone; the id is kept for deep links only.
	return NotificationDraft(
		user_id=applicant_id,
		type=NotificationType.POSITION_DELETED,
		title="Position Closed",
		message=f"The position you applied for at {squad_name} has been closed",
		squad_id=squad_id,
		position_id=position_id,
		application_id=application_id,
	)


class NotificationService:
	"""Persists workflow notifications and serves the per-user inbox."""

	def __init__(self, *, repository: repo_module.SquadsRepository | None = None) -> None:
		self.repo = repository or repo_module.SquadsRepository()

	async def notify(self, draft: NotificationDraft) -> Notification:
		notification = await self.repo.insert_notification(
			user_id=draft.user_id,
			type=draft.type,
			title=draft.title,
			message=draft.message,
			squad_id=draft.squad_id,
			position_id=draft.position_id,
			application_id=draft.application_id,
		)
		obs_metrics.inc_notification(draft.type.value, "ok")
		return notification

	async def deliver(self, drafts: Iterable[NotificationDraft]) -> int:
		"""Best-effort fan-out run after commit; failures are logged, never raised."""
		delivered = 0
		for draft in drafts:
			try:
				await self.notify(draft)
			except Exception:
				obs_metrics.inc_notification(draft.type.value, "error")
				logger.exception(
					"squad notification failed",
					extra={"notification_type": draft.type.value, "recipient_id": str(draft.user_id)},
				)
				continue
			delivered += 1
		return delivered

	async def list_notifications(
		self,
		user: AuthenticatedUser,
		*,
		limit: int = 20,
		offset: int = 0,
		unread_only: bool = False,
	) -> dto.NotificationListResponse:
		limit = max(1, min(limit, _MAX_PAGE))
		offset = max(offset, 0)
		items = await self.repo.list_notifications(
			user.uuid,
			limit=limit,
			offset=offset,
			unread_only=unread_only,
		)
		unread = await self.repo.count_unread_notifications(user.uuid)
		return dto.NotificationListResponse(
			items=[dto.NotificationResponse.model_validate(item) for item in items],
			unread_count=unread,
		)

	async def unread_count(self, user: AuthenticatedUser) -> dto.UnreadCountResponse:
		return dto.UnreadCountResponse(count=await self.repo.count_unread_notifications(user.uuid))

	async def mark_read(self, user: AuthenticatedUser, notification_id: UUID) -> dto.NotificationResponse:
		notification = await self.repo.get_notification(notification_id)
		# Foreign notifications are reported as missing rather than forbidden.
		if notification is None or notification.user_id != user.uuid:
			raise NotFoundError("notification_not_found", "Notification not found")
		if not notification.read:
			notification = await self.repo.mark_notification_read(notification_id)
		return dto.NotificationResponse.model_validate(notification)

	async def mark_all_read(self, user: AuthenticatedUser) -> dto.MarkAllReadResponse:
		updated = await self.repo.mark_all_notifications_read(user.uuid)
		return dto.MarkAllReadResponse(updated=updated)
