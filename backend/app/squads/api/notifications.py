"""Notification inbox endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.infra.auth import AuthenticatedUser, get_current_user
from app.squads.api._deps import get_notifications_service
from app.squads.api._errors import to_http_error
from app.squads.domain.notifications_service import NotificationService
from app.squads.schemas import dto

router = APIRouter(tags=["squads:notifications"])


@router.get("/notifications", response_model=dto.NotificationListResponse)
async def list_notifications_endpoint(
	limit: int = Query(default=20, ge=1, le=50),
	offset: int = Query(default=0, ge=0),
	unread_only: bool = Query(default=False),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: NotificationService = Depends(get_notifications_service),
) -> dto.NotificationListResponse:
	try:
		return await service.list_notifications(auth_user, limit=limit, offset=offset, unread_only=unread_only)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/notifications/unread", response_model=dto.UnreadCountResponse)
async def unread_notifications_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: NotificationService = Depends(get_notifications_service),
) -> dto.UnreadCountResponse:
	try:
		return await service.unread_count(auth_user)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/notifications/read-all", response_model=dto.MarkAllReadResponse)
async def mark_all_read_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: NotificationService = Depends(get_notifications_service),
) -> dto.MarkAllReadResponse:
	try:
		return await service.mark_all_read(auth_user)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/notifications/{notification_id}/read", response_model=dto.NotificationResponse)
async def mark_read_endpoint(
	notification_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: NotificationService = Depends(get_notifications_service),
) -> dto.NotificationResponse:
	try:
		return await service.mark_read(auth_user, notification_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
