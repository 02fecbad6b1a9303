"""Application endpoints: apply, review and withdraw."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from app.infra.auth import AuthenticatedUser, get_current_user
from app.squads.api._deps import get_positions_service
from app.squads.api._errors import to_http_error
from app.squads.domain.positions_service import PositionsService
from app.squads.schemas import dto

router = APIRouter(tags=["squads:applications"])


@router.post("/applications", response_model=dto.ApplicationResponse, status_code=201)
async def apply_endpoint(
	payload: dto.ApplicationCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PositionsService = Depends(get_positions_service),
) -> dto.ApplicationResponse:
	try:
		return await service.apply_to_position(auth_user, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/applications/me", response_model=list[dto.ApplicationResponse])
async def my_applications_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PositionsService = Depends(get_positions_service),
) -> list[dto.ApplicationResponse]:
	try:
		return await service.get_user_applications(auth_user)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/applications/{application_id}/approve", response_model=dto.ApprovalResponse)
async def approve_application_endpoint(
	application_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PositionsService = Depends(get_positions_service),
) -> dto.ApprovalResponse:
	try:
		return await service.approve_application(auth_user, application_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/applications/{application_id}/reject", response_model=dto.ApplicationResponse)
async def reject_application_endpoint(
	application_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PositionsService = Depends(get_positions_service),
) -> dto.ApplicationResponse:
	try:
		return await service.reject_application(auth_user, application_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/applications/{application_id}/withdraw", response_model=dto.ApplicationResponse)
async def withdraw_application_endpoint(
	application_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PositionsService = Depends(get_positions_service),
) -> dto.ApplicationResponse:
	try:
		return await service.withdraw_application(auth_user, application_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
