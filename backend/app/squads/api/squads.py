"""Squad CRUD, membership and captaincy endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from app.infra.auth import AuthenticatedUser, get_current_user
from app.squads.api._deps import get_squads_service
from app.squads.api._errors import to_http_error
from app.squads.domain.squads_service import SquadsService
from app.squads.schemas import dto

router = APIRouter(tags=["squads"])


@router.post("/squads", response_model=dto.SquadResponse, status_code=201)
async def create_squad_endpoint(
	payload: dto.SquadCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: SquadsService = Depends(get_squads_service),
) -> dto.SquadResponse:
	try:
		return await service.create_squad(auth_user, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/squads", response_model=dto.SquadListResponse)
async def list_squads_endpoint(
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=50),
	active_only: bool = Query(default=False),
	service: SquadsService = Depends(get_squads_service),
) -> dto.SquadListResponse:
	try:
		return await service.list_squads(page=page, limit=limit, active_only=active_only)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/squads/me", response_model=list[dto.SquadResponse])
async def my_squads_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: SquadsService = Depends(get_squads_service),
) -> list[dto.SquadResponse]:
	try:
		return await service.list_user_squads(auth_user.uuid)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/squads/me/quota", response_model=dto.CreationQuotaResponse)
async def creation_quota_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: SquadsService = Depends(get_squads_service),
) -> dto.CreationQuotaResponse:
	try:
		return await service.creation_quota(auth_user.uuid)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/squads/{squad_id}", response_model=dto.SquadResponse)
async def get_squad_endpoint(
	squad_id: UUID,
	service: SquadsService = Depends(get_squads_service),
) -> dto.SquadResponse:
	try:
		return await service.get_squad(squad_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.patch("/squads/{squad_id}", response_model=dto.SquadResponse)
async def update_squad_endpoint(
	squad_id: UUID,
	payload: dto.SquadUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: SquadsService = Depends(get_squads_service),
) -> dto.SquadResponse:
	try:
		return await service.update_squad(auth_user, squad_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/squads/{squad_id}", status_code=204, response_class=Response, response_model=None)
async def dismantle_squad_endpoint(
	squad_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: SquadsService = Depends(get_squads_service),
) -> None:
	try:
		await service.dismantle_squad(auth_user, squad_id)
		return None
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.patch("/squads/{squad_id}/members/{member_id}", response_model=dto.MemberResponse)
async def change_member_role_endpoint(
	squad_id: UUID,
	member_id: UUID,
	payload: dto.MemberRoleUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: SquadsService = Depends(get_squads_service),
) -> dto.MemberResponse:
	try:
		return await service.change_member_role(auth_user, squad_id, member_id, payload.role)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/squads/{squad_id}/members/{member_id}", response_model=dto.SquadResponse)
async def remove_member_endpoint(
	squad_id: UUID,
	member_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: SquadsService = Depends(get_squads_service),
) -> dto.SquadResponse:
	try:
		return await service.remove_member(auth_user, squad_id, member_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/squads/{squad_id}/leave", status_code=204, response_class=Response, response_model=None)
async def leave_squad_endpoint(
	squad_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: SquadsService = Depends(get_squads_service),
) -> None:
	try:
		await service.leave_squad(auth_user, squad_id)
		return None
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/squads/{squad_id}/captain", response_model=dto.SquadResponse)
async def transfer_captaincy_endpoint(
	squad_id: UUID,
	payload: dto.CaptainTransferRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: SquadsService = Depends(get_squads_service),
) -> dto.SquadResponse:
	try:
		return await service.transfer_captaincy(auth_user, squad_id, payload.new_captain_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
