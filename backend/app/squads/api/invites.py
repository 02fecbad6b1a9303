"""Squad invite endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from app.infra.auth import AuthenticatedUser, get_current_user
from app.squads.api._deps import get_invites_service
from app.squads.api._errors import to_http_error
from app.squads.domain.invites_service import InvitesService
from app.squads.schemas import dto

router = APIRouter(tags=["squads:invites"])


@router.post("/squads/{squad_id}/invites", response_model=dto.InviteResponse, status_code=201)
async def create_invite_endpoint(
	squad_id: UUID,
	payload: dto.InviteCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: InvitesService = Depends(get_invites_service),
) -> dto.InviteResponse:
	try:
		return await service.create_invite(auth_user, squad_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/squads/{squad_id}/invites", response_model=list[dto.InviteResponse])
async def list_squad_invites_endpoint(
	squad_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: InvitesService = Depends(get_invites_service),
) -> list[dto.InviteResponse]:
	try:
		return await service.list_squad_pending_invites(auth_user, squad_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/invites/me", response_model=list[dto.InviteResponse])
async def my_invites_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: InvitesService = Depends(get_invites_service),
) -> list[dto.InviteResponse]:
	try:
		return await service.list_user_pending_invites(auth_user)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/invites/{invite_id}", response_model=dto.InviteResponse)
async def get_invite_endpoint(
	invite_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: InvitesService = Depends(get_invites_service),
) -> dto.InviteResponse:
	try:
		return await service.get_invite(auth_user, invite_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/invites/{invite_id}/accept", response_model=dto.SquadResponse)
async def accept_invite_endpoint(
	invite_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: InvitesService = Depends(get_invites_service),
) -> dto.SquadResponse:
	try:
		return await service.accept_invite(auth_user, invite_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/invites/{invite_id}/decline", response_model=dto.InviteResponse)
async def decline_invite_endpoint(
	invite_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: InvitesService = Depends(get_invites_service),
) -> dto.InviteResponse:
	try:
		return await service.decline_invite(auth_user, invite_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/invites/{invite_id}/cancel", response_model=dto.InviteResponse)
async def cancel_invite_endpoint(
	invite_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: InvitesService = Depends(get_invites_service),
) -> dto.InviteResponse:
	try:
		return await service.cancel_invite(auth_user, invite_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
