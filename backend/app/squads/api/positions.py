"""Open position endpoints, including eligibility and the captain's review list."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from app.infra.auth import AuthenticatedUser, get_current_user
from app.squads.api._deps import get_positions_service
from app.squads.api._errors import to_http_error
from app.squads.domain.models import Benefit, ScoreTier, SquadRole
from app.squads.domain.positions_service import PositionFilters, PositionsService
from app.squads.schemas import dto

router = APIRouter(tags=["squads:positions"])


@router.get("/positions", response_model=dto.PositionListResponse)
async def list_positions_endpoint(
	role: Optional[SquadRole] = Query(default=None),
	score_tier: Optional[List[ScoreTier]] = Query(default=None),
	benefit: Optional[List[Benefit]] = Query(default=None),
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1, le=50),
	service: PositionsService = Depends(get_positions_service),
) -> dto.PositionListResponse:
	filters = PositionFilters(role=role, score_tiers=score_tier or [], benefits=benefit or [], page=page, limit=limit)
	try:
		return await service.list_open_positions(filters)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/squads/{squad_id}/positions", response_model=dto.PositionResponse, status_code=201)
async def create_position_endpoint(
	squad_id: UUID,
	payload: dto.PositionCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PositionsService = Depends(get_positions_service),
) -> dto.PositionResponse:
	try:
		return await service.create_position(auth_user, squad_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/squads/{squad_id}/positions", response_model=list[dto.PositionResponse])
async def squad_positions_endpoint(
	squad_id: UUID,
	service: PositionsService = Depends(get_positions_service),
) -> list[dto.PositionResponse]:
	try:
		return await service.get_squad_positions(squad_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/positions/{position_id}", response_model=dto.PositionResponse)
async def get_position_endpoint(
	position_id: UUID,
	service: PositionsService = Depends(get_positions_service),
) -> dto.PositionResponse:
	try:
		return await service.get_position(position_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/positions/{position_id}", status_code=204, response_class=Response, response_model=None)
async def delete_position_endpoint(
	position_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PositionsService = Depends(get_positions_service),
) -> None:
	try:
		await service.delete_position(auth_user, position_id)
		return None
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/positions/{position_id}/eligibility", response_model=dto.EligibilityResponse)
async def check_eligibility_endpoint(
	position_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PositionsService = Depends(get_positions_service),
) -> dto.EligibilityResponse:
	try:
		return await service.check_eligibility(auth_user, position_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/positions/{position_id}/applications", response_model=list[dto.ApplicationResponse])
async def position_applications_endpoint(
	position_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: PositionsService = Depends(get_positions_service),
) -> list[dto.ApplicationResponse]:
	try:
		return await service.get_position_applications(auth_user, position_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
