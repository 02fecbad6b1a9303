"""Reputation profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.infra.auth import AuthenticatedUser, get_current_user
from app.squads.api._deps import get_profiles_service
from app.squads.api._errors import to_http_error
from app.squads.domain.profiles_service import ProfilesService
from app.squads.schemas import dto

router = APIRouter(tags=["squads:profiles"])


@router.get("/profiles/me", response_model=dto.ProfileResponse)
async def my_profile_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ProfilesService = Depends(get_profiles_service),
) -> dto.ProfileResponse:
	try:
		return await service.get_profile(auth_user)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/profiles/me/sync", response_model=dto.ProfileResponse)
async def sync_profile_endpoint(
	payload: dto.ProfileSyncRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ProfilesService = Depends(get_profiles_service),
) -> dto.ProfileResponse:
	try:
		return await service.sync_profile(auth_user, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
