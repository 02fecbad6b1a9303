"""Scheduled-job trigger endpoints for external cron runners."""

from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, Header, HTTPException, status

from app.settings import settings
from app.squads.api._deps import get_positions_service
from app.squads.api._errors import to_http_error
from app.squads.domain.positions_service import PositionsService
from app.squads.jobs.expirations import ExpirationSweeper
from app.squads.schemas import dto

router = APIRouter(tags=["squads:cron"])


def require_cron_secret(authorization: str | None = Header(default=None)) -> None:
	secret = settings.cron_secret
	if not secret:
		return
	expected = f"Bearer {secret}"
	if not authorization or not hmac.compare_digest(authorization, expected):
		raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")


@router.post(
	"/cron/expirations",
	response_model=dto.ExpirationSweepResponse,
	dependencies=[Depends(require_cron_secret)],
)
async def run_expirations_endpoint(
	service: PositionsService = Depends(get_positions_service),
) -> dto.ExpirationSweepResponse:
	try:
		return await ExpirationSweeper(service).run_once()
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
