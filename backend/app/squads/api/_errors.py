"""Error translation helpers for the squads API."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from app.obs import metrics as obs_metrics
from app.squads.domain import exceptions

logger = logging.getLogger(__name__)


def to_http_error(exc: Exception) -> HTTPException:
	"""Translate domain exceptions to FastAPI HTTP errors."""
	if isinstance(exc, HTTPException):
		return exc
	if isinstance(exc, exceptions.SquadError):
		obs_metrics.inc_operation_reject(exc.kind.value)
		return HTTPException(status_code=exc.status_code, detail=exc.to_detail())
	logger.error("unhandled squads error", exc_info=exc)
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal_error")
