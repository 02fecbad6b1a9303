"""Global error handlers: every JSON error body carries the request id.

Squad domain errors that escape a route are rendered with the same
``{kind, code, message}`` detail the routers produce.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.request_id import get_request_id
from app.obs import metrics as obs_metrics
from app.squads.domain.exceptions import SquadError

logger = logging.getLogger(__name__)


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		payload = {"detail": exc.detail, "request_id": get_request_id(request)}
		return JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers)

	@app.exception_handler(SquadError)
	async def squad_exc_handler(request: Request, exc: SquadError):  # type: ignore[override]
		obs_metrics.inc_operation_reject(exc.kind.value)
		payload = {"detail": exc.to_detail(), "request_id": get_request_id(request)}
		return JSONResponse(status_code=exc.status_code, content=payload)

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		payload = {
			"detail": "validation_error",
			"errors": jsonable_encoder(exc.errors()),
			"request_id": get_request_id(request),
		}
		return JSONResponse(status_code=422, content=payload)

	@app.exception_handler(Exception)
	async def unhandled_exc_handler(request: Request, exc: Exception):  # type: ignore[override]
		logger.exception("unhandled_error", extra={"path": request.url.path})
		payload = {"detail": "internal_error", "request_id": get_request_id(request)}
		return JSONResponse(status_code=500, content=payload)
