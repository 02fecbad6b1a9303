"""Request ID helper for endpoints and error handlers."""

from __future__ import annotations

from typing import Optional

from starlette.requests import Request

from app.obs import logging as obs_logging


def get_request_id(request: Optional[Request] = None, default: str = "unknown") -> str:
	"""Return the current request id.

	The observability middleware stores the id on ``request.state`` and binds it
	into the logging context; either source is accepted.
	"""
	if request is not None:
		rid = getattr(request.state, "request_id", None)
		if rid:
			return str(rid)
	return obs_logging.current_request_id() or default
