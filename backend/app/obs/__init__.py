"""Observability package bootstrap."""

from __future__ import annotations

from fastapi import FastAPI

from app.obs import logging as obs_logging
from app.obs import middleware
from app.settings import settings

_initialised = False


def init(app: FastAPI) -> None:
	global _initialised
	if _initialised:
		return
	if settings.obs_enabled:
		obs_logging.configure_logging()
	# Request ids are needed in error bodies even when metrics are off.
	middleware.install(app, enabled=settings.obs_enabled)
	_initialised = True


__all__ = ["init"]
