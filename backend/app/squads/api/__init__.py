"""FastAPI routers for the squads domain."""

from __future__ import annotations

from fastapi import APIRouter

from app.squads.api import (
	applications,
	cron,
	invites,
	notifications,
	positions,
	profiles,
	squads,
)

router = APIRouter(prefix="/api/squads/v1")

router.include_router(squads.router)
router.include_router(invites.router)
router.include_router(positions.router)
router.include_router(applications.router)
router.include_router(notifications.router)
router.include_router(profiles.router)
router.include_router(cron.router)

__all__ = ["router"]
