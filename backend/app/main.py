"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import ops
from app.api.errors import install_error_handlers
from app.infra import postgres
from app.infra.redis import redis_client
from app.obs import init as obs_init
from app.obs.logging import get_logger
from app.settings import settings
from app.squads.api import router as squads_router
from app.squads.api._deps import get_services
from app.squads.infra.scheduler import SquadsScheduler
from app.squads.jobs.expirations import JOB_NAME as EXPIRATIONS_JOB, ExpirationSweeper

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
	await postgres.init_pool()
	scheduler: SquadsScheduler | None = None
	if settings.squads_jobs_enabled:
		sweeper = ExpirationSweeper(get_services().positions)
		scheduler = SquadsScheduler()
		scheduler.start()
		scheduler.schedule_every(
			EXPIRATIONS_JOB,
			sweeper.run_once,
			minutes=settings.squads_expiry_interval_minutes,
		)
		app.state.squads_scheduler = scheduler
		logger.info("squads scheduler started", extra={"jobs": scheduler.job_ids()})
	try:
		yield
	finally:
		if scheduler is not None:
			scheduler.shutdown()
		await get_services().profiles.ethos.aclose()
		await redis_client.aclose()
		await postgres.close_pool()


app = FastAPI(title="Squadron API", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(getattr(settings, "cors_allow_origins", []))
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True. Replace '*' with explicit origins.
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

obs_init(app)

app.include_router(ops.router, tags=["ops"])
app.include_router(squads_router)
