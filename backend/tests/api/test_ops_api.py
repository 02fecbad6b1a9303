from __future__ import annotations

import pytest
from httpx import AsyncClient

from app.main import app
from app.settings import settings
from app.squads.infra.scheduler import SquadsScheduler
from app.squads.jobs.expirations import JOB_NAME


@pytest.fixture
def admin_token():
	original_token = settings.obs_admin_token
	original_public = settings.obs_metrics_public
	settings.obs_admin_token = "ops-token"
	settings.obs_metrics_public = False
	try:
		yield "ops-token"
	finally:
		settings.obs_admin_token = original_token
		settings.obs_metrics_public = original_public


@pytest.mark.asyncio
async def test_liveness(api_client: AsyncClient):
	response = await api_client.get("/health/live")
	assert response.status_code == 200
	assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_metrics_require_admin_token(api_client: AsyncClient, admin_token):
	denied = await api_client.get("/metrics", headers={"X-Admin-Token": "nope"})
	assert denied.status_code == 403

	allowed = await api_client.get("/metrics", headers={"Authorization": f"Bearer {admin_token}"})
	assert allowed.status_code == 200
	assert "squadron_jobs_runs_total" in allowed.text


@pytest.mark.asyncio
async def test_squads_jobs_status(api_client: AsyncClient, admin_token):
	headers = {"X-Admin-Token": admin_token}
	idle = await api_client.get("/ops/squads/jobs", headers=headers)
	assert idle.json() == {"enabled": False, "interval_minutes": None, "jobs": []}

	scheduler = SquadsScheduler()
	scheduler.start()

	async def _noop():
		return None

	scheduler.schedule_every(JOB_NAME, _noop, minutes=5)
	app.state.squads_scheduler = scheduler
	try:
		running = await api_client.get("/ops/squads/jobs", headers=headers)
	finally:
		scheduler.shutdown()
		del app.state.squads_scheduler

	body = running.json()
	assert body["enabled"] is True
	assert body["jobs"] == [JOB_NAME]
