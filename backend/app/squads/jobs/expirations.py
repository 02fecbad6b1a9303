"""Background sweep that persists lapsed positions, applications and invites."""

from __future__ import annotations

import logging
from time import perf_counter

from app.obs import metrics as obs_metrics
from app.squads.domain import positions_service as positions_module
from app.squads.schemas import dto

logger = logging.getLogger(__name__)

JOB_NAME = "squads-expirations"


class ExpirationSweeper:
	"""Flips expired rows so stored state catches up with effective state."""

	def __init__(self, service: positions_module.PositionsService | None = None) -> None:
		self.service = service or positions_module.PositionsService()

	async def run_once(self) -> dto.ExpirationSweepResponse:
		started = perf_counter()
		outcome = "error"
		try:
			result = await self.service.process_expirations()
			outcome = "success"
			return result
		except Exception:
			logger.exception("expiration sweep failed")
			raise
		finally:
			obs_metrics.record_job_run(JOB_NAME, result=outcome, duration_seconds=perf_counter() - started)
