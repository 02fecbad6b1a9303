from __future__ import annotations

import pytest

from app.obs import metrics as obs_metrics
from app.squads.domain import models
from app.squads.infra.scheduler import SquadsScheduler
from app.squads.jobs.expirations import JOB_NAME, ExpirationSweeper
from app.squads.schemas import dto


def _runs(result: str) -> float:
	return obs_metrics.BACKGROUND_RUNS.labels(name=JOB_NAME, result=result)._value.get()


@pytest.mark.asyncio
async def test_sweep_persists_lapsed_rows(services, repo, clock, make_user):
	captain, applicant, invitee = make_user(), make_user(), make_user()
	squad = await services.squads.create_squad(captain, dto.SquadCreateRequest(name="Sweepers"))
	position = await services.positions.create_position(captain, squad.id, dto.PositionCreateRequest(role="DEV"))
	application = await services.positions.apply_to_position(
		applicant,
		dto.ApplicationCreateRequest(position_id=position.id),
	)
	invite = await services.invites.create_invite(captain, squad.id, dto.InviteCreateRequest(invitee_id=invitee.uuid))
	clock.advance(days=31)
	before = _runs("success")

	result = await ExpirationSweeper(services.positions).run_once()

	assert result == dto.ExpirationSweepResponse(expired_positions=1, expired_applications=1, expired_invites=1)
	assert repo.positions[position.id].is_open is False
	assert repo.applications[application.id].status == models.ApplicationStatus.EXPIRED
	assert repo.invites[invite.id].status == models.InviteStatus.EXPIRED
	assert [n.type for n in repo.notifications_for(applicant.uuid)] == [models.NotificationType.APPLICATION_EXPIRED]
	assert _runs("success") == before + 1

	again = await ExpirationSweeper(services.positions).run_once()
	assert again == dto.ExpirationSweepResponse(expired_positions=0, expired_applications=0, expired_invites=0)


class _FailingPositions:
	async def process_expirations(self):
		raise RuntimeError("database unavailable")


@pytest.mark.asyncio
async def test_sweep_failure_is_recorded_and_raised():
	before = _runs("error")

	with pytest.raises(RuntimeError):
		await ExpirationSweeper(_FailingPositions()).run_once()

	assert _runs("error") == before + 1


@pytest.mark.asyncio
async def test_scheduler_registers_interval_job():
	scheduler = SquadsScheduler()
	scheduler.start()
	try:
		assert scheduler.started is True

		async def _noop():
			return None

		scheduler.schedule_every(JOB_NAME, _noop, minutes=15)
		scheduler.schedule_every(JOB_NAME, _noop, minutes=30)
		assert scheduler.job_ids() == [JOB_NAME]
	finally:
		scheduler.shutdown()
	assert scheduler.started is False
