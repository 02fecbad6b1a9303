from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from app.squads.domain import eligibility, expiry, models, policies, repo as repo_module
from app.squads.domain.exceptions import CapacityExceededError, EligibilityError, NotFoundError

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _position(**overrides) -> models.OpenPosition:
	fields = {
		"id": uuid4(),
		"squad_id": uuid4(),
		"role": models.SquadRole.TRADER,
		"score_tier": models.ScoreTier.TIER_1600,
		"requires_mutual_vouch": False,
		"benefits": [],
		"is_open": True,
		"expires_at": NOW + timedelta(days=30),
		"created_at": NOW,
	}
	fields.update(overrides)
	return models.OpenPosition(**fields)


@pytest.mark.parametrize(
	("score", "validator", "expected"),
	[
		(None, False, 1),
		(1399, False, 1),
		(1400, False, 2),
		(1650, False, 3),
		(1800, False, 4),
		(1999, True, 5),
		(2000, False, 5),
		(2500, True, 6),
	],
)
def test_squad_quota_steps(score, validator, expected):
	assert policies.squad_quota(score, is_validator=validator) == expected


@pytest.mark.parametrize(("requested", "expected"), [(None, 5), (0, 2), (2, 2), (7, 7), (99, 7)])
def test_clamp_max_size(requested, expected):
	assert policies.clamp_max_size(requested) == expected


@pytest.mark.parametrize(("max_size", "members", "open_positions"), [(5, 1, 4), (4, 1, 3), (2, 2, 0)])
def test_positions_fit_within_free_slots(max_size, members, open_positions):
	policies.assert_positions_fit(max_size, members, open_positions)


@pytest.mark.parametrize(("max_size", "members", "open_positions"), [(2, 1, 4), (3, 2, 2), (2, 2, 1)])
def test_positions_exceeding_free_slots_are_rejected(max_size, members, open_positions):
	with pytest.raises(CapacityExceededError):
		policies.assert_positions_fit(max_size, members, open_positions)


def test_vanished_row_after_write_is_not_found():
	with pytest.raises(NotFoundError) as excinfo:
		repo_module._require_row(None, "application")
	assert excinfo.value.code == "application_not_found"
	assert repo_module._require_row("row", "squad") == "row"


def test_expiry_is_inclusive():
	assert expiry.is_lapsed(NOW, NOW) is True
	assert expiry.is_lapsed(NOW + timedelta(microseconds=1), NOW) is False


def test_effective_state_never_reopens_closed_position():
	closed = _position(is_open=False)
	assert expiry.position_is_accepting(closed, NOW) is False

	lapsed = _position(expires_at=NOW)
	view = expiry.position_with_effective_state(lapsed, NOW)
	assert view.is_open is False
	assert lapsed.is_open is True


def test_evaluate_score_boundary_is_inclusive():
	position = _position()
	at_minimum = eligibility.evaluate(
		position, is_member=False, has_existing_application=False, score=1600, has_mutual_vouch=False
	)
	below = eligibility.evaluate(
		position, is_member=False, has_existing_application=False, score=1599, has_mutual_vouch=False
	)

	assert at_minimum.eligible is True
	assert at_minimum.required_min_score == 1600
	assert below.eligible is False
	assert below.failure() == ("score_too_low", "Your score does not meet the minimum for this position")


def test_evaluate_reports_most_specific_reason_first():
	position = _position(requires_mutual_vouch=True)
	result = eligibility.evaluate(
		position, is_member=True, has_existing_application=True, score=None, has_mutual_vouch=False
	)

	assert result.eligible is False
	assert result.meets_score_requirement is False
	assert result.meets_mutual_vouch_requirement is False
	assert result.failure()[0] == "already_member"

	with pytest.raises(EligibilityError) as excinfo:
		result.raise_if_ineligible()
	assert excinfo.value.code == "already_member"
	assert excinfo.value.result is result


def test_vouch_only_matters_when_required():
	relaxed = eligibility.evaluate(
		_position(score_tier=models.ScoreTier.BELOW_1400),
		is_member=False,
		has_existing_application=False,
		score=None,
		has_mutual_vouch=False,
	)
	strict = eligibility.evaluate(
		_position(score_tier=models.ScoreTier.BELOW_1400, requires_mutual_vouch=True),
		is_member=False,
		has_existing_application=False,
		score=None,
		has_mutual_vouch=False,
	)

	assert relaxed.eligible is True
	assert relaxed.failure() is None
	assert strict.failure()[0] == "vouch_required"


class _SlowVouches:
	async def has_mutual_vouch(self, user_id, other_id):
		await asyncio.sleep(5)
		return True


class _BrokenVouches:
	async def has_mutual_vouch(self, user_id, other_id):
		raise RuntimeError("boom")


@pytest.mark.asyncio
@pytest.mark.parametrize("source", [_SlowVouches(), _BrokenVouches()])
async def test_vouch_lookup_failure_counts_as_no_vouch(repo, source):
	evaluator = eligibility.EligibilityEvaluator(repository=repo, vouches=source, vouch_timeout=0.05)
	assert await evaluator._mutual_vouch(uuid4(), uuid4()) is False
