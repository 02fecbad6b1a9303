"""Authorization and capacity guards shared by the squads services."""

from __future__ import annotations

from uuid import UUID

from app.squads.domain import models
from app.squads.domain.exceptions import (
	AuthorizationError,
	CapacityExceededError,
	NotFoundError,
)

# (minimum score, squads allowed), highest first.
_QUOTA_STEPS: tuple[tuple[int, int], ...] = (
	(2000, 5),
	(1800, 4),
	(1600, 3),
	(1400, 2),
)
_BASE_QUOTA = 1
_VALIDATOR_BONUS = 1


def require_squad(squad: models.Squad | None) -> models.Squad:
	if squad is None:
		raise NotFoundError("squad_not_found", "Squad not found")
	return squad


def assert_captain(squad: models.Squad, user_id: UUID, action: str) -> None:
	if squad.captain_id != user_id:
		raise AuthorizationError("not_captain", f"Only the captain can {action}")


def assert_can_dismantle(squad: models.Squad, user_id: UUID) -> None:
	if user_id not in (squad.creator_id, squad.captain_id):
		raise AuthorizationError("not_creator_or_captain", "Only the creator or captain can dismantle this squad")


def clamp_max_size(requested: int | None) -> int:
	value = models.DEFAULT_MAX_SIZE if requested is None else requested
	return max(models.SQUAD_MIN_SIZE, min(value, models.SQUAD_MAX_SIZE))


def assert_max_size_fits(max_size: int, member_count: int) -> None:
	if max_size < member_count:
		raise CapacityExceededError(
			"max_size_below_members",
			"Cannot reduce max size below current member count",
		)


def assert_positions_fit(max_size: int, member_count: int, open_positions: int) -> None:
	if open_positions > max_size - member_count:
		raise CapacityExceededError(
			"max_size_below_open_positions",
			f"Close open positions first: {open_positions} open, {max(max_size - member_count, 0)} slot(s) left",
		)


def assert_has_room(squad: models.Squad, member_count: int) -> None:
	if member_count >= squad.max_size:
		raise CapacityExceededError("squad_full", "Squad is at maximum capacity")


def squad_quota(score: int | None, *, is_validator: bool = False) -> int:
	"""Number of squads a user may create, stepped by reputation score."""
	value = score or 0
	allowed = _BASE_QUOTA
	for minimum, quota in _QUOTA_STEPS:
		if value >= minimum:
			allowed = quota
			break
	return allowed + (_VALIDATOR_BONUS if is_validator else 0)


def quota_exhausted(max_allowed: int) -> CapacityExceededError:
	return CapacityExceededError(
		"squad_quota_exhausted",
		f"Squad creation limit reached ({max_allowed}). Increase your reputation score to create more squads.",
	)
