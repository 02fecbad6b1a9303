"""Eligibility rules for applying to an open position."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Optional
from uuid import UUID

import asyncpg

from app.settings import settings
from app.squads.domain import expiry, models, repo as repo_module
from app.squads.domain.exceptions import EligibilityError
from app.squads.infra import reputation as reputation_module

logger = logging.getLogger(__name__)

# Most specific reason first.
_REASONS: tuple[tuple[str, str, str], ...] = (
	("is_already_member", "already_member", "You are already a member of this squad"),
	("has_existing_application", "existing_application", "You have already applied to this position"),
	("meets_score_requirement", "score_too_low", "Your score does not meet the minimum for this position"),
	("meets_mutual_vouch_requirement", "vouch_required", "This position requires a mutual vouch with the squad captain"),
)


@dataclass(slots=True, frozen=True)
class EligibilityResult:
	eligible: bool
	is_already_member: bool
	has_existing_application: bool
	meets_score_requirement: bool
	meets_mutual_vouch_requirement: bool
	user_score: Optional[int]
	required_min_score: int
	requires_mutual_vouch: bool
	has_mutual_vouch: bool

	def failure(self) -> tuple[str, str] | None:
		"""Return ``(code, message)`` for the most specific failed check."""
		if self.eligible:
			return None
		for attr, code, message in _REASONS:
			value = getattr(self, attr)
			failed = value if attr.startswith(("is_", "has_")) else not value
			if failed:
				return code, message
		return "not_eligible", EligibilityError.message

	def as_dict(self) -> dict[str, object]:
		return asdict(self)

	def raise_if_ineligible(self) -> None:
		reason = self.failure()
		if reason is not None:
			code, message = reason
			raise EligibilityError(code, message, result=self)


def evaluate(
	position: models.OpenPosition,
	*,
	is_member: bool,
	has_existing_application: bool,
	score: int | None,
	has_mutual_vouch: bool,
) -> EligibilityResult:
	"""Combine the gathered facts into an eligibility verdict. Pure."""
	meets_score = models.meets_score_tier(score, position.score_tier)
	meets_vouch = not position.requires_mutual_vouch or has_mutual_vouch
	return EligibilityResult(
		eligible=not is_member and not has_existing_application and meets_score and meets_vouch,
		is_already_member=is_member,
		has_existing_application=has_existing_application,
		meets_score_requirement=meets_score,
		meets_mutual_vouch_requirement=meets_vouch,
		user_score=score,
		required_min_score=models.tier_minimum(position.score_tier),
		requires_mutual_vouch=position.requires_mutual_vouch,
		has_mutual_vouch=has_mutual_vouch,
	)


class EligibilityEvaluator:
	"""Gathers membership, application, score and vouch facts for ``evaluate``."""

	def __init__(
		self,
		*,
		repository: repo_module.SquadsRepository | None = None,
		reputation: reputation_module.ReputationSource | None = None,
		vouches: reputation_module.VouchSource | None = None,
		vouch_timeout: float | None = None,
	) -> None:
		self.repo = repository or repo_module.SquadsRepository()
		self.reputation = reputation or reputation_module.ProfileReputationSource(repository=self.repo)
		self.vouches = vouches or reputation_module.EthosVouchSource(repository=self.repo)
		self.vouch_timeout = vouch_timeout if vouch_timeout is not None else settings.ethos_timeout_seconds

	async def check(
		self,
		position: models.OpenPosition,
		captain_id: UUID,
		candidate_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
		ignore_application_id: UUID | None = None,
	) -> EligibilityResult:
		"""Evaluate ``candidate_id`` against ``position``.

		``ignore_application_id`` excludes the application under review so that
		approval-time re-checks do not count the applicant's own request.
		"""
		now = expiry.utcnow()
		member = await self.repo.get_member(position.squad_id, candidate_id, conn=conn)
		existing = await self.repo.get_active_application(position.id, candidate_id, conn=conn)
		has_existing = (
			existing is not None
			and existing.id != ignore_application_id
			and expiry.effective_application_status(existing, now) in models.ACTIVE_APPLICATION_STATUSES
		)
		score = await self.reputation.get_score(candidate_id)
		has_vouch = False
		if position.requires_mutual_vouch:
			has_vouch = await self._mutual_vouch(candidate_id, captain_id)
		return evaluate(
			position,
			is_member=member is not None,
			has_existing_application=has_existing,
			score=score,
			has_mutual_vouch=has_vouch,
		)

	async def _mutual_vouch(self, candidate_id: UUID, captain_id: UUID) -> bool:
		try:
			return await asyncio.wait_for(
				self.vouches.has_mutual_vouch(candidate_id, captain_id),
				timeout=self.vouch_timeout,
			)
		except asyncio.TimeoutError:
			logger.warning("mutual vouch lookup timed out", extra={"candidate_id": str(candidate_id)})
		except Exception:
			logger.warning("mutual vouch lookup failed", exc_info=True)
		return False
