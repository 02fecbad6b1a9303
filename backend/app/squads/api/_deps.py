"""Service wiring for the squads routers."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from app.squads.domain.eligibility import EligibilityEvaluator
from app.squads.domain.invites_service import InvitesService
from app.squads.domain.notifications_service import NotificationService
from app.squads.domain.positions_service import PositionsService
from app.squads.domain.profiles_service import ProfilesService
from app.squads.domain.repo import SquadsRepository
from app.squads.domain.squads_service import SquadsService
from app.squads.infra.ethos import EthosClient
from app.squads.infra.reputation import EthosVouchSource, ProfileReputationSource


@dataclass(frozen=True)
class Services:
	squads: SquadsService
	invites: InvitesService
	positions: PositionsService
	notifications: NotificationService
	profiles: ProfilesService


def build_services(
	*,
	repository: SquadsRepository | None = None,
	ethos: EthosClient | None = None,
) -> Services:
	repository = repository or SquadsRepository()
	ethos = ethos or EthosClient()
	reputation = ProfileReputationSource(repository=repository)
	notifications = NotificationService(repository=repository)
	squads = SquadsService(repository=repository, reputation=reputation)
	eligibility = EligibilityEvaluator(
		repository=repository,
		reputation=reputation,
		vouches=EthosVouchSource(repository=repository, client=ethos),
	)
	positions = PositionsService(
		repository=repository,
		squads=squads,
		eligibility=eligibility,
		notifications=notifications,
	)
	invites = InvitesService(
		repository=repository,
		squads=squads,
		positions=positions,
		notifications=notifications,
	)
	return Services(
		squads=squads,
		invites=invites,
		positions=positions,
		notifications=notifications,
		profiles=ProfilesService(repository=repository, ethos=ethos),
	)


@lru_cache(maxsize=1)
def get_services() -> Services:
	return build_services()


def get_squads_service() -> SquadsService:
	return get_services().squads


def get_invites_service() -> InvitesService:
	return get_services().invites


def get_positions_service() -> PositionsService:
	return get_services().positions


def get_notifications_service() -> NotificationService:
	return get_services().notifications


def get_profiles_service() -> ProfilesService:
	return get_services().profiles
