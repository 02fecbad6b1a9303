"""Shared fixtures: fake Redis/Postgres wiring and in-memory squads storage."""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from app.infra import postgres
from app.infra.auth import AuthenticatedUser
from app.main import app
from app.settings import settings
from app.squads.api._deps import Services
from app.squads.domain import expiry, models
from app.squads.domain.eligibility import EligibilityEvaluator
from app.squads.domain.exceptions import InvalidStateError
from app.squads.domain.invites_service import InvitesService
from app.squads.domain.notifications_service import NotificationService
from app.squads.domain.positions_service import PositionsService
from app.squads.domain.profiles_service import ProfilesService
from app.squads.domain.squads_service import SquadsService
from app.squads.infra.ethos import EthosClient
from app.squads.infra.reputation import ProfileReputationSource


# Ensure a selector-based event loop policy on Windows to avoid Proactor issues with async IO
if hasattr(asyncio, "WindowsSelectorEventLoopPolicy"):
	try:
		asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
	except Exception:
		# Non-fatal; proceed with default policy
		pass


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from app.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Ensure a consistent test environment.

	API tests authenticate via X-User-Id/X-User-Name headers, which are only
	accepted in dev mode.
	"""
	original_env = settings.environment
	original_cron_secret = settings.cron_secret
	settings.environment = "dev"
	settings.cron_secret = None
	try:
		yield
	finally:
		settings.environment = original_env
		settings.cron_secret = original_cron_secret


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client


# --- In-memory squads storage shared by unit and API tests -------------------


class _FakeTransaction:
	"""Snapshots the in-memory stores and restores them when the block raises."""

	_STORES = ("squads", "members", "invites", "positions", "applications", "notifications", "profiles")

	def __init__(self, repo) -> None:
		self._repo = repo
		self._snapshot: dict = {}

	async def __aenter__(self):
		self._snapshot = {name: dict(getattr(self._repo, name)) for name in self._STORES}
		self._snapshot["locked_creators"] = list(self._repo.locked_creators)
		return None

	async def __aexit__(self, exc_type, exc, tb):
		if exc_type is not None:
			for name, value in self._snapshot.items():
				setattr(self._repo, name, value)
		return False


class _FakeAcquire:
	def __init__(self, conn):
		self._conn = conn

	async def __aenter__(self):
		return self._conn

	async def __aexit__(self, exc_type, exc, tb):
		return False


class _FakeConnection:
	def __init__(self, repo) -> None:
		self._repo = repo

	def transaction(self):
		return _FakeTransaction(self._repo)


class _FakePool:
	def __init__(self, conn):
		self._conn = conn

	def acquire(self):
		return _FakeAcquire(self._conn)


class InMemorySquadsRepository:
	"""Dictionary-backed stand-in for ``SquadsRepository`` with the same cascade rules."""

	def __init__(self) -> None:
		self.squads: dict[UUID, models.Squad] = {}
		self.members: dict[UUID, models.SquadMember] = {}
		self.invites: dict[UUID, models.SquadInvite] = {}
		self.positions: dict[UUID, models.OpenPosition] = {}
		self.applications: dict[UUID, models.Application] = {}
		self.notifications: dict[UUID, models.Notification] = {}
		self.profiles: dict[UUID, models.Profile] = {}
		self.locked_creators: list[UUID] = []
		self.fail_notifications = False
		self._seq = 0

	def _stamp(self) -> datetime:
		self._seq += 1
		return datetime.now(timezone.utc) + timedelta(microseconds=self._seq)

	# --- Squads -------------------------------------------------------------

	def _member_count(self, squad_id: UUID) -> int:
		return sum(1 for member in self.members.values() if member.squad_id == squad_id)

	async def create_squad(self, *, conn, name, description, avatar_url, min_size, max_size, is_fixed_size, creator_id):
		now = self._stamp()
		squad = models.Squad(
			id=uuid4(),
			name=name,
			description=description,
			avatar_url=avatar_url,
			min_size=min_size,
			max_size=max_size,
			is_fixed_size=is_fixed_size,
			is_active=False,
			creator_id=creator_id,
			captain_id=creator_id,
			created_at=now,
			updated_at=now,
		)
		self.squads[squad.id] = squad
		return await self.get_squad(squad.id)

	async def get_squad(self, squad_id: UUID, *, conn=None, for_update: bool = False):
		squad = self.squads.get(squad_id)
		if squad is None:
			return None
		return squad.model_copy(update={"member_count": self._member_count(squad_id)})

	async def update_squad(self, squad_id: UUID, *, conn, fields: dict):
		allowed = {k: v for k, v in fields.items() if k in {"name", "description", "avatar_url", "max_size", "is_fixed_size"}}
		allowed["updated_at"] = self._stamp()
		self.squads[squad_id] = self.squads[squad_id].model_copy(update=allowed)
		return await self.get_squad(squad_id)

	async def set_captain(self, squad_id: UUID, user_id: UUID, *, conn) -> None:
		self.squads[squad_id] = self.squads[squad_id].model_copy(update={"captain_id": user_id})

	async def refresh_squad_activity(self, squad_id: UUID, *, conn):
		squad = self.squads[squad_id]
		self.squads[squad_id] = squad.model_copy(
			update={"is_active": self._member_count(squad_id) >= squad.min_size, "updated_at": self._stamp()}
		)
		return await self.get_squad(squad_id)

	async def delete_squad(self, squad_id: UUID, *, conn) -> None:
		self.squads.pop(squad_id, None)
		self.members = {k: v for k, v in self.members.items() if v.squad_id != squad_id}
		self.invites = {k: v for k, v in self.invites.items() if v.squad_id != squad_id}
		doomed = {k for k, v in self.positions.items() if v.squad_id == squad_id}
		self.positions = {k: v for k, v in self.positions.items() if k not in doomed}
		self.applications = {k: v for k, v in self.applications.items() if v.position_id not in doomed}

	async def list_squads(self, *, limit: int, offset: int, active_only: bool):
		items = [await self.get_squad(squad_id) for squad_id in self.squads]
		if active_only:
			items = [squad for squad in items if squad.is_active]
		items.sort(key=lambda squad: squad.created_at, reverse=True)
		return items[offset : offset + limit], len(items)

	async def list_user_squads(self, user_id: UUID):
		ids = {member.squad_id for member in self.members.values() if member.user_id == user_id}
		items = [await self.get_squad(squad_id) for squad_id in ids]
		return sorted(items, key=lambda squad: squad.created_at, reverse=True)

	async def lock_creator(self, user_id: UUID, *, conn) -> None:
		self.locked_creators.append(user_id)

	async def count_created_squads(self, user_id: UUID, *, conn=None) -> int:
		return sum(1 for squad in self.squads.values() if squad.creator_id == user_id)

	# --- Members ------------------------------------------------------------

	def _with_name(self, member: models.SquadMember) -> models.SquadMember:
		profile = self.profiles.get(member.user_id)
		return member.model_copy(update={"display_name": profile.display_name if profile else None})

	async def list_members(self, squad_id: UUID, *, conn=None):
		items = [self._with_name(m) for m in self.members.values() if m.squad_id == squad_id]
		return sorted(items, key=lambda member: member.joined_at)

	async def get_member(self, squad_id: UUID, user_id: UUID, *, conn=None):
		for member in self.members.values():
			if member.squad_id == squad_id and member.user_id == user_id:
				return self._with_name(member)
		return None

	async def get_member_by_id(self, member_id: UUID, *, conn=None):
		member = self.members.get(member_id)
		return self._with_name(member) if member else None

	async def insert_member(self, *, conn, squad_id: UUID, user_id: UUID, role):
		if await self.get_member(squad_id, user_id) is not None:
			raise InvalidStateError("already_member", "User is already a member of this squad")
		member = models.SquadMember(
			id=uuid4(),
			squad_id=squad_id,
			user_id=user_id,
			role=models.SquadRole(role),
			joined_at=self._stamp(),
		)
		self.members[member.id] = member
		return self._with_name(member)

	async def update_member_role(self, member_id: UUID, role, *, conn):
		self.members[member_id] = self.members[member_id].model_copy(update={"role": models.SquadRole(role)})
		return self._with_name(self.members[member_id])

	async def delete_member(self, member_id: UUID, *, conn) -> None:
		self.members.pop(member_id, None)

	# --- Invites ------------------------------------------------------------

	def _invite_view(self, invite: models.SquadInvite) -> models.SquadInvite:
		squad = self.squads.get(invite.squad_id)
		return invite.model_copy(update={"squad_name": squad.name if squad else None})

	async def create_invite(self, *, conn, squad_id, inviter_id, invitee_id, role, message, expires_at):
		if await self.get_pending_invite(squad_id, invitee_id) is not None:
			raise InvalidStateError("invite_pending", "User already has a pending invite to this squad")
		invite = models.SquadInvite(
			id=uuid4(),
			squad_id=squad_id,
			inviter_id=inviter_id,
			invitee_id=invitee_id,
			role=models.SquadRole(role),
			status=models.InviteStatus.PENDING,
			message=message,
			expires_at=expires_at,
			created_at=self._stamp(),
		)
		self.invites[invite.id] = invite
		return self._invite_view(invite)

	async def get_invite(self, invite_id: UUID, *, conn=None, for_update: bool = False):
		invite = self.invites.get(invite_id)
		return self._invite_view(invite) if invite else None

	async def get_pending_invite(self, squad_id: UUID, invitee_id: UUID, *, conn=None):
		for invite in self.invites.values():
			if (
				invite.squad_id == squad_id
				and invite.invitee_id == invitee_id
				and invite.status == models.InviteStatus.PENDING
			):
				return self._invite_view(invite)
		return None

	async def set_invite_status(self, invite_id: UUID, status, *, conn, responded_at):
		self.invites[invite_id] = self.invites[invite_id].model_copy(
			update={"status": models.InviteStatus(status), "responded_at": responded_at}
		)
		return self._invite_view(self.invites[invite_id])

	def _pending_invites(self, now: datetime, predicate) -> list[models.SquadInvite]:
		items = [
			self._invite_view(invite)
			for invite in self.invites.values()
			if invite.status == models.InviteStatus.PENDING and invite.expires_at > now and predicate(invite)
		]
		return sorted(items, key=lambda invite: invite.created_at, reverse=True)

	async def list_pending_invites_for_user(self, user_id: UUID, *, now: datetime):
		return self._pending_invites(now, lambda invite: invite.invitee_id == user_id)

	async def list_pending_invites_for_squad(self, squad_id: UUID, *, now: datetime):
		return self._pending_invites(now, lambda invite: invite.squad_id == squad_id)

	async def expire_invites(self, *, conn, now: datetime) -> int:
		count = 0
		for invite_id, invite in list(self.invites.items()):
			if invite.status == models.InviteStatus.PENDING and invite.expires_at <= now:
				await self.set_invite_status(invite_id, models.InviteStatus.EXPIRED, conn=conn, responded_at=now)
				count += 1
		return count

	# --- Positions ----------------------------------------------------------

	def _position_view(self, position: models.OpenPosition) -> models.OpenPosition:
		squad = self.squads.get(position.squad_id)
		return position.model_copy(update={"squad_name": squad.name if squad else None})

	async def create_position(
		self,
		*,
		conn,
		squad_id,
		role,
		description,
		score_tier,
		requires_mutual_vouch,
		benefits,
		expires_at,
	):
		position = models.OpenPosition(
			id=uuid4(),
			squad_id=squad_id,
			role=models.SquadRole(role),
			description=description,
			score_tier=models.ScoreTier(score_tier),
			requires_mutual_vouch=requires_mutual_vouch,
			benefits=list(benefits),
			expires_at=expires_at,
			is_open=True,
			created_at=self._stamp(),
		)
		self.positions[position.id] = position
		return self._position_view(position)

	async def get_position(self, position_id: UUID, *, conn=None, for_update: bool = False):
		position = self.positions.get(position_id)
		return self._position_view(position) if position else None

	def _accepting(self, now: datetime) -> list[models.OpenPosition]:
		return [p for p in self.positions.values() if p.is_open and p.expires_at > now]

	async def count_accepting_positions(self, squad_id: UUID, *, conn, now: datetime) -> int:
		return sum(1 for position in self._accepting(now) if position.squad_id == squad_id)

	async def list_open_positions(
		self,
		*,
		now: datetime,
		limit: int,
		offset: int,
		role=None,
		score_tiers: Optional[Sequence] = None,
		benefits: Optional[Sequence] = None,
	):
		items = self._accepting(now)
		if role is not None:
			items = [p for p in items if p.role == role]
		if score_tiers:
			items = [p for p in items if p.score_tier in score_tiers]
		if benefits:
			items = [p for p in items if set(p.benefits) & set(benefits)]
		items.sort(key=lambda position: position.created_at, reverse=True)
		return [self._position_view(p) for p in items[offset : offset + limit]], len(items)

	async def list_squad_positions(self, squad_id: UUID, *, now: datetime):
		items = [self._position_view(p) for p in self._accepting(now) if p.squad_id == squad_id]
		return sorted(items, key=lambda position: position.created_at, reverse=True)

	async def close_position(self, position_id: UUID, *, conn) -> None:
		self.positions[position_id] = self.positions[position_id].model_copy(update={"is_open": False})

	async def close_squad_positions(self, squad_id: UUID, *, conn) -> list[UUID]:
		closed = [p.id for p in self.positions.values() if p.squad_id == squad_id and p.is_open]
		for position_id in closed:
			await self.close_position(position_id, conn=conn)
		return closed

	async def delete_position(self, position_id: UUID, *, conn) -> None:
		self.positions.pop(position_id, None)
		self.applications = {k: v for k, v in self.applications.items() if v.position_id != position_id}

	async def close_expired_positions(self, *, conn, now: datetime) -> int:
		expired = [p.id for p in self.positions.values() if p.is_open and p.expires_at <= now]
		for position_id in expired:
			await self.close_position(position_id, conn=conn)
		return len(expired)

	# --- Applications -------------------------------------------------------

	def _application_view(self, application: models.Application) -> models.Application:
		position = self.positions.get(application.position_id)
		squad = self.squads.get(position.squad_id) if position else None
		return application.model_copy(
			update={
				"squad_id": squad.id if squad else None,
				"squad_name": squad.name if squad else None,
			}
		)

	async def create_application(self, *, conn, position_id, applicant_id, message, expires_at):
		if await self.get_active_application(position_id, applicant_id) is not None:
			raise InvalidStateError("existing_application", "You have already applied to this position")
		application = models.Application(
			id=uuid4(),
			position_id=position_id,
			applicant_id=applicant_id,
			message=message,
			status=models.ApplicationStatus.PENDING,
			expires_at=expires_at,
			created_at=self._stamp(),
		)
		self.applications[application.id] = application
		return self._application_view(application)

	async def get_application(self, application_id: UUID, *, conn=None, for_update: bool = False):
		application = self.applications.get(application_id)
		return self._application_view(application) if application else None

	async def get_active_application(self, position_id: UUID, applicant_id: UUID, *, conn=None):
		for application in self.applications.values():
			if (
				application.position_id == position_id
				and application.applicant_id == applicant_id
				and application.status in models.ACTIVE_APPLICATION_STATUSES
			):
				return self._application_view(application)
		return None

	async def list_position_applications(self, position_id: UUID):
		items = [self._application_view(a) for a in self.applications.values() if a.position_id == position_id]
		return sorted(items, key=lambda application: application.created_at)

	async def list_user_applications(self, user_id: UUID):
		items = [self._application_view(a) for a in self.applications.values() if a.applicant_id == user_id]
		return sorted(items, key=lambda application: application.created_at, reverse=True)

	async def set_application_status(self, application_id: UUID, status, *, conn, responded_at):
		self.applications[application_id] = self.applications[application_id].model_copy(
			update={"status": models.ApplicationStatus(status), "responded_at": responded_at}
		)
		return self._application_view(self.applications[application_id])

	async def reject_pending_applications(
		self,
		position_ids: Sequence[UUID],
		*,
		conn,
		now: datetime,
		exclude_id: Optional[UUID] = None,
	):
		rejected = []
		for application in list(self.applications.values()):
			if (
				application.position_id in position_ids
				and application.status == models.ApplicationStatus.PENDING
				and application.id != exclude_id
			):
				rejected.append(
					await self.set_application_status(
						application.id, models.ApplicationStatus.REJECTED, conn=conn, responded_at=now
					)
				)
		return rejected

	async def expire_applications(self, *, conn, now: datetime):
		expired = []
		for application in list(self.applications.values()):
			if application.status == models.ApplicationStatus.PENDING and application.expires_at <= now:
				expired.append(
					await self.set_application_status(
						application.id, models.ApplicationStatus.EXPIRED, conn=conn, responded_at=now
					)
				)
		return expired

	# --- Notifications ------------------------------------------------------

	async def insert_notification(
		self,
		*,
		user_id,
		type,
		title,
		message,
		squad_id=None,
		position_id=None,
		application_id=None,
	):
		if self.fail_notifications:
			raise RuntimeError("notification store unavailable")
		notification = models.Notification(
			id=uuid4(),
			user_id=user_id,
			type=models.NotificationType(type),
			title=title,
			message=message,
			squad_id=squad_id,
			position_id=position_id,
			application_id=application_id,
			created_at=self._stamp(),
		)
		self.notifications[notification.id] = notification
		return notification

	def notifications_for(self, user_id: UUID) -> list[models.Notification]:
		items = [n for n in self.notifications.values() if n.user_id == user_id]
		return sorted(items, key=lambda notification: notification.created_at, reverse=True)

	async def list_notifications(self, user_id: UUID, *, limit: int, offset: int, unread_only: bool):
		items = self.notifications_for(user_id)
		if unread_only:
			items = [n for n in items if not n.read]
		return items[offset : offset + limit]

	async def count_unread_notifications(self, user_id: UUID) -> int:
		return sum(1 for n in self.notifications_for(user_id) if not n.read)

	async def get_notification(self, notification_id: UUID):
		return self.notifications.get(notification_id)

	async def mark_notification_read(self, notification_id: UUID):
		self.notifications[notification_id] = self.notifications[notification_id].model_copy(update={"read": True})
		return self.notifications[notification_id]

	async def mark_all_notifications_read(self, user_id: UUID) -> int:
		unread = [n.id for n in self.notifications_for(user_id) if not n.read]
		for notification_id in unread:
			await self.mark_notification_read(notification_id)
		return len(unread)

	# --- Profiles -----------------------------------------------------------

	async def get_profile(self, user_id: UUID):
		return self.profiles.get(user_id)

	async def upsert_profile(self, user_id: UUID, *, display_name, ethos_profile_id, ethos_score, is_validator, synced_at):
		existing = self.profiles.get(user_id)
		profile = models.Profile(
			user_id=user_id,
			display_name=display_name or (existing.display_name if existing else None),
			ethos_profile_id=ethos_profile_id or (existing.ethos_profile_id if existing else None),
			ethos_score=ethos_score,
			is_validator=is_validator,
			synced_at=synced_at,
		)
		self.profiles[user_id] = profile
		return profile

	def set_profile(
		self,
		user: AuthenticatedUser | UUID,
		*,
		score: Optional[int] = None,
		display_name: Optional[str] = None,
		ethos_profile_id: Optional[int] = None,
		is_validator: bool = False,
	) -> models.Profile:
		user_id = user.uuid if isinstance(user, AuthenticatedUser) else user
		profile = models.Profile(
			user_id=user_id,
			display_name=display_name,
			ethos_profile_id=ethos_profile_id,
			ethos_score=score,
			is_validator=is_validator,
		)
		self.profiles[user_id] = profile
		return profile


class StaticVouchSource:
	"""Answers mutual-vouch checks from a fixed set of unordered pairs."""

	def __init__(self, pairs: Iterable[tuple[UUID, UUID]] = ()) -> None:
		self.pairs = {frozenset(pair) for pair in pairs}
		self.calls = 0

	def add(self, a: UUID, b: UUID) -> None:
		self.pairs.add(frozenset((a, b)))

	async def has_mutual_vouch(self, user_id: UUID, other_id: UUID) -> bool:
		self.calls += 1
		return frozenset((user_id, other_id)) in self.pairs


class Clock:
	def __init__(self) -> None:
		self.now = datetime.now(timezone.utc)

	def __call__(self) -> datetime:
		return self.now

	def advance(self, **kwargs) -> datetime:
		self.now = self.now + timedelta(**kwargs)
		return self.now


@pytest.fixture
def repo() -> InMemorySquadsRepository:
	return InMemorySquadsRepository()


@pytest.fixture
def fake_pool(monkeypatch, repo):
	pool = _FakePool(_FakeConnection(repo))

	async def _get_pool():
		return pool

	for module in ("squads_service", "positions_service", "invites_service"):
		monkeypatch.setattr(f"app.squads.domain.{module}.get_pool", _get_pool)
	return pool


@pytest.fixture
def clock(monkeypatch) -> Clock:
	clock = Clock()
	monkeypatch.setattr(expiry, "utcnow", clock)
	return clock


@pytest.fixture
def vouches() -> StaticVouchSource:
	return StaticVouchSource()


@pytest.fixture
def services(repo, fake_pool, vouches) -> Services:
	reputation = ProfileReputationSource(repository=repo)
	notifications = NotificationService(repository=repo)
	squads = SquadsService(repository=repo, reputation=reputation)
	eligibility = EligibilityEvaluator(
		repository=repo,
		reputation=reputation,
		vouches=vouches,
		vouch_timeout=0.5,
	)
	positions = PositionsService(
		repository=repo,
		squads=squads,
		eligibility=eligibility,
		notifications=notifications,
	)
	invites = InvitesService(
		repository=repo,
		squads=squads,
		positions=positions,
		notifications=notifications,
	)
	return Services(
		squads=squads,
		invites=invites,
		positions=positions,
		notifications=notifications,
		profiles=ProfilesService(repository=repo, ethos=EthosClient()),
	)


@pytest.fixture
def make_user():
	def _make(name: str = "user") -> AuthenticatedUser:
		return AuthenticatedUser(id=str(uuid4()), display_name=name)

	return _make
