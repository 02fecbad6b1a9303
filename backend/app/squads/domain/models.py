"""Domain models and constants for squads, invites, positions and applications."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

SQUAD_MIN_SIZE = 2
SQUAD_MAX_SIZE = 7
DEFAULT_MAX_SIZE = 5

INVITE_EXPIRY = timedelta(days=7)
POSITION_EXPIRY = timedelta(days=30)
APPLICATION_EXPIRY = timedelta(days=7)


class SquadRole(str, Enum):
	DEGEN = "DEGEN"
	SUGAR_DADDY = "SUGAR_DADDY"
	ALPHA_CALLER = "ALPHA_CALLER"
	TRADER = "TRADER"
	DEV = "DEV"
	VIBE_CODER = "VIBE_CODER"
	KOL = "KOL"


DEFAULT_CREATOR_ROLE = SquadRole.DEGEN


class ScoreTier(str, Enum):
	BELOW_1400 = "BELOW_1400"
	TIER_1400 = "TIER_1400"
	TIER_1500 = "TIER_1500"
	TIER_1600 = "TIER_1600"
	TIER_1700 = "TIER_1700"
	TIER_1800 = "TIER_1800"
	TIER_1900 = "TIER_1900"
	TIER_2000_PLUS = "TIER_2000_PLUS"


SCORE_TIER_MINIMUMS: dict[ScoreTier, int] = {
	ScoreTier.BELOW_1400: 0,
	ScoreTier.TIER_1400: 1400,
	ScoreTier.TIER_1500: 1500,
	ScoreTier.TIER_1600: 1600,
	ScoreTier.TIER_1700: 1700,
	ScoreTier.TIER_1800: 1800,
	ScoreTier.TIER_1900: 1900,
	ScoreTier.TIER_2000_PLUS: 2000,
}


def tier_minimum(tier: ScoreTier) -> int:
	return SCORE_TIER_MINIMUMS[ScoreTier(tier)]


def meets_score_tier(score: int | None, tier: ScoreTier) -> bool:
	"""Inclusive comparison; a missing score counts as zero."""
	return (score or 0) >= tier_minimum(tier)


class Benefit(str, Enum):
	EQUITY = "EQUITY"
	CASH = "CASH"
	TIPS = "TIPS"
	EXPOSURE = "EXPOSURE"
	MUTUAL = "MUTUAL"
	FUN = "FUN"


class InviteStatus(str, Enum):
	PENDING = "PENDING"
	ACCEPTED = "ACCEPTED"
	DECLINED = "DECLINED"
	EXPIRED = "EXPIRED"
	CANCELLED = "CANCELLED"


class ApplicationStatus(str, Enum):
	PENDING = "PENDING"
	APPROVED = "APPROVED"
	REJECTED = "REJECTED"
	WITHDRAWN = "WITHDRAWN"
	EXPIRED = "EXPIRED"


ACTIVE_APPLICATION_STATUSES = (ApplicationStatus.PENDING, ApplicationStatus.APPROVED)


class NotificationType(str, Enum):
	APPLICATION_RECEIVED = "APPLICATION_RECEIVED"
	APPLICATION_APPROVED = "APPLICATION_APPROVED"
	APPLICATION_REJECTED = "APPLICATION_REJECTED"
	APPLICATION_EXPIRED = "APPLICATION_EXPIRED"
	POSITION_DELETED = "POSITION_DELETED"


class Squad(BaseModel):
	"""A bounded team with one captain; ``member_count`` is read alongside the row."""

	id: UUID
	name: str
	description: Optional[str] = None
	avatar_url: Optional[str] = None
	min_size: int = SQUAD_MIN_SIZE
	max_size: int = DEFAULT_MAX_SIZE
	is_fixed_size: bool = False
	is_active: bool = False
	creator_id: UUID
	captain_id: UUID
	member_count: int = 0
	created_at: datetime
	updated_at: datetime

	model_config = ConfigDict(from_attributes=True)

	@property
	def free_slots(self) -> int:
		return max(self.max_size - self.member_count, 0)


class SquadMember(BaseModel):
	id: UUID
	squad_id: UUID
	user_id: UUID
	role: SquadRole
	joined_at: datetime
	display_name: Optional[str] = None

	model_config = ConfigDict(from_attributes=True)


class SquadInvite(BaseModel):
	id: UUID
	squad_id: UUID
	inviter_id: UUID
	invitee_id: UUID
	role: SquadRole
	status: InviteStatus
	message: Optional[str] = None
	expires_at: datetime
	responded_at: Optional[datetime] = None
	created_at: datetime
	squad_name: Optional[str] = None

	model_config = ConfigDict(from_attributes=True)


class OpenPosition(BaseModel):
	id: UUID
	squad_id: UUID
	role: SquadRole
	description: Optional[str] = None
	score_tier: ScoreTier = ScoreTier.BELOW_1400
	requires_mutual_vouch: bool = False
	benefits: list[Benefit] = Field(default_factory=list)
	expires_at: datetime
	is_open: bool = True
	created_at: datetime
	squad_name: Optional[str] = None

	model_config = ConfigDict(from_attributes=True)


class Application(BaseModel):
	id: UUID
	position_id: UUID
	applicant_id: UUID
	message: Optional[str] = None
	status: ApplicationStatus
	expires_at: datetime
	responded_at: Optional[datetime] = None
	created_at: datetime
	squad_id: Optional[UUID] = None
	squad_name: Optional[str] = None

	model_config = ConfigDict(from_attributes=True)


class Notification(BaseModel):
	id: UUID
	user_id: UUID
	type: NotificationType
	title: str
	message: str
	read: bool = False
	squad_id: Optional[UUID] = None
	position_id: Optional[UUID] = None
	application_id: Optional[UUID] = None
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)


class Profile(BaseModel):
	"""Last known reputation snapshot for a user."""

	user_id: UUID
	display_name: Optional[str] = None
	ethos_profile_id: Optional[int] = None
	ethos_score: Optional[int] = None
	is_validator: bool = False
	synced_at: Optional[datetime] = None

	model_config = ConfigDict(from_attributes=True)
