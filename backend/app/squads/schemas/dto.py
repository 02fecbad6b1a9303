"""Pydantic schemas for the squads API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.squads.domain.models import (
	DEFAULT_CREATOR_ROLE,
	ApplicationStatus,
	Benefit,
	InviteStatus,
	NotificationType,
	ScoreTier,
	SquadRole,
)


class _Response(BaseModel):
	model_config = ConfigDict(from_attributes=True)


# --- Squads -----------------------------------------------------------------


class SquadCreateRequest(BaseModel):
	name: str = Field(..., min_length=1, max_length=50)
	description: Optional[str] = Field(default=None, max_length=500)
	avatar_url: Optional[str] = Field(default=None, max_length=2048)
	max_size: Optional[int] = None
	is_fixed_size: bool = False
	role: SquadRole = DEFAULT_CREATOR_ROLE

	@field_validator("name")
	@classmethod
	def _strip_name(cls, value: str) -> str:
		value = value.strip()
		if not value:
			raise ValueError("name must not be blank")
		return value


class SquadUpdateRequest(BaseModel):
	name: Optional[str] = Field(default=None, min_length=1, max_length=50)
	description: Optional[str] = Field(default=None, max_length=500)
	avatar_url: Optional[str] = Field(default=None, max_length=2048)
	max_size: Optional[int] = None
	is_fixed_size: Optional[bool] = None


class MemberResponse(_Response):
	id: UUID
	user_id: UUID
	role: SquadRole
	joined_at: datetime
	display_name: Optional[str] = None


class SquadResponse(_Response):
	id: UUID
	name: str
	description: Optional[str] = None
	avatar_url: Optional[str] = None
	min_size: int
	max_size: int
	is_fixed_size: bool
	is_active: bool
	creator_id: UUID
	captain_id: UUID
	member_count: int
	created_at: datetime
	updated_at: datetime
	members: List[MemberResponse] = Field(default_factory=list)


class SquadListResponse(BaseModel):
	items: List[SquadResponse]
	total: int
	page: int
	limit: int


class MemberRoleUpdateRequest(BaseModel):
	role: SquadRole


class CaptainTransferRequest(BaseModel):
	new_captain_id: UUID


class CreationQuotaResponse(BaseModel):
	can_create: bool
	current_count: int
	max_allowed: int
	score: Optional[int] = None


# --- Invites ----------------------------------------------------------------


class InviteCreateRequest(BaseModel):
	invitee_id: UUID
	role: SquadRole = DEFAULT_CREATOR_ROLE
	message: Optional[str] = Field(default=None, max_length=500)


class InviteResponse(_Response):
	id: UUID
	squad_id: UUID
	squad_name: Optional[str] = None
	inviter_id: UUID
	invitee_id: UUID
	role: SquadRole
	status: InviteStatus
	message: Optional[str] = None
	expires_at: datetime
	responded_at: Optional[datetime] = None
	created_at: datetime


# --- Positions & applications ----------------------------------------------


class PositionCreateRequest(BaseModel):
	role: SquadRole
	description: Optional[str] = Field(default=None, max_length=1000)
	score_tier: ScoreTier = ScoreTier.BELOW_1400
	requires_mutual_vouch: bool = False
	benefits: List[Benefit] = Field(default_factory=list)
	expires_at: Optional[datetime] = None

	@field_validator("benefits")
	@classmethod
	def _dedupe_benefits(cls, value: List[Benefit]) -> List[Benefit]:
		return list(dict.fromkeys(value))


class PositionResponse(_Response):
	id: UUID
	squad_id: UUID
	squad_name: Optional[str] = None
	role: SquadRole
	description: Optional[str] = None
	score_tier: ScoreTier
	required_min_score: int = 0
	requires_mutual_vouch: bool
	benefits: List[Benefit]
	expires_at: datetime
	is_open: bool
	created_at: datetime


class PositionListResponse(BaseModel):
	items: List[PositionResponse]
	total: int
	page: int
	limit: int


class ApplicationCreateRequest(BaseModel):
	position_id: UUID
	message: Optional[str] = Field(default=None, max_length=1000)


class ApplicationResponse(_Response):
	id: UUID
	position_id: UUID
	squad_id: Optional[UUID] = None
	squad_name: Optional[str] = None
	applicant_id: UUID
	message: Optional[str] = None
	status: ApplicationStatus
	expires_at: datetime
	responded_at: Optional[datetime] = None
	created_at: datetime


class ApprovalResponse(BaseModel):
	application: ApplicationResponse
	member: MemberResponse
	rejected_count: int


class EligibilityResponse(BaseModel):
	eligible: bool
	is_already_member: bool
	has_existing_application: bool
	meets_score_requirement: bool
	meets_mutual_vouch_requirement: bool
	user_score: Optional[int] = None
	required_min_score: int
	requires_mutual_vouch: bool
	has_mutual_vouch: bool
	reason: Optional[str] = None


class ExpirationSweepResponse(BaseModel):
	expired_positions: int
	expired_applications: int
	expired_invites: int


# --- Notifications ----------------------------------------------------------


class NotificationResponse(_Response):
	id: UUID
	type: NotificationType
	title: str
	message: str
	read: bool
	squad_id: Optional[UUID] = None
	position_id: Optional[UUID] = None
	application_id: Optional[UUID] = None
	created_at: datetime


class NotificationListResponse(BaseModel):
	items: List[NotificationResponse]
	unread_count: int


class UnreadCountResponse(BaseModel):
	count: int


class MarkAllReadResponse(BaseModel):
	updated: int


# --- Profiles ---------------------------------------------------------------


class ProfileSyncRequest(BaseModel):
	ethos_profile_id: Optional[int] = Field(default=None, ge=1)
	display_name: Optional[str] = Field(default=None, max_length=80)


class ProfileResponse(_Response):
	user_id: UUID
	display_name: Optional[str] = None
	ethos_profile_id: Optional[int] = None
	ethos_score: Optional[int] = None
	is_validator: bool = False
	synced_at: Optional[datetime] = None
