"""Async repository helpers for the squads domain."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, Sequence, TypeVar
from uuid import UUID, uuid4

import asyncpg

from app.infra.postgres import get_pool
from app.squads.domain import models
from app.squads.domain.exceptions import InvalidStateError, NotFoundError

T = TypeVar("T")

_SQUAD_SELECT = """
	SELECT s.*,
		(SELECT count(*) FROM squad_member m WHERE m.squad_id = s.id)::int AS member_count
	FROM squad s
"""

_MEMBER_SELECT = """
	SELECT m.*, p.display_name
	FROM squad_member m
	LEFT JOIN squad_profile p ON p.user_id = m.user_id
"""

_INVITE_SELECT = """
	SELECT i.*, s.name AS squad_name
	FROM squad_invite i
	JOIN squad s ON s.id = i.squad_id
"""

_POSITION_SELECT = """
	SELECT p.*, s.name AS squad_name
	FROM open_position p
	JOIN squad s ON s.id = p.squad_id
"""

_APPLICATION_SELECT = """
	SELECT a.*, p.squad_id, s.name AS squad_name
	FROM squad_application a
	JOIN open_position p ON p.id = a.position_id
	JOIN squad s ON s.id = p.squad_id
"""

_SQUAD_COLUMNS = frozenset({"name", "description", "avatar_url", "max_size", "is_fixed_size"})


def _ids(values: Iterable[UUID]) -> list[str]:
	return [str(value) for value in values]


def _require_row(row: T | None, entity: str) -> T:
	if row is None:
		raise NotFoundError(f"{entity}_not_found", f"{entity.capitalize()} not found")
	return row


class SquadsRepository:
	"""Thin data-access layer around asyncpg.

	Methods that take part in a workflow transaction accept ``conn``; without it
	they borrow a pooled connection for a single statement.
	"""

	async def _run(
		self,
		conn: asyncpg.Connection | None,
		fn: Callable[[asyncpg.Connection], Awaitable[T]],
	) -> T:
		if conn is not None:
			return await fn(conn)
		pool = await get_pool()
		async with pool.acquire() as pooled_conn:
			return await fn(pooled_conn)

	# --- Squads -------------------------------------------------------------

	async def create_squad(
		self,
		*,
		conn: asyncpg.Connection,
		name: str,
		description: str | None,
		avatar_url: str | None,
		min_size: int,
		max_size: int,
		is_fixed_size: bool,
		creator_id: UUID,
	) -> models.Squad:
		squad_id = uuid4()
		await conn.execute(
			"""
			INSERT INTO squad (id, name, description, avatar_url, min_size, max_size,
				is_fixed_size, is_active, creator_id, captain_id)
			VALUES ($1, $2, $3, $4, $5, $6, $7, FALSE, $8, $8)
			""",
			str(squad_id),
			name,
			description,
			avatar_url,
			min_size,
			max_size,
			is_fixed_size,
			str(creator_id),
		)
		squad = await self.get_squad(squad_id, conn=conn)
		return _require_row(squad, "squad")

	async def get_squad(
		self,
		squad_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
		for_update: bool = False,
	) -> models.Squad | None:
		query = _SQUAD_SELECT + " WHERE s.id = $1"
		if for_update:
			query += " FOR UPDATE OF s"

		async def _fetch(connection: asyncpg.Connection) -> models.Squad | None:
			record = await connection.fetchrow(query, str(squad_id))
			return models.Squad.model_validate(dict(record)) if record else None

		return await self._run(conn, _fetch)

	async def update_squad(
		self,
		squad_id: UUID,
		*,
		conn: asyncpg.Connection,
		fields: dict[str, Any],
	) -> models.Squad:
		updates = {key: value for key, value in fields.items() if key in _SQUAD_COLUMNS}
		if updates:
			assignments = ", ".join(f"{column} = ${idx}" for idx, column in enumerate(updates, start=2))
			await conn.execute(
				f"UPDATE squad SET {assignments}, updated_at = NOW() WHERE id = $1",
				str(squad_id),
				*updates.values(),
			)
		squad = await self.get_squad(squad_id, conn=conn)
		return _require_row(squad, "squad")

	async def set_captain(self, squad_id: UUID, user_id: UUID, *, conn: asyncpg.Connection) -> None:
		await conn.execute(
			"UPDATE squad SET captain_id = $2, updated_at = NOW() WHERE id = $1",
			str(squad_id),
			str(user_id),
		)

	async def refresh_squad_activity(self, squad_id: UUID, *, conn: asyncpg.Connection) -> models.Squad:
		"""Recompute ``is_active`` from the committed member count."""
		await conn.execute(
			"""
			UPDATE squad s
			SET is_active = (SELECT count(*) FROM squad_member m WHERE m.squad_id = s.id) >= s.min_size,
				updated_at = NOW()
			WHERE s.id = $1
			""",
			str(squad_id),
		)
		squad = await self.get_squad(squad_id, conn=conn)
		return _require_row(squad, "squad")

	async def delete_squad(self, squad_id: UUID, *, conn: asyncpg.Connection) -> None:
		await conn.execute("DELETE FROM squad WHERE id = $1", str(squad_id))

	async def list_squads(
		self,
		*,
		limit: int,
		offset: int,
		active_only: bool = False,
	) -> tuple[list[models.Squad], int]:
		where = " WHERE s.is_active" if active_only else ""
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				_SQUAD_SELECT + where + " ORDER BY s.created_at DESC, s.id LIMIT $1 OFFSET $2",
				limit,
				offset,
			)
			total = await conn.fetchval("SELECT count(*) FROM squad s" + where)
		return [models.Squad.model_validate(dict(row)) for row in rows], int(total or 0)

	async def list_user_squads(self, user_id: UUID) -> list[models.Squad]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				_SQUAD_SELECT
				+ """
				WHERE EXISTS (SELECT 1 FROM squad_member m WHERE m.squad_id = s.id AND m.user_id = $1)
				ORDER BY s.created_at DESC
				""",
				str(user_id),
			)
		return [models.Squad.model_validate(dict(row)) for row in rows]

	async def lock_creator(self, user_id: UUID, *, conn: asyncpg.Connection) -> None:
		"""Serialise squad creation per user for the rest of the transaction."""
		await conn.execute("SELECT pg_advisory_xact_lock(hashtext($1))", f"squad-creator:{user_id}")

	async def count_created_squads(self, user_id: UUID, *, conn: asyncpg.Connection | None = None) -> int:
		async def _fetch(connection: asyncpg.Connection) -> int:
			value = await connection.fetchval(
				"SELECT count(*) FROM squad WHERE creator_id = $1",
				str(user_id),
			)
			return int(value or 0)

		return await self._run(conn, _fetch)

	# --- Members ------------------------------------------------------------

	async def list_members(
		self,
		squad_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> list[models.SquadMember]:
		async def _fetch(connection: asyncpg.Connection) -> list[models.SquadMember]:
			rows = await connection.fetch(
				_MEMBER_SELECT + " WHERE m.squad_id = $1 ORDER BY m.joined_at ASC, m.id ASC",
				str(squad_id),
			)
			return [models.SquadMember.model_validate(dict(row)) for row in rows]

		return await self._run(conn, _fetch)

	async def get_member(
		self,
		squad_id: UUID,
		user_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.SquadMember | None:
		async def _fetch(connection: asyncpg.Connection) -> models.SquadMember | None:
			record = await connection.fetchrow(
				_MEMBER_SELECT + " WHERE m.squad_id = $1 AND m.user_id = $2",
				str(squad_id),
				str(user_id),
			)
			return models.SquadMember.model_validate(dict(record)) if record else None

		return await self._run(conn, _fetch)

	async def get_member_by_id(
		self,
		member_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.SquadMember | None:
		async def _fetch(connection: asyncpg.Connection) -> models.SquadMember | None:
			record = await connection.fetchrow(_MEMBER_SELECT + " WHERE m.id = $1", str(member_id))
			return models.SquadMember.model_validate(dict(record)) if record else None

		return await self._run(conn, _fetch)

	async def insert_member(
		self,
		*,
		conn: asyncpg.Connection,
		squad_id: UUID,
		user_id: UUID,
		role: models.SquadRole,
	) -> models.SquadMember:
		try:
			record = await conn.fetchrow(
				"""
				INSERT INTO squad_member (id, squad_id, user_id, role)
				VALUES ($1, $2, $3, $4)
				RETURNING *
				""",
				str(uuid4()),
				str(squad_id),
				str(user_id),
				models.SquadRole(role).value,
			)
		except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
			raise InvalidStateError("already_member", "User is already a member of this squad") from exc
		return models.SquadMember.model_validate(dict(record))

	async def update_member_role(
		self,
		member_id: UUID,
		role: models.SquadRole,
		*,
		conn: asyncpg.Connection,
	) -> models.SquadMember:
		await conn.execute(
			"UPDATE squad_member SET role = $2 WHERE id = $1",
			str(member_id),
			models.SquadRole(role).value,
		)
		member = await self.get_member_by_id(member_id, conn=conn)
		return _require_row(member, "member")

	async def delete_member(self, member_id: UUID, *, conn: asyncpg.Connection) -> None:
		await conn.execute("DELETE FROM squad_member WHERE id = $1", str(member_id))

	# --- Invites ------------------------------------------------------------

	async def create_invite(
		self,
		*,
		conn: asyncpg.Connection,
		squad_id: UUID,
		inviter_id: UUID,
		invitee_id: UUID,
		role: models.SquadRole,
		message: str | None,
		expires_at: datetime,
	) -> models.SquadInvite:
		invite_id = uuid4()
		try:
			await conn.execute(
				"""
				INSERT INTO squad_invite (id, squad_id, inviter_id, invitee_id, role, status, message, expires_at)
				VALUES ($1, $2, $3, $4, $5, 'PENDING', $6, $7)
				""",
				str(invite_id),
				str(squad_id),
				str(inviter_id),
				str(invitee_id),
				models.SquadRole(role).value,
				message,
				expires_at,
			)
		except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
			raise InvalidStateError("invite_pending", "User already has a pending invite to this squad") from exc
		invite = await self.get_invite(invite_id, conn=conn)
		return _require_row(invite, "invite")

	async def get_invite(
		self,
		invite_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
		for_update: bool = False,
	) -> models.SquadInvite | None:
		query = _INVITE_SELECT + " WHERE i.id = $1"
		if for_update:
			query += " FOR UPDATE OF i"

		async def _fetch(connection: asyncpg.Connection) -> models.SquadInvite | None:
			record = await connection.fetchrow(query, str(invite_id))
			return models.SquadInvite.model_validate(dict(record)) if record else None

		return await self._run(conn, _fetch)

	async def get_pending_invite(
		self,
		squad_id: UUID,
		invitee_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.SquadInvite | None:
		async def _fetch(connection: asyncpg.Connection) -> models.SquadInvite | None:
			record = await connection.fetchrow(
				_INVITE_SELECT + " WHERE i.squad_id = $1 AND i.invitee_id = $2 AND i.status = 'PENDING'",
				str(squad_id),
				str(invitee_id),
			)
			return models.SquadInvite.model_validate(dict(record)) if record else None

		return await self._run(conn, _fetch)

	async def set_invite_status(
		self,
		invite_id: UUID,
		status: models.InviteStatus,
		*,
		conn: asyncpg.Connection,
		responded_at: datetime | None,
	) -> models.SquadInvite:
		await conn.execute(
			"UPDATE squad_invite SET status = $2, responded_at = $3 WHERE id = $1",
			str(invite_id),
			models.InviteStatus(status).value,
			responded_at,
		)
		invite = await self.get_invite(invite_id, conn=conn)
		return _require_row(invite, "invite")

	async def list_pending_invites_for_user(self, user_id: UUID, *, now: datetime) -> list[models.SquadInvite]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				_INVITE_SELECT
				+ " WHERE i.invitee_id = $1 AND i.status = 'PENDING' AND i.expires_at > $2 ORDER BY i.created_at DESC",
				str(user_id),
				now,
			)
		return [models.SquadInvite.model_validate(dict(row)) for row in rows]

	async def list_pending_invites_for_squad(self, squad_id: UUID, *, now: datetime) -> list[models.SquadInvite]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				_INVITE_SELECT
				+ " WHERE i.squad_id = $1 AND i.status = 'PENDING' AND i.expires_at > $2 ORDER BY i.created_at DESC",
				str(squad_id),
				now,
			)
		return [models.SquadInvite.model_validate(dict(row)) for row in rows]

	async def expire_invites(self, *, conn: asyncpg.Connection, now: datetime) -> int:
		rows = await conn.fetch(
			"""
			UPDATE squad_invite SET status = 'EXPIRED', responded_at = $1
			WHERE status = 'PENDING' AND expires_at <= $1
			RETURNING id
			""",
			now,
		)
		return len(rows)

	# --- Positions ----------------------------------------------------------

	async def create_position(
		self,
		*,
		conn: asyncpg.Connection,
		squad_id: UUID,
		role: models.SquadRole,
		description: str | None,
		score_tier: models.ScoreTier,
		requires_mutual_vouch: bool,
		benefits: Sequence[models.Benefit],
		expires_at: datetime,
	) -> models.OpenPosition:
		position_id = uuid4()
		await conn.execute(
			"""
			INSERT INTO open_position (id, squad_id, role, description, score_tier,
				requires_mutual_vouch, benefits, expires_at, is_open)
			VALUES ($1, $2, $3, $4, $5, $6, $7, $8, TRUE)
			""",
			str(position_id),
			str(squad_id),
			models.SquadRole(role).value,
			description,
			models.ScoreTier(score_tier).value,
			requires_mutual_vouch,
			[models.Benefit(item).value for item in benefits],
			expires_at,
		)
		position = await self.get_position(position_id, conn=conn)
		return _require_row(position, "position")

	async def get_position(
		self,
		position_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
		for_update: bool = False,
	) -> models.OpenPosition | None:
		query = _POSITION_SELECT + " WHERE p.id = $1"
		if for_update:
			query += " FOR UPDATE OF p"

		async def _fetch(connection: asyncpg.Connection) -> models.OpenPosition | None:
			record = await connection.fetchrow(query, str(position_id))
			return models.OpenPosition.model_validate(dict(record)) if record else None

		return await self._run(conn, _fetch)

	async def count_accepting_positions(self, squad_id: UUID, *, conn: asyncpg.Connection, now: datetime) -> int:
		value = await conn.fetchval(
			"SELECT count(*) FROM open_position WHERE squad_id = $1 AND is_open AND expires_at > $2",
			str(squad_id),
			now,
		)
		return int(value or 0)

	async def list_open_positions(
		self,
		*,
		now: datetime,
		limit: int,
		offset: int,
		role: models.SquadRole | None = None,
		score_tiers: Sequence[models.ScoreTier] | None = None,
		benefits: Sequence[models.Benefit] | None = None,
	) -> tuple[list[models.OpenPosition], int]:
		params: list[object] = [now]
		clauses = ["p.is_open", "p.expires_at > $1"]
		if role is not None:
			params.append(models.SquadRole(role).value)
			clauses.append(f"p.role = ${len(params)}")
		if score_tiers:
			params.append([models.ScoreTier(tier).value for tier in score_tiers])
			clauses.append(f"p.score_tier = ANY(${len(params)}::text[])")
		if benefits:
			params.append([models.Benefit(item).value for item in benefits])
			clauses.append(f"p.benefits && ${len(params)}::text[]")
		where = " WHERE " + " AND ".join(clauses)
		page_params = [*params, limit, offset]
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				_POSITION_SELECT
				+ where
				+ f" ORDER BY p.created_at DESC, p.id LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}",
				*page_params,
			)
			total = await conn.fetchval("SELECT count(*) FROM open_position p" + where, *params)
		return [models.OpenPosition.model_validate(dict(row)) for row in rows], int(total or 0)

	async def list_squad_positions(self, squad_id: UUID, *, now: datetime) -> list[models.OpenPosition]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				_POSITION_SELECT
				+ " WHERE p.squad_id = $1 AND p.is_open AND p.expires_at > $2 ORDER BY p.created_at DESC",
				str(squad_id),
				now,
			)
		return [models.OpenPosition.model_validate(dict(row)) for row in rows]

	async def close_position(self, position_id: UUID, *, conn: asyncpg.Connection) -> None:
		await conn.execute("UPDATE open_position SET is_open = FALSE WHERE id = $1", str(position_id))

	async def close_squad_positions(self, squad_id: UUID, *, conn: asyncpg.Connection) -> list[UUID]:
		rows = await conn.fetch(
			"UPDATE open_position SET is_open = FALSE WHERE squad_id = $1 AND is_open RETURNING id",
			str(squad_id),
		)
		return [UUID(str(row["id"])) for row in rows]

	async def delete_position(self, position_id: UUID, *, conn: asyncpg.Connection) -> None:
		await conn.execute("DELETE FROM open_position WHERE id = $1", str(position_id))

	async def close_expired_positions(self, *, conn: asyncpg.Connection, now: datetime) -> int:
		rows = await conn.fetch(
			"UPDATE open_position SET is_open = FALSE WHERE is_open AND expires_at <= $1 RETURNING id",
			now,
		)
		return len(rows)

	# --- Applications -------------------------------------------------------

	async def create_application(
		self,
		*,
		conn: asyncpg.Connection,
		position_id: UUID,
		applicant_id: UUID,
		message: str | None,
		expires_at: datetime,
	) -> models.Application:
		application_id = uuid4()
		try:
			await conn.execute(
				"""
				INSERT INTO squad_application (id, position_id, applicant_id, message, status, expires_at)
				VALUES ($1, $2, $3, $4, 'PENDING', $5)
				""",
				str(application_id),
				str(position_id),
				str(applicant_id),
				message,
				expires_at,
			)
		except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
			raise InvalidStateError("existing_application", "You have already applied to this position") from exc
		application = await self.get_application(application_id, conn=conn)
		return _require_row(application, "application")

	async def get_application(
		self,
		application_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
		for_update: bool = False,
	) -> models.Application | None:
		query = _APPLICATION_SELECT + " WHERE a.id = $1"
		if for_update:
			query += " FOR UPDATE OF a"

		async def _fetch(connection: asyncpg.Connection) -> models.Application | None:
			record = await connection.fetchrow(query, str(application_id))
			return models.Application.model_validate(dict(record)) if record else None

		return await self._run(conn, _fetch)

	async def get_active_application(
		self,
		position_id: UUID,
		applicant_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.Application | None:
		async def _fetch(connection: asyncpg.Connection) -> models.Application | None:
			record = await connection.fetchrow(
				_APPLICATION_SELECT
				+ " WHERE a.position_id = $1 AND a.applicant_id = $2 AND a.status IN ('PENDING', 'APPROVED')",
				str(position_id),
				str(applicant_id),
			)
			return models.Application.model_validate(dict(record)) if record else None

		return await self._run(conn, _fetch)

	async def list_position_applications(self, position_id: UUID) -> list[models.Application]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				_APPLICATION_SELECT + " WHERE a.position_id = $1 ORDER BY a.created_at ASC",
				str(position_id),
			)
		return [models.Application.model_validate(dict(row)) for row in rows]

	async def list_user_applications(self, user_id: UUID) -> list[models.Application]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				_APPLICATION_SELECT + " WHERE a.applicant_id = $1 ORDER BY a.created_at DESC",
				str(user_id),
			)
		return [models.Application.model_validate(dict(row)) for row in rows]

	async def set_application_status(
		self,
		application_id: UUID,
		status: models.ApplicationStatus,
		*,
		conn: asyncpg.Connection,
		responded_at: datetime | None,
	) -> models.Application:
		await conn.execute(
			"UPDATE squad_application SET status = $2, responded_at = $3 WHERE id = $1",
			str(application_id),
			models.ApplicationStatus(status).value,
			responded_at,
		)
		application = await self.get_application(application_id, conn=conn)
		return _require_row(application, "application")

	async def reject_pending_applications(
		self,
		position_ids: Sequence[UUID],
		*,
		conn: asyncpg.Connection,
		now: datetime,
		exclude_id: UUID | None = None,
	) -> list[models.Application]:
		"""Flip every PENDING application on ``position_ids`` to REJECTED and return them."""
		if not position_ids:
			return []
		rows = await conn.fetch(
			"""
			WITH rejected AS (
				UPDATE squad_application
				SET status = 'REJECTED', responded_at = $2
				WHERE position_id = ANY($1::uuid[])
					AND status = 'PENDING'
					AND ($3::uuid IS NULL OR id <> $3::uuid)
				RETURNING *
			)
			SELECT r.*, p.squad_id, s.name AS squad_name
			FROM rejected r
			JOIN open_position p ON p.id = r.position_id
			JOIN squad s ON s.id = p.squad_id
			""",
			_ids(position_ids),
			now,
			str(exclude_id) if exclude_id else None,
		)
		return [models.Application.model_validate(dict(row)) for row in rows]

	async def expire_applications(self, *, conn: asyncpg.Connection, now: datetime) -> list[models.Application]:
		rows = await conn.fetch(
			"""
			WITH expired AS (
				UPDATE squad_application
				SET status = 'EXPIRED', responded_at = $1
				WHERE status = 'PENDING' AND expires_at <= $1
				RETURNING *
			)
			SELECT e.*, p.squad_id, s.name AS squad_name
			FROM expired e
			JOIN open_position p ON p.id = e.position_id
			JOIN squad s ON s.id = p.squad_id
			""",
			now,
		)
		return [models.Application.model_validate(dict(row)) for row in rows]

	# --- Notifications ------------------------------------------------------

	async def insert_notification(
		self,
		*,
		user_id: UUID,
		type: models.NotificationType,
		title: str,
		message: str,
		squad_id: UUID | None = None,
		position_id: UUID | None = None,
		application_id: UUID | None = None,
	) -> models.Notification:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				INSERT INTO squad_notification (id, user_id, type, title, message, squad_id, position_id, application_id)
				VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
				RETURNING *
				""",
				str(uuid4()),
				str(user_id),
				models.NotificationType(type).value,
				title,
				message,
				str(squad_id) if squad_id else None,
				str(position_id) if position_id else None,
				str(application_id) if application_id else None,
			)
		return models.Notification.model_validate(dict(record))

	async def list_notifications(
		self,
		user_id: UUID,
		*,
		limit: int,
		offset: int,
		unread_only: bool,
	) -> list[models.Notification]:
		query = "SELECT * FROM squad_notification WHERE user_id = $1"
		if unread_only:
			query += " AND NOT read"
		query += " ORDER BY created_at DESC, id LIMIT $2 OFFSET $3"
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(query, str(user_id), limit, offset)
		return [models.Notification.model_validate(dict(row)) for row in rows]

	async def count_unread_notifications(self, user_id: UUID) -> int:
		pool = await get_pool()
		async with pool.acquire() as conn:
			value = await conn.fetchval(
				"SELECT count(*) FROM squad_notification WHERE user_id = $1 AND NOT read",
				str(user_id),
			)
		return int(value or 0)

	async def get_notification(self, notification_id: UUID) -> models.Notification | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow("SELECT * FROM squad_notification WHERE id = $1", str(notification_id))
		return models.Notification.model_validate(dict(record)) if record else None

	async def mark_notification_read(self, notification_id: UUID) -> models.Notification:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"UPDATE squad_notification SET read = TRUE WHERE id = $1 RETURNING *",
				str(notification_id),
			)
		return models.Notification.model_validate(dict(record))

	async def mark_all_notifications_read(self, user_id: UUID) -> int:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"UPDATE squad_notification SET read = TRUE WHERE user_id = $1 AND NOT read RETURNING id",
				str(user_id),
			)
		return len(rows)

	# --- Profiles -----------------------------------------------------------

	async def get_profile(self, user_id: UUID) -> models.Profile | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow("SELECT * FROM squad_profile WHERE user_id = $1", str(user_id))
		return models.Profile.model_validate(dict(record)) if record else None

	async def upsert_profile(
		self,
		user_id: UUID,
		*,
		display_name: str | None,
		ethos_profile_id: int | None,
		ethos_score: int | None,
		is_validator: bool,
		synced_at: datetime | None,
	) -> models.Profile:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				INSERT INTO squad_profile (user_id, display_name, ethos_profile_id, ethos_score, is_validator, synced_at)
				VALUES ($1, $2, $3, $4, $5, $6)
				ON CONFLICT (user_id) DO UPDATE SET
					display_name = COALESCE(EXCLUDED.display_name, squad_profile.display_name),
					ethos_profile_id = COALESCE(EXCLUDED.ethos_profile_id, squad_profile.ethos_profile_id),
					ethos_score = EXCLUDED.ethos_score,
					is_validator = EXCLUDED.is_validator,
					synced_at = EXCLUDED.synced_at
				RETURNING *
				""",
				str(user_id),
				display_name,
				ethos_profile_id,
				ethos_score,
				is_validator,
				synced_at,
			)
		return models.Profile.model_validate(dict(record))
