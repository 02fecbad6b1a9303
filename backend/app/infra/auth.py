"""Authentication helpers for FastAPI endpoints.

Identity is owned by an upstream provider; this module only verifies the
access JWT it issues and exposes the caller id to the squads workflows.
Dev headers are honoured only when running in development.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.infra import jwt as jwt_helper
from app.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	handle: Optional[str] = None
	display_name: Optional[str] = None
	roles: Tuple[str, ...] = ()
	session_id: Optional[str] = None

	@property
	def uuid(self) -> UUID:
		return UUID(self.id)

	def has_role(self, role: str) -> bool:
		return role in self.roles


_bearer_scheme = HTTPBearer(auto_error=False)


def _invalid_token() -> HTTPException:
	return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")


def _parse_user_id(raw: str) -> str:
	try:
		return str(UUID(raw.strip()))
	except (ValueError, AttributeError):
		raise _invalid_token() from None


def verify_access_jwt(token: str) -> AuthenticatedUser:
	"""Decode and validate an access JWT and return an AuthenticatedUser.

	Roles can be a list[str] or a comma-separated string.
	"""
	try:
		payload = jwt_helper.decode_access(token)
	except Exception:
		raise _invalid_token() from None

	user_id = _parse_user_id(str(payload.get("sub") or ""))
	roles_claim = payload.get("roles") or payload.get("role")
	roles: Tuple[str, ...]
	if isinstance(roles_claim, (list, tuple)):
		roles = tuple(str(r).strip() for r in roles_claim if str(r).strip())
	elif isinstance(roles_claim, str):
		roles = tuple(part.strip() for part in roles_claim.split(",") if part.strip())
	else:
		roles = ()
	handle = payload.get("handle")
	display_name = payload.get("name") or payload.get("display_name")
	return AuthenticatedUser(
		id=user_id,
		handle=str(handle) if handle is not None else None,
		display_name=str(display_name) if display_name is not None else None,
		roles=roles,
		session_id=str(payload.get("sid")),
	)


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_name: Optional[str] = Header(default=None, alias="X-User-Name"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the authenticated user.

	In development we allow simple headers. In all other environments, headers are
	ignored and a valid Bearer JWT is required.
	"""
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)
	if settings.is_dev() and x_user_id:
		return AuthenticatedUser(id=_parse_user_id(x_user_id), display_name=x_user_name)
	raise _invalid_token()
