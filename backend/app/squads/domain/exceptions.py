"""Typed failures raised by the squads workflows.

Every error carries an ``ErrorKind``; transport status codes are derived from
the kind through ``STATUS_BY_KIND`` and never from the message text.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from fastapi import status

if TYPE_CHECKING:  # pragma: no cover
	from app.squads.domain.eligibility import EligibilityResult

if hasattr(status, "HTTP_422_UNPROCESSABLE_CONTENT"):
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_CONTENT
else:  # pragma: no cover - older Starlette builds
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_ENTITY


class ErrorKind(str, Enum):
	AUTHORIZATION = "authorization"
	NOT_FOUND = "not_found"
	INVALID_STATE = "invalid_state"
	CAPACITY_EXCEEDED = "capacity_exceeded"
	ELIGIBILITY = "eligibility"
	EXPIRED = "expired"
	EXTERNAL_DEPENDENCY = "external_dependency"
	VALIDATION = "validation"


STATUS_BY_KIND: dict[ErrorKind, int] = {
	ErrorKind.AUTHORIZATION: status.HTTP_403_FORBIDDEN,
	ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
	ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
	ErrorKind.CAPACITY_EXCEEDED: status.HTTP_409_CONFLICT,
	ErrorKind.ELIGIBILITY: _HTTP_422,
	ErrorKind.EXPIRED: status.HTTP_410_GONE,
	ErrorKind.EXTERNAL_DEPENDENCY: status.HTTP_503_SERVICE_UNAVAILABLE,
	ErrorKind.VALIDATION: _HTTP_422,
}


class SquadError(Exception):
	"""Base class for squad workflow failures."""

	kind: ErrorKind = ErrorKind.INVALID_STATE
	code: str = "squad_error"
	message: str = "The operation could not be completed"

	def __init__(self, code: str | None = None, message: str | None = None) -> None:
		if code:
			self.code = code
		if message:
			self.message = message
		super().__init__(self.message)

	@property
	def status_code(self) -> int:
		return STATUS_BY_KIND[self.kind]

	def to_detail(self) -> dict[str, object]:
		return {"kind": self.kind.value, "code": self.code, "message": self.message}


class AuthorizationError(SquadError):
	kind = ErrorKind.AUTHORIZATION
	code = "forbidden"
	message = "You are not allowed to perform this action"


class NotFoundError(SquadError):
	kind = ErrorKind.NOT_FOUND
	code = "not_found"
	message = "Not found"


class InvalidStateError(SquadError):
	kind = ErrorKind.INVALID_STATE
	code = "invalid_state"


class CapacityExceededError(SquadError):
	kind = ErrorKind.CAPACITY_EXCEEDED
	code = "capacity_exceeded"
	message = "Squad is at maximum capacity"


class ExpiredError(SquadError):
	kind = ErrorKind.EXPIRED
	code = "expired"
	message = "This has expired"


class ExternalDependencyError(SquadError):
	kind = ErrorKind.EXTERNAL_DEPENDENCY
	code = "reputation_unavailable"
	message = "Reputation service is unavailable, try again later"


class ValidationError(SquadError):
	kind = ErrorKind.VALIDATION
	code = "validation_error"
	message = "Invalid input"


class EligibilityError(SquadError):
	"""Carries the full eligibility breakdown alongside the most specific reason."""

	kind = ErrorKind.ELIGIBILITY
	code = "not_eligible"
	message = "You do not meet the requirements for this position"

	def __init__(
		self,
		code: str | None = None,
		message: str | None = None,
		*,
		result: "EligibilityResult | None" = None,
	) -> None:
		super().__init__(code, message)
		self.result = result

	def to_detail(self) -> dict[str, object]:
		detail = super().to_detail()
		if self.result is not None:
			detail["eligibility"] = self.result.as_dict()
		return detail
