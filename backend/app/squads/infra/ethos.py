"""HTTP client for the Ethos reputation API (v2)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Optional
from urllib.parse import quote

import httpx

from app.obs import metrics as obs_metrics
from app.settings import settings

logger = logging.getLogger(__name__)


class EthosUnavailable(Exception):
	"""Raised when Ethos cannot answer (network error, timeout or 5xx)."""


@dataclass(frozen=True)
class EthosUser:
	profile_id: Optional[int]
	display_name: Optional[str]
	username: Optional[str]
	score: Optional[int]
	userkeys: tuple[str, ...] = ()

	@classmethod
	def from_payload(cls, payload: dict[str, Any]) -> "EthosUser":
		score = payload.get("score")
		profile_id = payload.get("profileId")
		return cls(
			profile_id=int(profile_id) if profile_id is not None else None,
			display_name=payload.get("displayName"),
			username=payload.get("username"),
			score=int(score) if score is not None else None,
			userkeys=tuple(str(key) for key in payload.get("userkeys") or ()),
		)


def profile_key(profile_id: int) -> str:
	return f"profileId:{profile_id}"


@dataclass
class EthosClient:
	"""Thin async wrapper that tags requests with the client id and a timeout."""

	http: httpx.AsyncClient | None = None
	base_url: str = field(default_factory=lambda: settings.ethos_api_base)
	client_id: str = field(default_factory=lambda: settings.ethos_client_id)
	request_timeout: float = field(default_factory=lambda: settings.ethos_timeout_seconds)

	def _client(self) -> httpx.AsyncClient:
		if self.http is None:
			self.http = httpx.AsyncClient(base_url=self.base_url, timeout=self.request_timeout)
		return self.http

	async def _get(self, kind: str, path: str) -> Any | None:
		"""GET ``path``; ``None`` on 404, ``EthosUnavailable`` on anything else non-2xx."""
		start = perf_counter()
		try:
			response = await self._client().get(
				path,
				headers={"X-Ethos-Client": self.client_id, "Content-Type": "application/json"},
				timeout=self.request_timeout,
			)
		except httpx.HTTPError as exc:
			obs_metrics.record_reputation_lookup(kind, result="error")
			logger.warning("ethos request failed", extra={"path": path, "error": type(exc).__name__})
			raise EthosUnavailable(str(exc)) from exc
		latency = perf_counter() - start
		if response.status_code == 404:
			obs_metrics.record_reputation_lookup(kind, result="not_found", latency_seconds=latency)
			return None
		if response.is_error:
			obs_metrics.record_reputation_lookup(kind, result="error", latency_seconds=latency)
			raise EthosUnavailable(f"ethos_status_{response.status_code}")
		obs_metrics.record_reputation_lookup(kind, result="ok", latency_seconds=latency)
		return response.json()

	async def get_user_by_profile_id(self, profile_id: int) -> EthosUser | None:
		payload = await self._get("user", f"/user/by/profileId/{profile_id}")
		return EthosUser.from_payload(payload) if isinstance(payload, dict) else None

	async def owns_validator(self, profile_id: int) -> bool:
		payload = await self._get("validator", f"/nfts/user/{quote(profile_key(profile_id), safe='')}/owns-validator")
		return bool(payload)

	async def get_mutual_vouchers(self, profile_id: int) -> list[str]:
		"""Return the userkeys that share a mutual vouch with ``profile_id``."""
		payload = await self._get("vouch", f"/vouches/mutual-vouchers?userkey={quote(profile_key(profile_id), safe='')}")
		if isinstance(payload, dict):
			payload = payload.get("values") or payload.get("userkeys") or []
		return [str(item) for item in payload or []]

	async def aclose(self) -> None:
		if self.http is not None:
			await self.http.aclose()
			self.http = None
