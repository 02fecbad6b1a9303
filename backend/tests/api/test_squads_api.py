from __future__ import annotations

from uuid import uuid4

import pytest
from httpx import AsyncClient

from app.infra import jwt as jwt_helper
from app.main import app
from app.settings import settings
from app.squads.api import _deps

BASE = "/api/squads/v1"


@pytest.fixture
def wired(services):
	overrides = {
		_deps.get_squads_service: lambda: services.squads,
		_deps.get_invites_service: lambda: services.invites,
		_deps.get_positions_service: lambda: services.positions,
		_deps.get_notifications_service: lambda: services.notifications,
		_deps.get_profiles_service: lambda: services.profiles,
	}
	app.dependency_overrides.update(overrides)
	yield services
	for provider in overrides:
		app.dependency_overrides.pop(provider, None)


def _headers(user_id=None, name="tester"):
	return {"X-User-Id": str(user_id or uuid4()), "X-User-Name": name}


@pytest.mark.asyncio
async def test_recruitment_flow_over_http(api_client: AsyncClient, wired, repo):
	captain, applicant = _headers(name="cap"), _headers(name="newbie")

	created = await api_client.post(f"{BASE}/squads", json={"name": "  Degen Den ", "max_size": 3}, headers=captain)
	assert created.status_code == 201
	squad = created.json()
	assert squad["name"] == "Degen Den"
	assert squad["member_count"] == 1

	position = await api_client.post(
		f"{BASE}/squads/{squad['id']}/positions",
		json={"role": "TRADER", "benefits": ["CASH", "CASH", "FUN"]},
		headers=captain,
	)
	assert position.status_code == 201
	assert position.json()["benefits"] == ["CASH", "FUN"]
	position_id = position.json()["id"]

	listing = await api_client.get(f"{BASE}/positions", params={"role": "TRADER"}, headers=applicant)
	assert [item["id"] for item in listing.json()["items"]] == [position_id]

	eligibility = await api_client.get(f"{BASE}/positions/{position_id}/eligibility", headers=applicant)
	assert eligibility.json()["eligible"] is True

	applied = await api_client.post(f"{BASE}/applications", json={"position_id": position_id}, headers=applicant)
	assert applied.status_code == 201
	application_id = applied.json()["id"]

	inbox = await api_client.get(f"{BASE}/notifications/unread", headers=captain)
	assert inbox.json() == {"count": 1}

	approved = await api_client.post(f"{BASE}/applications/{application_id}/approve", headers=captain)
	assert approved.status_code == 200
	body = approved.json()
	assert body["application"]["status"] == "APPROVED"
	assert body["member"]["role"] == "TRADER"

	fetched = await api_client.get(f"{BASE}/squads/{squad['id']}", headers=applicant)
	assert fetched.json()["member_count"] == 2
	assert fetched.json()["is_active"] is True

	mine = await api_client.get(f"{BASE}/squads/me", headers=applicant)
	assert [item["id"] for item in mine.json()] == [squad["id"]]

	notifications = await api_client.get(f"{BASE}/notifications", headers=applicant)
	[notification] = notifications.json()["items"]
	assert notification["type"] == "APPLICATION_APPROVED"
	read = await api_client.post(f"{BASE}/notifications/{notification['id']}/read", headers=applicant)
	assert read.json()["read"] is True


@pytest.mark.asyncio
async def test_domain_errors_map_to_status_and_detail(api_client: AsyncClient, wired):
	captain, outsider = _headers(), _headers()
	squad = (await api_client.post(f"{BASE}/squads", json={"name": "Gatekeepers", "max_size": 2}, headers=captain)).json()

	forbidden = await api_client.patch(f"{BASE}/squads/{squad['id']}", json={"name": "Mine"}, headers=outsider)
	assert forbidden.status_code == 403
	assert forbidden.json()["detail"] == {
		"kind": "authorization",
		"code": "not_captain",
		"message": "Only the captain can update the squad",
	}

	missing = await api_client.get(f"{BASE}/squads/{uuid4()}", headers=captain)
	assert missing.status_code == 404
	assert missing.json()["detail"]["kind"] == "not_found"

	quota = await api_client.post(f"{BASE}/squads", json={"name": "Second"}, headers=captain)
	assert quota.status_code == 409
	assert quota.json()["detail"]["code"] == "squad_quota_exhausted"

	position = (
		await api_client.post(
			f"{BASE}/squads/{squad['id']}/positions",
			json={"role": "DEV", "score_tier": "TIER_1800"},
			headers=captain,
		)
	).json()
	ineligible = await api_client.post(f"{BASE}/applications", json={"position_id": position["id"]}, headers=outsider)
	assert ineligible.status_code == 422
	detail = ineligible.json()["detail"]
	assert detail["code"] == "score_too_low"
	assert detail["eligibility"]["required_min_score"] == 1800


@pytest.mark.asyncio
async def test_expired_invite_maps_to_gone(api_client: AsyncClient, wired, clock):
	captain_id, invitee_id = uuid4(), uuid4()
	squad = (await api_client.post(f"{BASE}/squads", json={"name": "Timers"}, headers=_headers(captain_id))).json()
	invite = await api_client.post(
		f"{BASE}/squads/{squad['id']}/invites",
		json={"invitee_id": str(invitee_id), "role": "KOL"},
		headers=_headers(captain_id),
	)
	assert invite.status_code == 201
	clock.advance(days=7)

	response = await api_client.post(f"{BASE}/invites/{invite.json()['id']}/accept", headers=_headers(invitee_id))

	assert response.status_code == 410
	assert response.json()["detail"]["kind"] == "expired"


@pytest.mark.asyncio
async def test_ethos_outage_maps_to_service_unavailable(api_client: AsyncClient, wired, monkeypatch):
	from app.squads.infra.ethos import EthosUnavailable

	async def _down(profile_id):
		raise EthosUnavailable("timeout")

	monkeypatch.setattr(wired.profiles.ethos, "get_user_by_profile_id", _down)

	response = await api_client.post(f"{BASE}/profiles/me/sync", json={"ethos_profile_id": 9}, headers=_headers())

	assert response.status_code == 503
	assert response.json()["detail"]["code"] == "ethos_unavailable"


@pytest.mark.asyncio
async def test_unexpected_failure_is_internal_error(api_client: AsyncClient, wired, monkeypatch):
	async def _boom(*args, **kwargs):
		raise RuntimeError("connection reset")

	monkeypatch.setattr(wired.squads, "list_squads", _boom)

	response = await api_client.get(f"{BASE}/squads", headers=_headers())

	assert response.status_code == 500
	assert response.json()["detail"] == "internal_error"


@pytest.mark.asyncio
async def test_requests_without_identity_are_rejected(api_client: AsyncClient, wired):
	response = await api_client.get(f"{BASE}/squads/me")
	assert response.status_code == 401

	settings.environment = "production"
	response = await api_client.get(f"{BASE}/squads/me", headers=_headers())
	assert response.status_code == 401

	token = jwt_helper.encode_access({"sub": str(uuid4()), "sid": "session-1"})
	response = await api_client.get(f"{BASE}/squads/me", headers={"Authorization": f"Bearer {token}"})
	assert response.status_code == 200
	assert response.json() == []


@pytest.mark.asyncio
async def test_cron_expirations_requires_secret(api_client: AsyncClient, wired):
	settings.cron_secret = "s3cret"

	denied = await api_client.post(f"{BASE}/cron/expirations", headers={"Authorization": "Bearer wrong"})
	assert denied.status_code == 403

	allowed = await api_client.post(f"{BASE}/cron/expirations", headers={"Authorization": "Bearer s3cret"})
	assert allowed.status_code == 200
	assert allowed.json() == {"expired_positions": 0, "expired_applications": 0, "expired_invites": 0}
