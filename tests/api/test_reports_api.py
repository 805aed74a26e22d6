import pytest
from fastapi import HTTPException

from civic.api.errors import status_for
from civic.domain.reports.errors import (
	AlreadyVoted,
	Forbidden,
	NotFound,
	PersistenceError,
	StorageError,
	Unauthenticated,
	ValidationError,
)
from civic.domain.reports.models import Role
from civic.infra import jwt as jwt_helper
from civic.infra.auth import AuthenticatedUser, get_current_user

CITIZEN = {"X-User-Id": "citizen-u", "X-User-Role": "citizen"}
VOTER = {"X-User-Id": "citizen-v"}
MODERATOR = {"X-User-Id": "mod-m", "X-User-Role": "moderator"}


async def _submit(api_client, text="Garbage piling up near my house", headers=CITIZEN, **extra):
	response = await api_client.post("/reports", json={"raw_text": text, **extra}, headers=headers)
	assert response.status_code == 201, response.text
	return response.json()


@pytest.mark.asyncio
async def test_submit_report_returns_categorized_report(api_client, report_service):
	body = await _submit(api_client, latitude=45.5, longitude=-73.57)
	assert body["category"] == "sanitation"
	assert body["status"] == "pending"
	assert body["clean_text"] == "Garbage Piling Up Near My House"
	assert body["votes_count"] == 0
	assert body["latitude"] == 45.5
	assert (await report_service.repository.get_identity("citizen-u")).points == 10


@pytest.mark.asyncio
async def test_anonymous_submission_is_unauthenticated(api_client):
	response = await api_client.post("/reports", json={"raw_text": "Garbage piling up near my house"})
	assert response.status_code == 401
	assert response.json()["detail"] == "unauthenticated"


@pytest.mark.asyncio
async def test_short_description_and_partial_location_rejected(api_client):
	short = await api_client.post("/reports", json={"raw_text": "too short"}, headers=CITIZEN)
	assert short.status_code == 422
	assert short.json()["message"] == "description_too_short"

	partial = await api_client.post(
		"/reports",
		json={"raw_text": "Garbage piling up near my house", "latitude": 10.0},
		headers=CITIZEN,
	)
	assert partial.status_code == 422
	assert partial.json()["message"] == "location_incomplete"


@pytest.mark.asyncio
async def test_vote_once_then_conflict(api_client):
	report = await _submit(api_client)

	first = await api_client.post(f"/reports/{report['id']}/votes", headers=VOTER)
	assert first.status_code == 201
	assert first.json() == {"report_id": report["id"], "votes_count": 1, "points": 1}

	second = await api_client.post(f"/reports/{report['id']}/votes", headers=VOTER)
	assert second.status_code == 409
	assert second.json()["detail"] == "already_voted"

	detail = await api_client.get(f"/reports/{report['id']}", headers=VOTER)
	assert detail.json()["votes_count"] == 1
	assert detail.json()["user_has_voted"] is True


@pytest.mark.asyncio
async def test_vote_on_missing_report_is_not_found(api_client):
	response = await api_client.post("/reports/does-not-exist/votes", headers=VOTER)
	assert response.status_code == 404
	assert response.json()["detail"] == "not_found"


@pytest.mark.asyncio
async def test_status_change_requires_moderator(api_client, report_service):
	report = await _submit(api_client)
	url = f"/reports/{report['id']}/status"

	denied = await api_client.patch(url, json={"status": "resolved"}, headers=CITIZEN)
	assert denied.status_code == 403
	assert denied.json()["detail"] == "forbidden"

	allowed = await api_client.patch(url, json={"status": "resolved"}, headers=MODERATOR)
	assert allowed.status_code == 200
	assert allowed.json()["status"] == "resolved"

	reopened = await api_client.patch(url, json={"status": "pending"}, headers=MODERATOR)
	assert reopened.json()["status"] == "pending"
	assert (await report_service.repository.get_identity("mod-m")).points == 6

	bogus = await api_client.patch(url, json={"status": "archived"}, headers=MODERATOR)
	assert bogus.status_code == 422


@pytest.mark.asyncio
async def test_list_reports_with_filters(api_client):
	await _submit(api_client)
	road = await _submit(api_client, text="Large pothole on Main Street")

	everything = await api_client.get("/reports")
	assert everything.status_code == 200
	assert everything.json()["count"] == 2

	roads = await api_client.get("/reports", params={"category": "road"})
	assert [item["id"] for item in roads.json()["items"]] == [road["id"]]

	bad_category = await api_client.get("/reports", params={"category": "weather"})
	assert bad_category.status_code == 422

	bad_limit = await api_client.get("/reports", params={"limit": 0})
	assert bad_limit.status_code == 422


@pytest.mark.asyncio
async def test_admin_queue_is_staff_only(api_client):
	await _submit(api_client)
	assert (await api_client.get("/admin/reports", headers=CITIZEN)).status_code == 403
	assert (await api_client.get("/admin/reports")).status_code == 401
	queue = await api_client.get("/admin/reports", params={"status": "pending"}, headers=MODERATOR)
	assert queue.status_code == 200
	assert queue.json()["count"] == 1


@pytest.mark.asyncio
async def test_leaderboard(api_client):
	report = await _submit(api_client)
	await api_client.post(f"/reports/{report['id']}/votes", headers=VOTER)

	response = await api_client.get("/leaderboard", params={"limit": 5})
	assert response.status_code == 200
	rows = response.json()["items"]
	assert [(row["rank"], row["identity_id"], row["points"]) for row in rows] == [
		(1, "citizen-u", 10),
		(2, "citizen-v", 1),
	]


@pytest.mark.asyncio
async def test_image_upload(api_client):
	png = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
	response = await api_client.post(
		"/reports/images",
		files={"file": ("pothole.png", png, "image/png")},
		headers=CITIZEN,
	)
	assert response.status_code == 201
	assert response.json()["url"].startswith("http://testserver/uploads/reports/citizen-u/")

	rejected = await api_client.post(
		"/reports/images",
		files={"file": ("notes.txt", b"hello", "text/plain")},
		headers=CITIZEN,
	)
	assert rejected.status_code == 422
	assert rejected.json()["message"] == "image_type_invalid"


@pytest.mark.asyncio
async def test_bearer_token_authenticates(api_client, report_service):
	token = jwt_helper.encode_access({"sub": "jwt-user", "role": "admin", "name": "Jo", "email": "jo@example.com"})
	body = await _submit(api_client, headers={"Authorization": f"Bearer {token}"})
	assert body["author_id"] == "jwt-user"
	assert body["author_name"] == "Jo"
	identity = await report_service.repository.get_identity("jwt-user")
	assert identity.display_name == "Jo"
	assert identity.points == 10


@pytest.mark.asyncio
async def test_invalid_bearer_token_rejected(api_client):
	response = await api_client.post(
		"/reports",
		json={"raw_text": "Garbage piling up near my house"},
		headers={"Authorization": "Bearer not-a-token"},
	)
	assert response.status_code == 401
	assert response.json()["detail"] == "invalid_token"


@pytest.mark.asyncio
async def test_request_id_echoed_and_ops_endpoints(api_client):
	health = await api_client.get("/health", headers={"X-Request-Id": "req-123"})
	assert health.status_code == 200
	assert health.json()["status"] == "ok"
	assert health.headers["X-Request-Id"] == "req-123"

	metrics = await api_client.get("/metrics")
	assert metrics.status_code == 200
	assert "civic_reports_submitted_total" in metrics.text


@pytest.mark.asyncio
async def test_get_current_user_requires_identity():
	with pytest.raises(HTTPException) as excinfo:
		await get_current_user(None)
	assert excinfo.value.status_code == 401
	user = AuthenticatedUser(id="u1", role=Role.MODERATOR)
	assert await get_current_user(user) is user


@pytest.mark.parametrize(
	"error,expected",
	[
		(Unauthenticated(), 401),
		(Forbidden(), 403),
		(NotFound(), 404),
		(ValidationError(), 422),
		(AlreadyVoted(), 409),
		(StorageError(), 502),
		(PersistenceError(), 503),
	],
)
def test_error_kinds_map_to_distinct_statuses(error, expected):
	assert status_for(error) == expected


@pytest.mark.asyncio
async def test_anonymous_submission_with_partial_location_is_unauthenticated(api_client):
	response = await api_client.post(
		"/reports",
		json={"raw_text": "Garbage piling up near my house", "latitude": 10.0},
	)
	assert response.status_code == 401
	assert response.json()["detail"] == "unauthenticated"
