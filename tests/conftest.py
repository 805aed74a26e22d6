import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

from civic.domain.reports import container
from civic.domain.reports.models import Identity, Role
from civic.domain.reports.repository import InMemoryReportsRepository
from civic.domain.reports.storage import LocalImageStorage
from civic.infra import postgres
from civic.main import app
from civic.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from civic.infra.redis import redis_client, set_redis_client
	original = redis_client._client
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
	"""Dev mode lets API tests authenticate with X-User-Id/X-User-Role headers."""
	original_env = settings.environment
	original_enhancer = settings.enhancer_url
	settings.environment = "dev"
	settings.enhancer_url = None
	try:
		yield
	finally:
		settings.environment = original_env
		settings.enhancer_url = original_enhancer


@pytest.fixture
def repository():
	return InMemoryReportsRepository()


@pytest.fixture(autouse=True)
def report_service(repository, tmp_path, force_test_settings):
	"""Fresh reports core per test, backed by the in-memory repository."""
	storage = LocalImageStorage(tmp_path / "uploads", "http://testserver/uploads", max_bytes=1024)
	return container.configure(repository=repository, storage=storage)


@pytest.fixture
def identities():
	return {
		"citizen": Identity(id="citizen-u", email="u@example.com", role=Role.CITIZEN, display_name="Uma"),
		"voter": Identity(id="citizen-v", email="v@example.com", role=Role.CITIZEN, display_name="Vic"),
		"moderator": Identity(id="mod-m", email="m@example.com", role=Role.MODERATOR, display_name="Mo"),
		"admin": Identity(id="admin-a", email="a@example.com", role=Role.ADMIN, display_name="Ada"),
	}


@pytest_asyncio.fixture
async def registered(report_service, identities):
	for identity in identities.values():
		await report_service.register_identity(identity)
	return identities


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
