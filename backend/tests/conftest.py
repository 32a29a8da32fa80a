import sys
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from hommie.infra import postgres
from hommie.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from hommie.infra.redis import redis_client, set_redis_client
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
	"""Keep repository calls unbounded and trusted requests at the default bar."""
	original_timeout = settings.connection_repo_timeout_seconds
	original_min_trust = settings.trusted_min_trust_score
	settings.connection_repo_timeout_seconds = None
	settings.trusted_min_trust_score = 50
	try:
		yield
	finally:
		settings.connection_repo_timeout_seconds = original_timeout
		settings.trusted_min_trust_score = original_min_trust


@pytest.fixture
def make_profile():
	from hommie.domain.connections.models import PrivacySettings, Profile

	def _make(user_id: str, **overrides) -> Profile:
		privacy = overrides.pop("privacy", None)
		fields = {
			"display_name": f"Neighbor {user_id}",
			"estate_id": "estate-lekki-1",
			"estate_name": "Lekki Gardens",
			"area": "Lekki",
		}
		fields.update(overrides)
		if "interests" in fields:
			fields["interests"] = frozenset(fields["interests"])
		if "badges" in fields:
			fields["badges"] = frozenset(fields["badges"])
		return Profile(id=user_id, privacy=PrivacySettings(**(privacy or {})), **fields)

	return _make


@pytest.fixture
def make_connection():
	from datetime import datetime, timedelta, timezone

	from hommie.domain.connections.models import Connection, ConnectionStatus, ConnectionType

	base = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
	counter = {"n": 0}

	def _make(
		from_user: str,
		to_user: str,
		status: ConnectionStatus = ConnectionStatus.ACCEPTED,
		connection_type: ConnectionType = ConnectionType.CONNECT,
		**overrides,
	) -> Connection:
		counter["n"] += 1
		created = base + timedelta(minutes=counter["n"])
		fields = {
			"id": f"conn-{counter['n']}",
			"from_user_id": from_user,
			"to_user_id": to_user,
			"connection_type": connection_type,
			"status": status,
			"initiated_by": from_user,
			"created_at": created,
			"updated_at": created,
			"accepted_at": created if status == ConnectionStatus.ACCEPTED else None,
		}
		fields.update(overrides)
		return Connection(**fields)

	return _make
