from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from hommie.domain.connections import cache
from hommie.domain.connections.exceptions import ValidationError
from hommie.domain.connections.models import ConnectionStatus, ConnectionType
from hommie.domain.connections.repository import InMemoryConnectionRepository, InMemoryProfileRepository
from hommie.domain.connections.service import ConnectionsService
from hommie.domain.connections.workflow import ConnectionRequestWorkflow
from hommie.obs import logging as obs_logging

START = datetime(2024, 7, 1, 9, 0, tzinfo=timezone.utc)


class RecordingProfileRepository(InMemoryProfileRepository):
    """Captures the bound log context seen by each lookup."""

    def __init__(self, profiles=()):
        super().__init__(profiles)
        self.seen = []

    async def get_profile(self, user_id):
        self.seen.append(("get_profile", obs_logging.current_context()))
        return await super().get_profile(user_id)

    async def list_candidates(self, estate_id, excluding=()):
        self.seen.append(("list_candidates", obs_logging.current_context()))
        return await super().list_candidates(estate_id, excluding)


def _strength(neighbor, with_current, with_target):
    return 80.0


@pytest.fixture
def profiles(make_profile):
    return RecordingProfileRepository(
        [
            make_profile("ada", building="Block A", phone_verified=True),
            make_profile("bola", building="Block A"),
            make_profile("chidi", building="Block B"),
            make_profile("dayo", building="Block C"),
        ]
    )


@pytest.fixture
def service(profiles):
    connections = InMemoryConnectionRepository()
    ticks = count()
    ids = count(1)
    workflow = ConnectionRequestWorkflow(
        connections,
        profiles,
        clock=lambda: START + timedelta(minutes=next(ticks)),
        id_factory=lambda: f"c-{next(ids)}",
    )
    return ConnectionsService(connections, profiles, strength_signal=_strength, workflow=workflow)


async def _connect(service, a, b):
    sent = await service.send_request(a, b)
    accepted = await service.accept(sent.connection.id, b)
    assert accepted.ok
    return accepted.connection


@pytest.mark.asyncio
async def test_list_connections_pages_newest_first(service):
    for neighbor in ("bola", "chidi", "dayo"):
        await _connect(service, "ada", neighbor)
    await service.send_request("bola", "chidi")

    first = await service.list_connections("ada", limit=2)
    assert [s.to_user_id for s in first.items] == ["dayo", "chidi"]
    assert (first.total, first.total_pages, first.page) == (3, 2, 1)
    assert first.has_next and not first.has_prev

    second = await service.list_connections("ada", page=2, limit=2)
    assert [s.to_user_id for s in second.items] == ["bola"]
    assert second.has_prev and not second.has_next

    beyond = await service.list_connections("ada", page=5, limit=2)
    assert beyond.items == []
    assert beyond.total == 3

    pending_only = await service.list_connections("chidi")
    assert [s.from_user_id for s in pending_only.items] == ["ada"]


@pytest.mark.asyncio
async def test_list_connections_type_filter_and_clamping(service):
    await _connect(service, "ada", "bola")
    conn = await _connect(service, "ada", "chidi")
    upgraded = await service.upgrade(conn.id, "ada", ConnectionType.NEIGHBOR)
    assert upgraded.ok

    neighbors = await service.list_connections("ada", connection_type="neighbor")
    assert [s.to_user_id for s in neighbors.items] == ["chidi"]
    assert neighbors.items[0].connection_type == "neighbor"
    assert neighbors.total == 1

    clamped = await service.list_connections("ada", page=0, limit=0)
    assert (clamped.page, clamped.limit, len(clamped.items)) == (1, 1, 1)
    assert (await service.list_connections("ada", limit=500)).limit == 100

    with pytest.raises(ValidationError):
        await service.list_connections("ada", connection_type="bestie")


@pytest.mark.asyncio
async def test_list_connections_empty(service):
    page = await service.list_connections("ada")
    assert page.items == []
    assert (page.total, page.total_pages) == (0, 0)
    assert not page.has_next and not page.has_prev


@pytest.mark.asyncio
async def test_connection_requests_split_by_direction(service):
    await service.send_request("ada", "bola")
    await service.send_request("chidi", "ada")
    await service.send_request("dayo", "ada")
    await _connect(service, "bola", "chidi")

    requests = await service.connection_requests("ada")
    assert [s.from_user_id for s in requests.incoming] == ["dayo", "chidi"]
    assert [s.to_user_id for s in requests.outgoing] == ["bola"]
    assert all(s.status == "pending" for s in requests.incoming + requests.outgoing)

    bola = await service.connection_requests("bola")
    assert [s.from_user_id for s in bola.incoming] == ["ada"]
    assert bola.outgoing == []


@pytest.mark.asyncio
async def test_mutual_connections_and_count(service):
    for hub in ("ada", "dayo"):
        await _connect(service, hub, "chidi")
        await _connect(service, hub, "bola")

    mutuals = await service.mutual_connections("chidi", "bola")
    assert [m.neighbor.id for m in mutuals] == ["ada", "dayo"]
    assert all(m.connection_strength == 80.0 for m in mutuals)
    assert [m.neighbor.id for m in await service.mutual_connections("bola", "chidi", limit=1)] == ["ada"]
    assert await service.mutual_connections_count("chidi", "bola") == 2

    assert await service.mutual_connections("chidi", "ghost") == []
    assert await service.mutual_connections_count("chidi", "ghost") == 0


@pytest.mark.asyncio
async def test_block_drops_cached_analyses_of_other_pairs(service, fake_redis):
    await _connect(service, "ada", "chidi")
    await _connect(service, "ada", "bola")
    assert (await service.analyze_network("chidi", "bola")).total_mutual_connections == 1
    assert await fake_redis.exists(cache.analysis_cache_key("chidi", "bola"))

    blocked = await service.block("ada", "bola")
    assert blocked.ok
    assert not await fake_redis.exists(cache.analysis_cache_key("chidi", "bola"))
    assert (await service.analyze_network("chidi", "bola")).total_mutual_connections == 0


@pytest.mark.asyncio
async def test_mutual_block_through_facade(service):
    await service.block("ada", "bola")
    both = await service.block("bola", "ada")
    assert both.ok
    assert both.connection.blocked_by_both

    partial = await service.unblock("ada", "bola")
    assert partial.ok
    assert partial.connection.status == ConnectionStatus.BLOCKED
    assert (await service.send_request("ada", "bola")).reason == "invalid_state"
    assert (await service.unblock("bola", "ada")).connection.status == ConnectionStatus.NONE


@pytest.mark.asyncio
async def test_recommend_binds_viewer_and_estate_to_log_context(service, profiles):
    await service.recommend("ada")
    contexts = dict(profiles.seen)
    assert contexts["get_profile"] == {"user_id": "ada"}
    assert contexts["list_candidates"] == {"user_id": "ada", "estate_id": "estate-lekki-1"}
    assert obs_logging.current_context() == {}


@pytest.mark.asyncio
async def test_actions_bind_actor_to_log_context(service, profiles):
    result = await service.send_request("bola", "ada")
    assert result.ok
    assert profiles.seen
    assert all(context == {"user_id": "bola"} for _, context in profiles.seen)

    profiles.seen.clear()
    await service.accept(result.connection.id, "ada")
    await service.analyze_network("chidi", "bola")
    assert ("get_profile", {"user_id": "chidi"}) in profiles.seen
    assert obs_logging.current_context() == {}
