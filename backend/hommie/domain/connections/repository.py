"""Storage contracts for profiles and connections, with in-memory references."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Protocol, Sequence

from hommie.domain.connections.exceptions import ConcurrencyConflict
from hommie.domain.connections.models import (
	Connection,
	ConnectionStatus,
	ConnectionType,
	Profile,
	pair_key,
)


@dataclass(slots=True, frozen=True)
class ConnectionFilter:
	statuses: Optional[frozenset[ConnectionStatus]] = None
	connection_types: Optional[frozenset[ConnectionType]] = None

	def matches(self, connection: Connection) -> bool:
		if self.statuses is not None and connection.status not in self.statuses:
			return False
		if self.connection_types is not None and connection.connection_type not in self.connection_types:
			return False
		return True


ACCEPTED_ONLY = ConnectionFilter(statuses=frozenset({ConnectionStatus.ACCEPTED}))
PENDING_ONLY = ConnectionFilter(statuses=frozenset({ConnectionStatus.PENDING}))


class ProfileRepository(Protocol):
	"""Storage layer contract for neighbor profiles."""

	async def get_profile(self, user_id: str) -> Profile | None:
		...

	async def get_profiles(self, user_ids: Iterable[str]) -> Sequence[Profile]:
		...

	async def list_candidates(self, estate_id: str, excluding: Iterable[str] = ()) -> Sequence[Profile]:
		...


class ConnectionRepository(Protocol):
	"""Storage layer contract for connection records.

	``save_connection`` and ``delete_connection`` must raise
	``ConcurrencyConflict`` when the stored version differs from
	``expected_version`` (``None`` meaning no record may exist yet).
	"""

	async def get_connection(self, user_a: str, user_b: str) -> Connection | None:
		...

	async def get_connection_by_id(self, connection_id: str) -> Connection | None:
		...

	async def list_connections(self, user_id: str, filter: ConnectionFilter | None = None) -> Sequence[Connection]:
		...

	async def save_connection(self, connection: Connection, expected_version: int | None) -> Connection:
		...

	async def delete_connection(self, connection_id: str, expected_version: int) -> None:
		...


class InMemoryProfileRepository(ProfileRepository):
	"""Reference repository used in tests and developer environments."""

	def __init__(self, profiles: Iterable[Profile] = ()) -> None:
		self.profiles: dict[str, Profile] = {p.id: p for p in profiles}

	def add(self, profile: Profile) -> Profile:
		self.profiles[profile.id] = profile
		return profile

	async def get_profile(self, user_id: str) -> Profile | None:
		return self.profiles.get(str(user_id))

	async def get_profiles(self, user_ids: Iterable[str]) -> Sequence[Profile]:
		return [self.profiles[uid] for uid in dict.fromkeys(str(u) for u in user_ids) if uid in self.profiles]

	async def list_candidates(self, estate_id: str, excluding: Iterable[str] = ()) -> Sequence[Profile]:
		skip = {str(e) for e in excluding}
		return [
			profile
			for profile in sorted(self.profiles.values(), key=lambda p: p.id)
			if profile.estate_id == estate_id and profile.id not in skip and profile.is_active
		]


class InMemoryConnectionRepository(ConnectionRepository):
	"""Reference repository keyed by unordered user pair."""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.by_pair: dict[tuple[str, str], Connection] = {}

	def _find_by_id(self, connection_id: str) -> Connection | None:
		for conn in self.by_pair.values():
			if conn.id == connection_id:
				return conn
		return None

	async def get_connection(self, user_a: str, user_b: str) -> Connection | None:
		async with self._lock:
			conn = self.by_pair.get(pair_key(user_a, user_b))
			return replace(conn) if conn else None

	async def get_connection_by_id(self, connection_id: str) -> Connection | None:
		async with self._lock:
			conn = self._find_by_id(str(connection_id))
			return replace(conn) if conn else None

	async def list_connections(self, user_id: str, filter: ConnectionFilter | None = None) -> Sequence[Connection]:
		async with self._lock:
			result = [
				replace(conn)
				for conn in self.by_pair.values()
				if conn.involves(user_id) and (filter is None or filter.matches(conn))
			]
		result.sort(key=lambda c: (c.created_at, c.id))
		return result

	async def save_connection(self, connection: Connection, expected_version: int | None) -> Connection:
		async with self._lock:
			current = self.by_pair.get(connection.pair)
			current_version = current.version if current else None
			if current_version != expected_version:
				raise ConcurrencyConflict("version_mismatch")
			stored = replace(connection, version=(expected_version or 0) + 1)
			self.by_pair[connection.pair] = stored
			return replace(stored)

	async def delete_connection(self, connection_id: str, expected_version: int) -> None:
		async with self._lock:
			current = self._find_by_id(str(connection_id))
			if current is None or current.version != expected_version:
				raise ConcurrencyConflict("version_mismatch")
			del self.by_pair[current.pair]


__all__ = [
	"ACCEPTED_ONLY",
	"ConnectionFilter",
	"ConnectionRepository",
	"InMemoryConnectionRepository",
	"InMemoryProfileRepository",
	"PENDING_ONLY",
	"ProfileRepository",
]
