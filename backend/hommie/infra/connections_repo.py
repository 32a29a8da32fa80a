"""PostgreSQL-backed repositories for neighbor profiles and connections."""

from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Sequence

import asyncpg

from hommie.domain.connections.exceptions import ConcurrencyConflict
from hommie.domain.connections.models import Connection, Profile, pair_key
from hommie.domain.connections.repository import (
	ConnectionFilter,
	ConnectionRepository,
	ProfileRepository,
)

_CONNECTION_COLUMNS = """
	id, from_user_id, to_user_id, connection_type, status, initiated_by,
	created_at, updated_at, accepted_at, version, metadata,
	blocked_by, blocked_at, previous_status, blocked_by_both
"""


def _decode_json(value: Any) -> Any:
	if isinstance(value, (str, bytes)):
		return json.loads(value)
	return value


def _row_to_profile(row: Mapping[str, Any]) -> Profile:
	record = dict(row)
	record["privacy"] = _decode_json(record.get("privacy"))
	return Profile.from_record(record)


def _row_to_connection(row: Mapping[str, Any]) -> Connection:
	record = dict(row)
	record["metadata"] = _decode_json(record.get("metadata"))
	return Connection.from_record(record)


def _connection_args(connection: Connection) -> list[Any]:
	low, high = connection.pair
	return [
		connection.id,
		connection.from_user_id,
		connection.to_user_id,
		low,
		high,
		connection.connection_type.value,
		connection.status.value,
		connection.initiated_by,
		connection.created_at,
		connection.updated_at,
		connection.accepted_at,
		json.dumps(connection.metadata.to_dict()) if connection.metadata else None,
		connection.blocked_by,
		connection.blocked_at,
		connection.previous_status.value if connection.previous_status else None,
		connection.blocked_by_both,
	]


class PostgresProfileRepository(ProfileRepository):
	"""Reads neighbor profiles using asyncpg."""

	def __init__(self, pool: asyncpg.Pool) -> None:
		self._pool = pool

	async def get_profile(self, user_id: str) -> Profile | None:
		row = await self._pool.fetchrow("SELECT * FROM neighbor_profiles WHERE id = $1", str(user_id))
		if row is None:
			return None
		return _row_to_profile(row)

	async def get_profiles(self, user_ids: Iterable[str]) -> Sequence[Profile]:
		ids = list(dict.fromkeys(str(u) for u in user_ids))
		if not ids:
			return []
		rows = await self._pool.fetch(
			"SELECT * FROM neighbor_profiles WHERE id = ANY($1::text[]) ORDER BY id",
			ids,
		)
		return [_row_to_profile(row) for row in rows]

	async def list_candidates(self, estate_id: str, excluding: Iterable[str] = ()) -> Sequence[Profile]:
		rows = await self._pool.fetch(
			"""
			SELECT *
			FROM neighbor_profiles
			WHERE estate_id = $1
			  AND is_active
			  AND NOT (id = ANY($2::text[]))
			ORDER BY id
			""",
			str(estate_id),
			[str(e) for e in excluding],
		)
		return [_row_to_profile(row) for row in rows]


class PostgresConnectionRepository(ConnectionRepository):
	"""Persists connection records with version-checked writes.

	Rows carry ``user_low``/``user_high`` (the sorted pair) under a unique index,
	which enforces one record per unordered pair.
	"""

	def __init__(self, pool: asyncpg.Pool) -> None:
		self._pool = pool

	async def get_connection(self, user_a: str, user_b: str) -> Connection | None:
		low, high = pair_key(user_a, user_b)
		row = await self._pool.fetchrow(
			f"SELECT {_CONNECTION_COLUMNS} FROM neighbor_connections WHERE user_low = $1 AND user_high = $2",
			low,
			high,
		)
		return _row_to_connection(row) if row else None

	async def get_connection_by_id(self, connection_id: str) -> Connection | None:
		row = await self._pool.fetchrow(
			f"SELECT {_CONNECTION_COLUMNS} FROM neighbor_connections WHERE id = $1",
			str(connection_id),
		)
		return _row_to_connection(row) if row else None

	async def list_connections(self, user_id: str, filter: ConnectionFilter | None = None) -> Sequence[Connection]:
		statuses = sorted(s.value for s in filter.statuses) if filter and filter.statuses is not None else None
		kinds = (
			sorted(t.value for t in filter.connection_types)
			if filter and filter.connection_types is not None
			else None
		)
		rows = await self._pool.fetch(
			f"""
			SELECT {_CONNECTION_COLUMNS}
			FROM neighbor_connections
			WHERE (from_user_id = $1 OR to_user_id = $1)
			  AND ($2::text[] IS NULL OR status = ANY($2::text[]))
			  AND ($3::text[] IS NULL OR connection_type = ANY($3::text[]))
			ORDER BY created_at, id
			""",
			str(user_id),
			statuses,
			kinds,
		)
		return [_row_to_connection(row) for row in rows]

	async def save_connection(self, connection: Connection, expected_version: int | None) -> Connection:
		args = _connection_args(connection)
		if expected_version is None:
			row = await self._pool.fetchrow(
				f"""
				INSERT INTO neighbor_connections (
					id, from_user_id, to_user_id, user_low, user_high, connection_type, status,
					initiated_by, created_at, updated_at, accepted_at, metadata,
					blocked_by, blocked_at, previous_status, blocked_by_both, version
				)
				VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12::jsonb, $13, $14, $15, $16, 1)
				ON CONFLICT (user_low, user_high) DO NOTHING
				RETURNING {_CONNECTION_COLUMNS}
				""",
				*args,
			)
		else:
			row = await self._pool.fetchrow(
				f"""
				UPDATE neighbor_connections
				SET id = $1, from_user_id = $2, to_user_id = $3, connection_type = $6, status = $7,
					initiated_by = $8, created_at = $9, updated_at = $10, accepted_at = $11,
					metadata = $12::jsonb, blocked_by = $13, blocked_at = $14, previous_status = $15,
					blocked_by_both = $16, version = version + 1
				WHERE user_low = $4 AND user_high = $5 AND version = $17
				RETURNING {_CONNECTION_COLUMNS}
				""",
				*args,
				expected_version,
			)
		if row is None:
			raise ConcurrencyConflict("version_mismatch")
		return _row_to_connection(row)

	async def delete_connection(self, connection_id: str, expected_version: int) -> None:
		row = await self._pool.fetchrow(
			"DELETE FROM neighbor_connections WHERE id = $1 AND version = $2 RETURNING id",
			str(connection_id),
			expected_version,
		)
		if row is None:
			raise ConcurrencyConflict("version_mismatch")
