"""Connection request lifecycle: none -> pending -> accepted/declined, plus blocks."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, Collection, Optional, TypeVar
from uuid import uuid4

from hommie.domain.connections import registry, trust
from hommie.domain.connections.exceptions import (
	ForbiddenAction,
	InsufficientTrust,
	InvalidStateTransition,
	InvalidUpgrade,
	NotFound,
	RecipientNotAcceptingConnections,
	ValidationError,
)
from hommie.domain.connections.models import (
	Connection,
	ConnectionMetadata,
	ConnectionStatus,
	ConnectionType,
	Profile,
)
from hommie.domain.connections.repository import ConnectionRepository, ProfileRepository
from hommie.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Statuses from which a fresh request may be sent; an absent record is "none".
_REQUESTABLE = frozenset({ConnectionStatus.DECLINED})


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


def _new_id() -> str:
	return str(uuid4())


def guard_not_self(user_id: str, target_id: str, reason: str) -> None:
	if str(user_id) == str(target_id):
		raise ValidationError(reason)


def parse_connection_type(value: ConnectionType | str) -> ConnectionType:
	try:
		return ConnectionType(value)
	except ValueError as exc:
		raise ValidationError("unknown_connection_type") from exc


def _require_status(connection: Connection, action: str, allowed: Collection[ConnectionStatus]) -> None:
	if connection.status not in allowed:
		raise InvalidStateTransition(action, connection.status.value)


def _require_party(connection: Connection, actor_id: str) -> None:
	if not connection.involves(actor_id):
		raise ForbiddenAction("not_party")


def _require_recipient(connection: Connection, actor_id: str) -> None:
	_require_party(connection, actor_id)
	if connection.initiated_by == str(actor_id):
		raise ForbiddenAction("not_recipient")


class ConnectionRequestWorkflow:
	"""Applies guarded state transitions to connection records.

	Each transition reads the record, checks its precondition and saves with the
	read version, so two racing transitions on the same record cannot both win;
	the loser gets ``ConcurrencyConflict`` from the repository.
	"""

	def __init__(
		self,
		connections: ConnectionRepository,
		profiles: ProfileRepository,
		*,
		clock: Callable[[], datetime] = _utcnow,
		id_factory: Callable[[], str] = _new_id,
		timeout_seconds: Optional[float] = None,
		trusted_min_score: Optional[int] = None,
	) -> None:
		self._connections = connections
		self._profiles = profiles
		self._clock = clock
		self._id_factory = id_factory
		self._timeout = timeout_seconds if timeout_seconds is not None else settings.connection_repo_timeout_seconds
		self._trusted_min_score = (
			trusted_min_score if trusted_min_score is not None else settings.trusted_min_trust_score
		)

	async def _call(self, awaitable: Awaitable[T]) -> T:
		if self._timeout:
			return await asyncio.wait_for(awaitable, self._timeout)
		return await awaitable

	async def _load(self, connection_id: str) -> Connection:
		connection = await self._call(self._connections.get_connection_by_id(str(connection_id)))
		if connection is None:
			raise NotFound("connection_missing")
		return connection

	async def _load_profile(self, user_id: str, *, allow_inactive: bool = False) -> Profile:
		profile = await self._call(self._profiles.get_profile(str(user_id)))
		if profile is None or (not profile.is_active and not allow_inactive):
			raise NotFound("user_missing")
		return profile

	async def send_request(
		self,
		from_user_id: str,
		to_user_id: str,
		connection_type: ConnectionType | str,
		*,
		metadata: Optional[ConnectionMetadata] = None,
	) -> Connection:
		sender_id, target_id = str(from_user_id), str(to_user_id)
		guard_not_self(sender_id, target_id, "self_request")
		kind = parse_connection_type(connection_type)
		sender = await self._load_profile(sender_id)
		recipient = await self._load_profile(target_id)

		existing = await self._call(self._connections.get_connection(sender_id, target_id))
		if existing is not None and existing.status not in _REQUESTABLE:
			raise InvalidStateTransition("send_request", existing.status.value)
		if not recipient.privacy.allow_connections:
			raise RecipientNotAcceptingConnections()
		if kind == ConnectionType.TRUSTED and trust.score_profile(sender) < self._trusted_min_score:
			raise InsufficientTrust()

		now = self._clock()
		request = Connection(
			id=self._id_factory(),
			from_user_id=sender_id,
			to_user_id=target_id,
			connection_type=kind,
			status=ConnectionStatus.PENDING,
			initiated_by=sender_id,
			created_at=now,
			updated_at=now,
			metadata=metadata,
		)
		saved = await self._call(
			self._connections.save_connection(request, existing.version if existing else None)
		)
		logger.info("Connection request %s sent (%s)", saved.id, kind.value)
		return saved

	async def accept(self, connection_id: str, actor_id: str) -> Connection:
		connection = await self._load(connection_id)
		_require_status(connection, "accept", {ConnectionStatus.PENDING})
		_require_recipient(connection, actor_id)
		now = self._clock()
		updated = replace(connection, status=ConnectionStatus.ACCEPTED, accepted_at=now, updated_at=now)
		saved = await self._call(self._connections.save_connection(updated, connection.version))
		logger.info("Connection %s accepted", saved.id)
		return saved

	async def decline(self, connection_id: str, actor_id: str) -> Connection:
		connection = await self._load(connection_id)
		_require_status(connection, "decline", {ConnectionStatus.PENDING})
		_require_recipient(connection, actor_id)
		updated = replace(connection, status=ConnectionStatus.DECLINED, updated_at=self._clock())
		saved = await self._call(self._connections.save_connection(updated, connection.version))
		logger.info("Connection %s declined", saved.id)
		return saved

	async def cancel(self, connection_id: str, actor_id: str) -> Connection:
		connection = await self._load(connection_id)
		_require_status(connection, "cancel", {ConnectionStatus.PENDING})
		_require_party(connection, actor_id)
		if connection.initiated_by != str(actor_id):
			raise ForbiddenAction("not_sender")
		await self._call(self._connections.delete_connection(connection.id, connection.version))
		logger.info("Connection request %s cancelled", connection.id)
		return replace(connection, status=ConnectionStatus.NONE, updated_at=self._clock())

	async def upgrade(self, connection_id: str, actor_id: str, new_type: ConnectionType | str) -> Connection:
		connection = await self._load(connection_id)
		_require_status(connection, "upgrade", {ConnectionStatus.ACCEPTED})
		_require_party(connection, actor_id)
		target = parse_connection_type(new_type)
		if not registry.can_upgrade(connection.connection_type, target):
			raise InvalidUpgrade(connection.connection_type.value, target.value)
		updated = replace(connection, connection_type=target, updated_at=self._clock())
		saved = await self._call(self._connections.save_connection(updated, connection.version))
		logger.info("Connection %s upgraded to %s", saved.id, target.value)
		return saved

	async def disconnect(self, connection_id: str, actor_id: str) -> Connection:
		connection = await self._load(connection_id)
		_require_status(connection, "disconnect", {ConnectionStatus.ACCEPTED})
		_require_party(connection, actor_id)
		await self._call(self._connections.delete_connection(connection.id, connection.version))
		logger.info("Connection %s removed", connection.id)
		return replace(connection, status=ConnectionStatus.NONE, updated_at=self._clock())

	async def block(self, actor_id: str, target_user_id: str) -> Connection:
		blocker_id, target_id = str(actor_id), str(target_user_id)
		guard_not_self(blocker_id, target_id, "self_block")
		await self._load_profile(blocker_id)
		await self._load_profile(target_id, allow_inactive=True)

		existing = await self._call(self._connections.get_connection(blocker_id, target_id))
		if existing is not None and existing.status == ConnectionStatus.BLOCKED:
			if blocker_id in existing.blockers:
				return existing
			# The other party blocks too; the pair clears only once both unblock.
			both = replace(existing, blocked_by_both=True, updated_at=self._clock())
			saved = await self._call(self._connections.save_connection(both, existing.version))
			logger.info("Connection %s blocked by both parties", saved.id)
			return saved

		now = self._clock()
		if existing is not None:
			# Keep the id so stale accept/decline calls on it hit the blocked state.
			blocked = replace(
				existing,
				from_user_id=blocker_id,
				to_user_id=target_id,
				status=ConnectionStatus.BLOCKED,
				initiated_by=blocker_id,
				updated_at=now,
				accepted_at=None,
				metadata=None,
				blocked_by=blocker_id,
				blocked_at=now,
				previous_status=existing.status,
				blocked_by_both=False,
			)
		else:
			blocked = Connection(
				id=self._id_factory(),
				from_user_id=blocker_id,
				to_user_id=target_id,
				connection_type=ConnectionType.FOLLOW,
				status=ConnectionStatus.BLOCKED,
				initiated_by=blocker_id,
				created_at=now,
				updated_at=now,
				blocked_by=blocker_id,
				blocked_at=now,
				previous_status=ConnectionStatus.NONE,
			)
		saved = await self._call(
			self._connections.save_connection(blocked, existing.version if existing else None)
		)
		logger.info("Connection %s blocked", saved.id)
		return saved

	async def block_connection(self, connection_id: str, actor_id: str) -> Connection:
		connection = await self._load(connection_id)
		_require_party(connection, actor_id)
		return await self.block(actor_id, connection.other_party(actor_id))

	async def unblock(self, actor_id: str, target_user_id: str) -> Connection:
		blocker_id, target_id = str(actor_id), str(target_user_id)
		existing = await self._call(self._connections.get_connection(blocker_id, target_id))
		if existing is None or existing.status != ConnectionStatus.BLOCKED:
			current = existing.status.value if existing else ConnectionStatus.NONE.value
			raise InvalidStateTransition("unblock", current)
		if blocker_id not in existing.blockers:
			raise ForbiddenAction("not_blocker")
		if existing.blocked_by_both:
			remaining = existing.other_party(blocker_id)
			still_blocked = replace(
				existing,
				from_user_id=remaining,
				to_user_id=blocker_id,
				initiated_by=remaining,
				blocked_by=remaining,
				blocked_by_both=False,
				updated_at=self._clock(),
			)
			saved = await self._call(self._connections.save_connection(still_blocked, existing.version))
			logger.info("Connection %s still blocked by the other party", saved.id)
			return saved
		await self._call(self._connections.delete_connection(existing.id, existing.version))
		logger.info("Connection %s unblocked", existing.id)
		return replace(existing, status=ConnectionStatus.NONE, updated_at=self._clock())


__all__ = ["ConnectionRequestWorkflow", "guard_not_self", "parse_connection_type"]
