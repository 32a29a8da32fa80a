"""Service layer exposing trust, network analysis, recommendations and connection flows."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Collection, Mapping, Optional

from hommie.domain.connections import audit, cache, dismissals, network, ranking, registry, trust
from hommie.domain.connections.exceptions import ConcurrencyConflict, ConnectionsError
from hommie.domain.connections.models import (
	Connection,
	ConnectionMetadata,
	ConnectionStatus,
	ConnectionType,
	MutualConnection,
	Profile,
)
from hommie.domain.connections.repository import (
	ACCEPTED_ONLY,
	PENDING_ONLY,
	ConnectionFilter,
	ConnectionRepository,
	ProfileRepository,
)
from hommie.domain.connections.schemas import (
	ConnectionPage,
	ConnectionRequests,
	ConnectionSummary,
	NetworkAnalysis,
	Recommendation,
)
from hommie.domain.connections.workflow import ConnectionRequestWorkflow, parse_connection_type
from hommie.obs import logging as obs_logging
from hommie.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100
DEFAULT_MUTUAL_LIMIT = 10


def _summarize(conn: Connection) -> ConnectionSummary:
	return ConnectionSummary(
		id=conn.id,
		from_user_id=conn.from_user_id,
		to_user_id=conn.to_user_id,
		connection_type=conn.connection_type.value,
		status=conn.status.value,
		initiated_by=conn.initiated_by,
		created_at=conn.created_at,
		accepted_at=conn.accepted_at,
	)


def _newest_first(connections: list[Connection]) -> list[Connection]:
	return sorted(connections, key=lambda c: (c.created_at, c.id), reverse=True)


@dataclass(slots=True)
class ActionResult:
	"""Outcome of a workflow action; expected business failures land in ``error``."""

	ok: bool
	connection: Optional[Connection] = None
	error: Optional[ConnectionsError] = None

	@property
	def reason(self) -> Optional[str]:
		return self.error.reason if self.error else None

	def summary(self) -> Optional[ConnectionSummary]:
		if self.connection is None:
			return None
		return _summarize(self.connection)


class ConnectionsService:
	"""High-level interface used by the presentation layer."""

	def __init__(
		self,
		connections: ConnectionRepository,
		profiles: ProfileRepository,
		*,
		strength_signal: network.ConnectionStrengthSignal,
		workflow: Optional[ConnectionRequestWorkflow] = None,
		conflict_retries: Optional[int] = None,
	) -> None:
		self._connections = connections
		self._profiles = profiles
		self._strength = strength_signal
		self._workflow = workflow or ConnectionRequestWorkflow(connections, profiles)
		self._retries = conflict_retries if conflict_retries is not None else settings.connection_conflict_retries

	# --- static lookups -------------------------------------------------

	@staticmethod
	def get_trust_score(profile: Profile) -> int:
		return trust.score_profile(profile)

	@staticmethod
	def get_trust_level(score: int | float) -> trust.TrustLevel:
		return trust.trust_level(score)

	@staticmethod
	def get_connection_type_info(connection_type: ConnectionType | str) -> registry.ConnectionTypeInfo:
		return registry.get(connection_type)

	@staticmethod
	def upgrade_options(connection_type: Optional[ConnectionType | str]) -> list[ConnectionType]:
		return registry.upgrade_options(connection_type)

	# --- network analysis -----------------------------------------------

	async def _mutuals(self, current: Profile, target: Profile) -> list[MutualConnection]:
		edges = list(await self._connections.list_connections(current.id, ACCEPTED_ONLY))
		edges.extend(await self._connections.list_connections(target.id, ACCEPTED_ONLY))
		neighbor_ids = {c.other_party(current.id) for c in edges if c.involves(current.id)}
		neighbor_ids |= {c.other_party(target.id) for c in edges if c.involves(target.id)}
		neighbors = {p.id: p for p in await self._profiles.get_profiles(sorted(neighbor_ids))}
		return network.find_mutual_connections(current, target, edges, neighbors, self._strength)

	async def _load_pair(self, user_a: str, user_b: str) -> Optional[tuple[Profile, Profile]]:
		current = await self._profiles.get_profile(str(user_a))
		target = await self._profiles.get_profile(str(user_b))
		if current is None or target is None:
			return None
		return current, target

	async def analyze_network(self, current_user_id: str, target_user_id: str) -> NetworkAnalysis:
		with obs_logging.bound_context(user_id=str(current_user_id)):
			cached = await cache.get_analysis(current_user_id, target_user_id)
			if cached is not None:
				return cached

			pair = await self._load_pair(current_user_id, target_user_id)
			if pair is None:
				logger.info("Network analysis skipped; profile missing")
				return NetworkAnalysis()
			current, target = pair
			analysis = network.analyze(await self._mutuals(current, target))
			await cache.set_analysis(current.id, target.id, analysis)
			return analysis

	async def mutual_connections(
		self,
		user_a: str,
		user_b: str,
		limit: int = DEFAULT_MUTUAL_LIMIT,
	) -> list[MutualConnection]:
		"""Neighbors connected to both users, strongest first."""
		pair = await self._load_pair(user_a, user_b)
		if pair is None or limit <= 0:
			return []
		return (await self._mutuals(*pair))[:limit]

	async def mutual_connections_count(self, user_a: str, user_b: str) -> int:
		pair = await self._load_pair(user_a, user_b)
		if pair is None:
			return 0
		return len(await self._mutuals(*pair))

	# --- connection listings --------------------------------------------

	async def list_connections(
		self,
		user_id: str,
		connection_type: Optional[ConnectionType | str] = None,
		page: int = 1,
		limit: int = DEFAULT_PAGE_LIMIT,
	) -> ConnectionPage:
		"""Accepted connections of ``user_id``, newest first, one page at a time.

		``page`` is 1-based and clamped to at least 1; ``limit`` is clamped to
		1..100. An unknown ``connection_type`` raises ``ValidationError``.
		"""
		page = max(1, page)
		limit = max(1, min(limit, MAX_PAGE_LIMIT))
		filter = ACCEPTED_ONLY
		if connection_type is not None:
			filter = ConnectionFilter(
				statuses=ACCEPTED_ONLY.statuses,
				connection_types=frozenset({parse_connection_type(connection_type)}),
			)
		rows = _newest_first(list(await self._connections.list_connections(str(user_id), filter)))
		total = len(rows)
		total_pages = math.ceil(total / limit)
		start = (page - 1) * limit
		return ConnectionPage(
			items=[_summarize(c) for c in rows[start : start + limit]],
			total=total,
			page=page,
			limit=limit,
			total_pages=total_pages,
			has_next=page < total_pages,
			has_prev=page > 1,
		)

	async def connection_requests(self, user_id: str) -> ConnectionRequests:
		"""Pending requests involving ``user_id`` split by who initiated them."""
		user_id = str(user_id)
		pending = _newest_first(list(await self._connections.list_connections(user_id, PENDING_ONLY)))
		return ConnectionRequests(
			incoming=[_summarize(c) for c in pending if c.initiated_by != user_id],
			outgoing=[_summarize(c) for c in pending if c.initiated_by == user_id],
		)

	# --- recommendations ------------------------------------------------

	async def recommend(
		self,
		viewer_id: str,
		*,
		limit: Optional[int] = None,
		activity_similarity: Optional[Mapping[str, float]] = None,
		nearby_estates: Collection[str] = (),
		prioritize_proximity: bool = False,
		categories: Optional[Collection[str]] = None,
	) -> list[Recommendation]:
		limit = settings.recommendation_default_limit if limit is None else limit
		options = {
			"limit": limit,
			"activity": dict(sorted((activity_similarity or {}).items())),
			"nearby": sorted(nearby_estates),
			"prioritize": prioritize_proximity,
			"categories": sorted(categories) if categories else None,
		}
		with obs_logging.bound_context(user_id=str(viewer_id)):
			cached = await cache.get_recommendations(str(viewer_id), options)
			if cached is not None:
				return cached

			viewer = await self._profiles.get_profile(str(viewer_id))
			if viewer is None or not viewer.estate_id:
				return []

			with obs_logging.bound_context(estate_id=viewer.estate_id):
				results = await self._rank_for(
					viewer,
					limit,
					activity_similarity=activity_similarity,
					nearby_estates=nearby_estates,
					prioritize_proximity=prioritize_proximity,
					categories=categories,
				)
				await cache.set_recommendations(viewer.id, options, results)
				return results

	async def _rank_for(
		self,
		viewer: Profile,
		limit: int,
		*,
		activity_similarity: Optional[Mapping[str, float]],
		nearby_estates: Collection[str],
		prioritize_proximity: bool,
		categories: Optional[Collection[str]],
	) -> list[Recommendation]:
		candidates = list(await self._profiles.list_candidates(viewer.estate_id, excluding={viewer.id}))
		for estate_id in sorted(set(nearby_estates) - {viewer.estate_id}):
			candidates.extend(await self._profiles.list_candidates(estate_id, excluding={viewer.id}))

		# Viewer edges drive exclusion; partners' accepted edges drive mutual counts.
		existing = list(await self._connections.list_connections(viewer.id))
		partner_ids = sorted(
			c.other_party(viewer.id) for c in existing if c.status == ConnectionStatus.ACCEPTED
		)
		for partner_id in partner_ids:
			existing.extend(await self._connections.list_connections(partner_id, ACCEPTED_ONLY))

		dismissed = await dismissals.list_dismissed(viewer.id)
		return ranking.rank(
			viewer,
			candidates,
			existing,
			dismissed,
			limit,
			activity_similarity=activity_similarity,
			nearby_estates=nearby_estates,
			prioritize_proximity=prioritize_proximity,
			categories=categories,
		)

	async def dismiss_recommendation(self, viewer_id: str, candidate_id: str) -> None:
		await dismissals.dismiss(viewer_id, candidate_id)
		await cache.invalidate_recommendations([str(viewer_id)])

	async def restore_recommendation(self, viewer_id: str, candidate_id: str) -> None:
		await dismissals.restore(viewer_id, candidate_id)
		await cache.invalidate_recommendations([str(viewer_id)])

	# --- workflow -------------------------------------------------------

	async def _run(
		self,
		action: str,
		actor_id: str,
		operation: Callable[[], Awaitable[Connection]],
	) -> ActionResult:
		with obs_logging.bound_context(user_id=str(actor_id)):
			return await self._attempt(action, operation)

	async def _attempt(self, action: str, operation: Callable[[], Awaitable[Connection]]) -> ActionResult:
		attempts = 0
		while True:
			try:
				connection = await operation()
			except ConcurrencyConflict as exc:
				if attempts < self._retries:
					attempts += 1
					audit.inc_conflict_retry(action)
					logger.info("Retrying %s after version conflict", action)
					continue
				audit.inc_reject(action, exc.reason)
				return ActionResult(ok=False, error=exc)
			except ConnectionsError as exc:
				audit.inc_reject(action, exc.reason)
				logger.info("Connection action %s rejected: %s", action, exc.reason)
				return ActionResult(ok=False, error=exc)
			break

		audit.inc_transition(action, connection.status.value)
		await audit.log_connection_event(
			action,
			{
				"connection_id": connection.id,
				"from": connection.from_user_id,
				"to": connection.to_user_id,
				"type": connection.connection_type.value,
				"status": connection.status.value,
			},
		)
		await cache.invalidate_pair(connection.from_user_id, connection.to_user_id)
		return ActionResult(ok=True, connection=connection)

	async def send_request(
		self,
		from_user_id: str,
		to_user_id: str,
		connection_type: ConnectionType | str = ConnectionType.CONNECT,
		*,
		metadata: Optional[ConnectionMetadata] = None,
	) -> ActionResult:
		result = await self._run(
			"send_request",
			from_user_id,
			lambda: self._workflow.send_request(from_user_id, to_user_id, connection_type, metadata=metadata),
		)
		if result.ok and result.connection is not None:
			audit.inc_request_sent(result.connection.connection_type.value)
		return result

	async def accept(self, connection_id: str, actor_id: str) -> ActionResult:
		return await self._run("accept", actor_id, lambda: self._workflow.accept(connection_id, actor_id))

	async def decline(self, connection_id: str, actor_id: str) -> ActionResult:
		return await self._run("decline", actor_id, lambda: self._workflow.decline(connection_id, actor_id))

	async def cancel(self, connection_id: str, actor_id: str) -> ActionResult:
		return await self._run("cancel", actor_id, lambda: self._workflow.cancel(connection_id, actor_id))

	async def upgrade(self, connection_id: str, actor_id: str, new_type: ConnectionType | str) -> ActionResult:
		return await self._run(
			"upgrade", actor_id, lambda: self._workflow.upgrade(connection_id, actor_id, new_type)
		)

	async def disconnect(self, connection_id: str, actor_id: str) -> ActionResult:
		return await self._run("disconnect", actor_id, lambda: self._workflow.disconnect(connection_id, actor_id))

	async def block(self, actor_id: str, target_user_id: str) -> ActionResult:
		return await self._run("block", actor_id, lambda: self._workflow.block(actor_id, target_user_id))

	async def block_connection(self, connection_id: str, actor_id: str) -> ActionResult:
		return await self._run("block", actor_id, lambda: self._workflow.block_connection(connection_id, actor_id))

	async def unblock(self, actor_id: str, target_user_id: str) -> ActionResult:
		return await self._run("unblock", actor_id, lambda: self._workflow.unblock(actor_id, target_user_id))


__all__ = ["ActionResult", "ConnectionsService"]
