"""Shared-network analysis between two neighbors."""

from __future__ import annotations

import logging
import math
from typing import Iterable, Mapping, Protocol, Sequence

from hommie.domain.connections.models import Connection, ConnectionStatus, MutualConnection, Profile
from hommie.domain.connections.schemas import ConnectionPath, NetworkAnalysis
from hommie.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

VERY_STRONG_THRESHOLD = 90
STRONG_THRESHOLD = 75
MODERATE_THRESHOLD = 60

# Mutual-connection count at which an estate-scale shared network counts as fully dense.
DENSE_NETWORK_SIZE = 20
MAX_PATHS = 3
PATH_INTERESTS = 2

_STRENGTH_LABELS = {
	"very_strong": "Very Strong",
	"strong": "Strong",
	"moderate": "Moderate",
	"weak": "Weak",
}


class ConnectionStrengthSignal(Protocol):
	"""External estimator for how strong a mutual neighbor's ties are (0..100)."""

	def __call__(self, neighbor: Profile, with_current: Connection, with_target: Connection) -> float:
		...


def round_half_up(value: float, digits: int = 0) -> float:
	"""Round halves upward: 80.25 -> 80.3 and 16.5 -> 17."""
	scale = 10**digits
	return math.floor(value * scale + 0.5) / scale


def strength_level(strength: float) -> str:
	if strength >= VERY_STRONG_THRESHOLD:
		return "very_strong"
	if strength >= STRONG_THRESHOLD:
		return "strong"
	if strength >= MODERATE_THRESHOLD:
		return "moderate"
	return "weak"


def strength_label(strength: float) -> str:
	return _STRENGTH_LABELS[strength_level(strength)]


def _path_for(index: int, mutual: MutualConnection) -> ConnectionPath:
	strength = mutual.connection_strength
	strong = strength >= STRONG_THRESHOLD
	if strong:
		topic = mutual.shared_interests[0] if mutual.shared_interests else "shared activities"
		description = f"Strong connection through {topic}"
	else:
		estate = mutual.neighbor.estate_name or "your estate"
		description = f"Community connection through {estate}"
	return ConnectionPath(
		id=f"path_{index + 1}",
		neighbor_id=mutual.neighbor.id,
		neighbor_name=mutual.neighbor.display_name,
		strength=strength,
		common_interests=list(mutual.shared_interests[:PATH_INTERESTS]),
		path_type="through_mutual" if strong else "through_community",
		description=description,
	)


def analyze(mutual_connections: Sequence[MutualConnection]) -> NetworkAnalysis:
	"""Aggregate overlap, strength and trustability over a pair's mutual connections.

	Every field is independent of input order except ``connection_paths``,
	which takes the first entries as given.
	"""

	obs_metrics.inc_network_analysis()
	count = len(mutual_connections)
	if count == 0:
		return NetworkAnalysis()

	strengths = [m.connection_strength for m in mutual_connections]
	average = sum(strengths) / count
	density = min(count / DENSE_NETWORK_SIZE, 1.0)
	return NetworkAnalysis(
		total_mutual_connections=count,
		strong_connections=sum(1 for s in strengths if s >= STRONG_THRESHOLD),
		average_connection_strength=round_half_up(average, 1),
		shared_network_density=density,
		network_overlap=density * 0.5,
		trustability_score=int(round_half_up(min(average * 1.1, 100.0))),
		connection_paths=[_path_for(idx, m) for idx, m in enumerate(mutual_connections[:MAX_PATHS])],
	)


def _accepted_neighbors(user_id: str, connections: Iterable[Connection]) -> dict[str, Connection]:
	result: dict[str, Connection] = {}
	for conn in connections:
		if conn.status != ConnectionStatus.ACCEPTED or not conn.involves(user_id):
			continue
		result[conn.other_party(user_id)] = conn
	return result


def find_mutual_connections(
	current: Profile,
	target: Profile,
	connections: Iterable[Connection],
	profiles: Mapping[str, Profile],
	strength: ConnectionStrengthSignal,
) -> list[MutualConnection]:
	"""Build mutual-connection records from accepted edges of both users.

	Results are ordered strongest first, then by neighbor id.
	"""

	edges = list(connections)
	current_edges = _accepted_neighbors(current.id, edges)
	target_edges = _accepted_neighbors(target.id, edges)
	shared_ids = (set(current_edges) & set(target_edges)) - {current.id, target.id}
	compared_interests = current.interests | target.interests

	mutuals: list[MutualConnection] = []
	for neighbor_id in shared_ids:
		neighbor = profiles.get(neighbor_id)
		if neighbor is None or not neighbor.is_active:
			continue
		with_current = current_edges[neighbor_id]
		with_target = target_edges[neighbor_id]
		raw = float(strength(neighbor, with_current, with_target))
		value = max(0.0, min(100.0, raw))
		if value != raw:
			logger.warning("Connection strength %s for neighbor %s clamped", raw, neighbor_id)
		mutuals.append(
			MutualConnection(
				neighbor=neighbor,
				connection_with_current=with_current,
				connection_with_target=with_target,
				connection_strength=value,
				shared_interests=tuple(sorted(neighbor.interests & compared_interests)),
			)
		)
	mutuals.sort(key=lambda m: (-m.connection_strength, m.neighbor.id))
	return mutuals


__all__ = [
	"ConnectionStrengthSignal",
	"analyze",
	"find_mutual_connections",
	"round_half_up",
	"strength_label",
	"strength_level",
]
