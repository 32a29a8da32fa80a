"""Central registry for Prometheus metrics used by the connections engine."""

from __future__ import annotations

import logging

from prometheus_client import Counter, Histogram

log = logging.getLogger(__name__)


CONNECTION_REQUESTS_SENT = Counter(
	"hommie_connection_requests_sent_total",
	"Connection requests sent",
	["connection_type"],
)

CONNECTION_TRANSITIONS = Counter(
	"hommie_connection_transitions_total",
	"Connection workflow transitions applied",
	["action", "status"],
)

CONNECTION_REJECTS = Counter(
	"hommie_connection_rejects_total",
	"Rejected connection workflow actions",
	["action", "reason"],
)

CONNECTION_CONFLICT_RETRIES = Counter(
	"hommie_connection_conflict_retries_total",
	"Workflow actions retried after an optimistic-lock conflict",
	["action"],
)

TRUST_SCORE_CLAMPED = Counter(
	"hommie_trust_score_clamped_total",
	"Trust scores outside 0..100 clamped before band lookup",
)

NETWORK_ANALYSES = Counter(
	"hommie_network_analyses_total",
	"Network analyses computed",
)

CACHE_LOOKUPS = Counter(
	"hommie_connections_cache_lookups_total",
	"Connections memoization cache lookups",
	["kind", "result"],
)

RECOMMENDATION_CANDIDATES = Counter(
	"hommie_recommendation_candidates_total",
	"Candidates scored by the recommendation ranker",
)

RECOMMENDATION_EXCLUDED = Counter(
	"hommie_recommendation_excluded_total",
	"Candidates excluded before scoring",
	["reason"],
)

RECOMMENDATION_DISMISSALS = Counter(
	"hommie_recommendation_dismissals_total",
	"Recommendation dismiss/restore operations",
	["action"],
)

RECOMMENDATION_RANK_DURATION = Histogram(
	"hommie_recommendation_rank_duration_ms",
	"Recommendation ranking duration in milliseconds",
	buckets=(1, 2, 5, 10, 25, 50, 100, 250, 500),
)


def inc_request_sent(connection_type: str) -> None:
	CONNECTION_REQUESTS_SENT.labels(connection_type=connection_type).inc()


def inc_transition(action: str, status: str) -> None:
	CONNECTION_TRANSITIONS.labels(action=action, status=status).inc()


def inc_reject(action: str, reason: str) -> None:
	CONNECTION_REJECTS.labels(action=action, reason=reason).inc()


def inc_conflict_retry(action: str) -> None:
	CONNECTION_CONFLICT_RETRIES.labels(action=action).inc()


def inc_trust_clamped() -> None:
	TRUST_SCORE_CLAMPED.inc()


def inc_network_analysis() -> None:
	NETWORK_ANALYSES.inc()


def inc_cache_lookup(kind: str, hit: bool) -> None:
	CACHE_LOOKUPS.labels(kind=kind, result="hit" if hit else "miss").inc()


def inc_recommendation_excluded(reason: str) -> None:
	RECOMMENDATION_EXCLUDED.labels(reason=reason).inc()


def inc_dismissal(action: str) -> None:
	RECOMMENDATION_DISMISSALS.labels(action=action).inc()


def observe_rank(duration_ms: float, candidates: int) -> None:
	if candidates:
		RECOMMENDATION_CANDIDATES.inc(candidates)
	RECOMMENDATION_RANK_DURATION.observe(duration_ms)
