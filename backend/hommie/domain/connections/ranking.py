"""Neighbor recommendation ranking."""

from __future__ import annotations

from dataclasses import dataclass, field
from time import perf_counter
from typing import Collection, Iterable, Mapping, Optional, Sequence

from hommie.domain.connections import trust
from hommie.domain.connections.models import (
	ACTIVE_STATUSES,
	Connection,
	ConnectionStatus,
	ProximityLevel,
	Profile,
)
from hommie.domain.connections.schemas import ProximityInfo, Recommendation, RecommendationReason
from hommie.obs import metrics as obs_metrics

# Category order doubles as the tie-break order for equally strong reasons.
CATEGORY_ORDER: tuple[str, ...] = (
	"proximity",
	"mutual_connections",
	"shared_interests",
	"activity_similarity",
	"safety_network",
)

RECOMMENDATION_REASONS: dict[str, dict[str, tuple[int, str]]] = {
	"proximity": {
		"same_building": (40, "Lives in your building"),
		"same_estate": (30, "Lives in your estate"),
		"nearby_estate": (20, "Lives in a nearby estate"),
		"same_area": (15, "Lives in your area"),
	},
	"mutual_connections": {
		"high": (35, "Many mutual connections"),
		"medium": (25, "Several mutual connections"),
		"low": (15, "Few mutual connections"),
	},
	"shared_interests": {
		"high": (30, "Many shared interests"),
		"medium": (20, "Some shared interests"),
		"low": (10, "Few shared interests"),
	},
	"activity_similarity": {
		"high": (25, "Similar activity patterns"),
		"medium": (15, "Some activity overlap"),
		"low": (10, "Occasional activity overlap"),
	},
	"safety_network": {
		"important": (20, "Important for safety network"),
		"helpful": (15, "Could enhance safety network"),
		"relevant": (10, "Relevant for safety network"),
	},
}

SAFETY_BADGES = frozenset(
	{
		"safety_champion",
		"security_volunteer",
		"emergency_responder",
		"neighborhood_watch",
		"estate_security",
	}
)
SAFETY_INTERESTS = frozenset(
	{
		"estate security",
		"neighborhood watch",
		"emergency response",
		"safety advocacy",
	}
)

ACTIVITY_HIGH = 0.7
ACTIVITY_MEDIUM = 0.4
MAX_SCORE = 100


@dataclass(slots=True)
class CandidateFeatures:
	"""Signals extracted for one candidate before tier selection."""

	profile: Profile
	proximity: Optional[ProximityLevel]
	mutual_ids: list[str]
	shared_interests: list[str]
	activity_similarity: Optional[float]
	safety_signals: int
	reasons: list[RecommendationReason] = field(default_factory=list)

	@property
	def same_building(self) -> bool:
		return self.proximity == ProximityLevel.SAME_BUILDING


def _norm(value: Optional[str]) -> str:
	return (value or "").strip().casefold()


def proximity_between(
	requester: Profile,
	candidate: Profile,
	nearby_estates: Collection[str] = (),
) -> Optional[ProximityLevel]:
	"""Closest applicable proximity tier between two profiles."""

	same_estate = bool(requester.estate_id) and requester.estate_id == candidate.estate_id
	if same_estate and _norm(requester.building) and _norm(requester.building) == _norm(candidate.building):
		return ProximityLevel.SAME_BUILDING
	if same_estate:
		return ProximityLevel.SAME_ESTATE
	if candidate.estate_id and candidate.estate_id in nearby_estates:
		return ProximityLevel.NEARBY_ESTATE
	if _norm(requester.area) and _norm(requester.area) == _norm(candidate.area):
		return ProximityLevel.SAME_AREA
	return None


def _mutual_tier(count: int) -> Optional[str]:
	if count >= 8:
		return "high"
	if count >= 3:
		return "medium"
	if count >= 1:
		return "low"
	return None


def _interest_tier(count: int) -> Optional[str]:
	if count >= 5:
		return "high"
	if count >= 2:
		return "medium"
	if count >= 1:
		return "low"
	return None


def _activity_tier(similarity: Optional[float]) -> Optional[str]:
	if similarity is None or similarity <= 0:
		return None
	if similarity >= ACTIVITY_HIGH:
		return "high"
	if similarity >= ACTIVITY_MEDIUM:
		return "medium"
	return "low"


def _safety_tier(signals: int) -> Optional[str]:
	if signals >= 3:
		return "important"
	if signals == 2:
		return "helpful"
	if signals == 1:
		return "relevant"
	return None


def safety_signal_count(profile: Profile) -> int:
	badges = sum(1 for badge in profile.badges if _norm(badge) in SAFETY_BADGES)
	interests = sum(1 for interest in profile.interests if _norm(interest) in SAFETY_INTERESTS)
	return badges + interests


def shared_interests(requester: Profile, candidate: Profile) -> list[str]:
	mine = {_norm(i) for i in requester.interests}
	return sorted(i for i in candidate.interests if _norm(i) in mine)


def _reason(category: str, tier: Optional[str]) -> Optional[RecommendationReason]:
	if tier is None:
		return None
	strength, description = RECOMMENDATION_REASONS[category][tier]
	return RecommendationReason(type=category, tier=tier, description=description, strength=strength)


def score_candidate(features: CandidateFeatures) -> int:
	"""Select the strongest tier per category and sum them, capped at 100."""

	picked = [
		_reason("proximity", features.proximity.value if features.proximity else None),
		_reason("mutual_connections", _mutual_tier(len(features.mutual_ids))),
		_reason("shared_interests", _interest_tier(len(features.shared_interests))),
		_reason("activity_similarity", _activity_tier(features.activity_similarity)),
		_reason("safety_network", _safety_tier(features.safety_signals)),
	]
	reasons = [r for r in picked if r is not None]
	reasons.sort(key=lambda r: (-r.strength, CATEGORY_ORDER.index(r.type)))
	features.reasons = reasons
	return min(sum(r.strength for r in reasons), MAX_SCORE)


def _accepted_partners(connections: Iterable[Connection]) -> dict[str, set[str]]:
	partners: dict[str, set[str]] = {}
	for conn in connections:
		if conn.status != ConnectionStatus.ACCEPTED:
			continue
		partners.setdefault(conn.from_user_id, set()).add(conn.to_user_id)
		partners.setdefault(conn.to_user_id, set()).add(conn.from_user_id)
	return partners


def _excluded_partners(requester_id: str, connections: Iterable[Connection]) -> set[str]:
	excluded: set[str] = set()
	for conn in connections:
		if not conn.involves(requester_id):
			continue
		if conn.status in ACTIVE_STATUSES or conn.status == ConnectionStatus.BLOCKED:
			excluded.add(conn.other_party(requester_id))
	return excluded


def _location_label(candidate: Profile, level: Optional[ProximityLevel]) -> str:
	if not candidate.privacy.show_location:
		return ""
	if level == ProximityLevel.SAME_BUILDING and candidate.building:
		return f"{candidate.building}, {candidate.estate_name or 'your estate'}"
	if candidate.estate_name:
		return candidate.estate_name
	return candidate.area or ""


def _to_recommendation(features: CandidateFeatures, score: int) -> Recommendation:
	profile = features.profile
	trust_score = trust.score_profile(profile)
	level = features.proximity
	return Recommendation(
		candidate_id=profile.id,
		display_name=profile.display_name,
		estate_name=profile.estate_name,
		score=score,
		reasons=features.reasons,
		mutual_connection_ids=features.mutual_ids if profile.privacy.show_mutual_connections else [],
		shared_interests=features.shared_interests,
		proximity=ProximityInfo(
			level=level.value if level else None,
			location=_location_label(profile, level),
			same_building=level == ProximityLevel.SAME_BUILDING,
			same_estate=level in (ProximityLevel.SAME_BUILDING, ProximityLevel.SAME_ESTATE),
		),
		trust_score=trust_score,
		trust_level=trust.trust_level(trust_score).id,
	)


def rank(
	requester: Profile,
	candidates: Sequence[Profile],
	existing_connections: Iterable[Connection],
	dismissed: Collection[str],
	limit: int,
	*,
	activity_similarity: Optional[Mapping[str, float]] = None,
	nearby_estates: Collection[str] = (),
	prioritize_proximity: bool = False,
	categories: Optional[Collection[str]] = None,
) -> list[Recommendation]:
	"""Score and order candidate neighbors for ``requester``.

	Ordering is fully deterministic: score descending, same-building first,
	then candidate id. With ``prioritize_proximity`` same-building candidates
	lead regardless of score.
	"""

	start = perf_counter()
	if limit <= 0:
		return []

	connections = list(existing_connections)
	partners = _accepted_partners(connections)
	excluded = _excluded_partners(requester.id, connections)
	requester_partners = partners.get(requester.id, set())
	similarity = activity_similarity or {}
	nearby = frozenset(nearby_estates)
	wanted = frozenset(categories) if categories else None
	dismissed_ids = {str(d) for d in dismissed}

	scored: list[tuple[CandidateFeatures, int]] = []
	seen: set[str] = set()
	for candidate in candidates:
		cid = candidate.id
		if cid == requester.id or cid in seen:
			continue
		seen.add(cid)
		if cid in dismissed_ids:
			obs_metrics.inc_recommendation_excluded("dismissed")
			continue
		if cid in excluded:
			obs_metrics.inc_recommendation_excluded("connected")
			continue
		if not candidate.is_active or not candidate.privacy.allow_connections:
			obs_metrics.inc_recommendation_excluded("unavailable")
			continue

		mutual_ids = sorted((requester_partners & partners.get(cid, set())) - {requester.id, cid})
		features = CandidateFeatures(
			profile=candidate,
			proximity=proximity_between(requester, candidate, nearby),
			mutual_ids=mutual_ids,
			shared_interests=shared_interests(requester, candidate),
			activity_similarity=similarity.get(cid),
			safety_signals=safety_signal_count(candidate),
		)
		score = score_candidate(features)
		if wanted is not None and not any(r.type in wanted for r in features.reasons):
			continue
		scored.append((features, score))

	if prioritize_proximity:
		scored.sort(key=lambda item: (not item[0].same_building, -item[1], item[0].profile.id))
	else:
		scored.sort(key=lambda item: (-item[1], not item[0].same_building, item[0].profile.id))

	results = [_to_recommendation(features, score) for features, score in scored[:limit]]
	obs_metrics.observe_rank((perf_counter() - start) * 1000.0, len(scored))
	return results


__all__ = [
	"CATEGORY_ORDER",
	"CandidateFeatures",
	"RECOMMENDATION_REASONS",
	"proximity_between",
	"rank",
	"safety_signal_count",
	"score_candidate",
	"shared_interests",
]
