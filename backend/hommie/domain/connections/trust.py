"""Trust score and trust level utilities for neighbor profiles."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from hommie.domain.connections.models import Profile
from hommie.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 100

PHONE_VERIFIED_POINTS = 20
IDENTITY_VERIFIED_POINTS = 30
ADDRESS_VERIFIED_POINTS = 30
ENDORSEMENT_POINTS_EACH = 2
MAX_ENDORSEMENT_POINTS = 10
EVENT_POINTS_EACH = 1
MAX_EVENT_POINTS = 10


@dataclass(slots=True, frozen=True)
class TrustLevel:
	"""Named trust band with its static presentation data."""

	id: str
	name: str
	description: str
	icon: str
	color: str
	min_score: int
	max_score: int
	privileges: tuple[str, ...]

	def contains(self, score: int) -> bool:
		return self.min_score <= score <= self.max_score


@dataclass(slots=True, frozen=True)
class TrustComponent:
	score: int
	max_score: int


@dataclass(slots=True, frozen=True)
class TrustScoreBreakdown:
	phone_verification: TrustComponent
	identity_verification: TrustComponent
	address_verification: TrustComponent
	community_endorsements: TrustComponent
	events_organized: TrustComponent
	total: int


# Ascending, inclusive, contiguous over 0..100.
TRUST_LEVELS: tuple[TrustLevel, ...] = (
	TrustLevel(
		id="new_neighbor",
		name="New Neighbor",
		description="New to the community",
		icon="account-outline",
		color="#8E8E8E",
		min_score=0,
		max_score=24,
		privileges=("Basic access", "Getting started guide", "Welcome support"),
	),
	TrustLevel(
		id="known_neighbor",
		name="Known Neighbor",
		description="Familiar face in the community",
		icon="account-check",
		color="#FF6B35",
		min_score=25,
		max_score=49,
		privileges=("Basic connections", "Community access", "Profile visibility"),
	),
	TrustLevel(
		id="trusted_neighbor",
		name="Trusted Neighbor",
		description="Reliable and trustworthy neighbor",
		icon="shield-check",
		color="#00A651",
		min_score=50,
		max_score=74,
		privileges=("Private groups", "Service recommendations", "Safety alerts"),
	),
	TrustLevel(
		id="community_pillar",
		name="Community Pillar",
		description="Trusted and active community member",
		icon="shield-star",
		color="#0066CC",
		min_score=75,
		max_score=89,
		privileges=("Event hosting", "Business verification", "Extended network"),
	),
	TrustLevel(
		id="estate_elder",
		name="Estate Elder",
		description="Highly respected community leader",
		icon="crown",
		color="#FFD700",
		min_score=90,
		max_score=100,
		privileges=("Community leadership", "Moderation privileges", "Priority support"),
	),
)

_LEVELS_BY_ID = {level.id: level for level in TRUST_LEVELS}


def clamp(value: int, minimum: int = MIN_SCORE, maximum: int = MAX_SCORE) -> int:
	return max(minimum, min(maximum, value))


def score_breakdown(profile: Profile) -> TrustScoreBreakdown:
	"""Per-component trust contributions; each term is capped on its own."""

	endorsements = max(0, profile.endorsements)
	events = max(0, profile.events_organized)
	phone = TrustComponent(PHONE_VERIFIED_POINTS if profile.phone_verified else 0, PHONE_VERIFIED_POINTS)
	identity = TrustComponent(IDENTITY_VERIFIED_POINTS if profile.identity_verified else 0, IDENTITY_VERIFIED_POINTS)
	address = TrustComponent(ADDRESS_VERIFIED_POINTS if profile.address_verified else 0, ADDRESS_VERIFIED_POINTS)
	endorsed = TrustComponent(min(endorsements * ENDORSEMENT_POINTS_EACH, MAX_ENDORSEMENT_POINTS), MAX_ENDORSEMENT_POINTS)
	organised = TrustComponent(min(events * EVENT_POINTS_EACH, MAX_EVENT_POINTS), MAX_EVENT_POINTS)
	total = phone.score + identity.score + address.score + endorsed.score + organised.score
	return TrustScoreBreakdown(
		phone_verification=phone,
		identity_verification=identity,
		address_verification=address,
		community_endorsements=endorsed,
		events_organized=organised,
		total=min(total, MAX_SCORE),
	)


def score_profile(profile: Profile) -> int:
	"""Return the 0..100 trust score for a profile."""

	return score_breakdown(profile).total


def trust_level(score: int | float) -> TrustLevel:
	"""Map a trust score onto exactly one trust band.

	Out-of-range scores are clamped rather than rejected; the anomaly is logged
	so the caller bug stays visible.
	"""

	if not math.isfinite(score):
		logger.warning("Trust score %s is not finite; clamping", score)
		obs_metrics.inc_trust_clamped()
		value = MAX_SCORE if score > 0 else MIN_SCORE
	else:
		value = int(round(score))
		if value < MIN_SCORE or value > MAX_SCORE:
			logger.warning("Trust score %s outside %s..%s; clamping", score, MIN_SCORE, MAX_SCORE)
			obs_metrics.inc_trust_clamped()
			value = clamp(value)
	for level in TRUST_LEVELS:
		if level.contains(value):
			return level
	raise AssertionError(f"trust bands do not cover score {value}")  # pragma: no cover


def get_trust_level_by_id(level_id: str) -> TrustLevel | None:
	return _LEVELS_BY_ID.get(level_id)


__all__ = [
	"TRUST_LEVELS",
	"TrustComponent",
	"TrustLevel",
	"TrustScoreBreakdown",
	"get_trust_level_by_id",
	"score_breakdown",
	"score_profile",
	"trust_level",
]
