"""Domain models for neighbor profiles and connections."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Optional


class ConnectionType(str, Enum):
	"""Relationship kinds, ordered by access level in the registry."""

	FOLLOW = "follow"
	CONNECT = "connect"
	NEIGHBOR = "neighbor"
	COLLEAGUE = "colleague"
	TRUSTED = "trusted"
	FAMILY = "family"


class ConnectionStatus(str, Enum):
	"""Connection lifecycle states. NONE is never persisted."""

	NONE = "none"
	PENDING = "pending"
	ACCEPTED = "accepted"
	DECLINED = "declined"
	BLOCKED = "blocked"


class VerificationLevel(str, Enum):
	BASIC = "basic"
	ENHANCED = "enhanced"
	PREMIUM = "premium"


class ProximityLevel(str, Enum):
	SAME_BUILDING = "same_building"
	SAME_ESTATE = "same_estate"
	NEARBY_ESTATE = "nearby_estate"
	SAME_AREA = "same_area"


ACTIVE_STATUSES = frozenset({ConnectionStatus.PENDING, ConnectionStatus.ACCEPTED})


def pair_key(user_a: str, user_b: str) -> tuple[str, str]:
	"""Canonical key for an unordered user pair."""
	first, second = sorted((str(user_a), str(user_b)))
	return first, second


def _as_frozenset(values: Optional[Iterable[str]]) -> frozenset[str]:
	if not values:
		return frozenset()
	if isinstance(values, str):
		values = [values]
	return frozenset(str(v).strip() for v in values if str(v).strip())


@dataclass(slots=True, frozen=True)
class PrivacySettings:
	allow_connections: bool = True
	require_approval: bool = True
	show_location: bool = True
	show_activity: bool = True
	show_mutual_connections: bool = True

	@classmethod
	def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "PrivacySettings":
		data = data or {}
		return cls(
			allow_connections=bool(data.get("allow_connections", True)),
			require_approval=bool(data.get("require_approval", True)),
			show_location=bool(data.get("show_location", True)),
			show_activity=bool(data.get("show_activity", True)),
			show_mutual_connections=bool(data.get("show_mutual_connections", True)),
		)


@dataclass(slots=True)
class Profile:
	"""A community member as seen by the connections engine."""

	id: str
	display_name: str
	estate_id: Optional[str] = None
	estate_name: Optional[str] = None
	building: Optional[str] = None
	apartment: Optional[str] = None
	area: Optional[str] = None
	verification_level: VerificationLevel = VerificationLevel.BASIC
	phone_verified: bool = False
	identity_verified: bool = False
	address_verified: bool = False
	endorsements: int = 0
	events_organized: int = 0
	interests: frozenset[str] = field(default_factory=frozenset)
	badges: frozenset[str] = field(default_factory=frozenset)
	privacy: PrivacySettings = field(default_factory=PrivacySettings)
	is_active: bool = True
	joined_at: Optional[datetime] = None

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "Profile":
		return cls(
			id=str(record["id"]),
			display_name=record.get("display_name") or "",
			estate_id=str(record["estate_id"]) if record.get("estate_id") else None,
			estate_name=record.get("estate_name"),
			building=record.get("building"),
			apartment=record.get("apartment"),
			area=record.get("area"),
			verification_level=VerificationLevel(record.get("verification_level") or "basic"),
			phone_verified=bool(record.get("phone_verified")),
			identity_verified=bool(record.get("identity_verified")),
			address_verified=bool(record.get("address_verified")),
			endorsements=int(record.get("endorsements") or 0),
			events_organized=int(record.get("events_organized") or 0),
			interests=_as_frozenset(record.get("interests")),
			badges=_as_frozenset(record.get("badges")),
			privacy=PrivacySettings.from_mapping(record.get("privacy")),
			is_active=bool(record.get("is_active", True)),
			joined_at=record.get("joined_at"),
		)


@dataclass(slots=True)
class ConnectionMetadata:
	proximity_level: Optional[ProximityLevel] = None
	shared_interests: tuple[str, ...] = ()
	mutual_connections: int = 0
	notes: Optional[str] = None

	def to_dict(self) -> dict[str, Any]:
		return {
			"proximity_level": self.proximity_level.value if self.proximity_level else None,
			"shared_interests": list(self.shared_interests),
			"mutual_connections": self.mutual_connections,
			"notes": self.notes,
		}

	@classmethod
	def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> Optional["ConnectionMetadata"]:
		if not data:
			return None
		level = data.get("proximity_level")
		return cls(
			proximity_level=ProximityLevel(level) if level else None,
			shared_interests=tuple(data.get("shared_interests") or ()),
			mutual_connections=int(data.get("mutual_connections") or 0),
			notes=data.get("notes"),
		)


@dataclass(slots=True)
class Connection:
	"""Directed edge between two profiles; one record per unordered pair."""

	id: str
	from_user_id: str
	to_user_id: str
	connection_type: ConnectionType
	status: ConnectionStatus
	initiated_by: str
	created_at: datetime
	updated_at: datetime
	accepted_at: Optional[datetime] = None
	version: int = 0
	metadata: Optional[ConnectionMetadata] = None
	blocked_by: Optional[str] = None
	blocked_at: Optional[datetime] = None
	previous_status: Optional[ConnectionStatus] = None
	blocked_by_both: bool = False

	@property
	def pair(self) -> tuple[str, str]:
		return pair_key(self.from_user_id, self.to_user_id)

	@property
	def is_active(self) -> bool:
		return self.status in ACTIVE_STATUSES

	def involves(self, user_id: str) -> bool:
		return str(user_id) in (self.from_user_id, self.to_user_id)

	def other_party(self, user_id: str) -> str:
		if str(user_id) == self.from_user_id:
			return self.to_user_id
		if str(user_id) == self.to_user_id:
			return self.from_user_id
		raise ValueError(f"user {user_id} is not part of connection {self.id}")

	@property
	def blockers(self) -> tuple[str, ...]:
		"""Users currently holding a block on this pair."""
		if self.status != ConnectionStatus.BLOCKED or not self.blocked_by:
			return ()
		if self.blocked_by_both:
			return (self.blocked_by, self.other_party(self.blocked_by))
		return (self.blocked_by,)

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "Connection":
		previous = record.get("previous_status")
		return cls(
			id=str(record["id"]),
			from_user_id=str(record["from_user_id"]),
			to_user_id=str(record["to_user_id"]),
			connection_type=ConnectionType(record["connection_type"]),
			status=ConnectionStatus(record["status"]),
			initiated_by=str(record["initiated_by"]),
			created_at=record["created_at"],
			updated_at=record["updated_at"],
			accepted_at=record.get("accepted_at"),
			version=int(record.get("version") or 0),
			metadata=ConnectionMetadata.from_mapping(record.get("metadata")),
			blocked_by=str(record["blocked_by"]) if record.get("blocked_by") else None,
			blocked_at=record.get("blocked_at"),
			previous_status=ConnectionStatus(previous) if previous else None,
			blocked_by_both=bool(record.get("blocked_by_both")),
		)


@dataclass(slots=True)
class MutualConnection:
	"""A neighbor connected to both compared users."""

	neighbor: Profile
	connection_with_current: Connection
	connection_with_target: Connection
	connection_strength: float
	shared_interests: tuple[str, ...] = ()
	shared_activities: tuple[str, ...] = ()
