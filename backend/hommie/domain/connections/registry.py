"""Static registry of connection kinds and their permission levels."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from hommie.domain.connections.models import ConnectionType


@dataclass(slots=True, frozen=True)
class ConnectionTypeInfo:
	id: ConnectionType
	name: str
	description: str
	icon: str
	color: str
	level: int
	permissions: tuple[str, ...]


_TYPES: tuple[ConnectionTypeInfo, ...] = (
	ConnectionTypeInfo(
		id=ConnectionType.FOLLOW,
		name="Following",
		description="Following their updates",
		icon="account-plus",
		color="#7B68EE",
		level=0,
		permissions=("public_posts",),
	),
	ConnectionTypeInfo(
		id=ConnectionType.CONNECT,
		name="Connected",
		description="Basic neighborhood connection",
		icon="account-multiple",
		color="#0066CC",
		level=1,
		permissions=("basic_profile", "public_posts"),
	),
	ConnectionTypeInfo(
		id=ConnectionType.NEIGHBOR,
		name="Neighbor",
		description="Close neighbor relationship",
		icon="home-account",
		color="#228B22",
		level=2,
		permissions=("neighbor_profile", "local_posts", "safety_alerts"),
	),
	ConnectionTypeInfo(
		id=ConnectionType.COLLEAGUE,
		name="Colleague",
		description="Professional connection",
		icon="briefcase-account",
		color="#FF6B35",
		level=2,
		permissions=("professional_profile", "business_posts", "networking"),
	),
	ConnectionTypeInfo(
		id=ConnectionType.TRUSTED,
		name="Trusted",
		description="Trusted neighbor connection",
		icon="shield-account",
		color="#00A651",
		level=3,
		permissions=("full_profile", "private_posts", "direct_contact", "recommendations"),
	),
	ConnectionTypeInfo(
		id=ConnectionType.FAMILY,
		name="Family",
		description="Family member",
		icon="account-heart",
		color="#E74C3C",
		level=4,
		permissions=("full_access", "family_posts", "emergency_contact"),
	),
)

_BY_TYPE: dict[ConnectionType, ConnectionTypeInfo] = {info.id: info for info in _TYPES}

DEFAULT_OPTIONS: tuple[ConnectionType, ...] = (ConnectionType.FOLLOW, ConnectionType.CONNECT)


def all_types() -> list[ConnectionTypeInfo]:
	"""Every connection kind in ascending level order."""
	return list(_TYPES)


def get(connection_type: ConnectionType | str) -> ConnectionTypeInfo:
	return _BY_TYPE[ConnectionType(connection_type)]


def level_of(connection_type: ConnectionType | str) -> int:
	return get(connection_type).level


def can_upgrade(current: Optional[ConnectionType | str], target: Optional[ConnectionType | str]) -> bool:
	if current is None or target is None:
		return False
	return get(target).level > get(current).level


def upgrade_options(current: Optional[ConnectionType | str]) -> list[ConnectionType]:
	if current is None:
		return list(DEFAULT_OPTIONS)
	floor = get(current).level
	return [info.id for info in _TYPES if info.level > floor]


__all__ = [
	"ConnectionTypeInfo",
	"DEFAULT_OPTIONS",
	"all_types",
	"can_upgrade",
	"get",
	"level_of",
	"upgrade_options",
]
