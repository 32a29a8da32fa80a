"""Pydantic schemas for network analyses and recommendations."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

ReasonType = Literal[
	"proximity",
	"mutual_connections",
	"shared_interests",
	"activity_similarity",
	"safety_network",
]


class ConnectionPath(BaseModel):
	id: str
	neighbor_id: str
	neighbor_name: str = ""
	strength: float
	common_interests: list[str] = Field(default_factory=list)
	path_type: Literal["direct", "through_mutual", "through_community"]
	description: str


class NetworkAnalysis(BaseModel):
	total_mutual_connections: int = 0
	strong_connections: int = 0
	average_connection_strength: float = 0.0
	shared_network_density: float = 0.0
	network_overlap: float = 0.0
	trustability_score: int = 0
	connection_paths: list[ConnectionPath] = Field(default_factory=list)


class RecommendationReason(BaseModel):
	type: ReasonType
	tier: str
	description: str
	strength: int


class ProximityInfo(BaseModel):
	level: Optional[Literal["same_building", "same_estate", "nearby_estate", "same_area"]] = None
	location: str = ""
	same_building: bool = False
	same_estate: bool = False


class Recommendation(BaseModel):
	candidate_id: str
	display_name: str = ""
	estate_name: Optional[str] = None
	score: int = Field(..., ge=0, le=100)
	reasons: list[RecommendationReason] = Field(default_factory=list)
	mutual_connection_ids: list[str] = Field(default_factory=list)
	shared_interests: list[str] = Field(default_factory=list)
	proximity: ProximityInfo = Field(default_factory=ProximityInfo)
	trust_score: int = 0
	trust_level: str = "new_neighbor"


class ConnectionSummary(BaseModel):
	id: str
	from_user_id: str
	to_user_id: str
	connection_type: Literal["follow", "connect", "neighbor", "colleague", "trusted", "family"]
	status: Literal["none", "pending", "accepted", "declined", "blocked"]
	initiated_by: str
	created_at: datetime
	accepted_at: Optional[datetime] = None


class ConnectionPage(BaseModel):
	items: list[ConnectionSummary] = Field(default_factory=list)
	total: int = 0
	page: int = 1
	limit: int = 20
	total_pages: int = 0
	has_next: bool = False
	has_prev: bool = False


class ConnectionRequests(BaseModel):
	"""Pending requests split by direction, newest first."""

	incoming: list[ConnectionSummary] = Field(default_factory=list)
	outgoing: list[ConnectionSummary] = Field(default_factory=list)
