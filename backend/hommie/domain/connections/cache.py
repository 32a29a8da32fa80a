"""Redis memoization for network analyses and recommendation lists."""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Iterable, Optional

from pydantic import TypeAdapter, ValidationError

from hommie.domain.connections.models import pair_key
from hommie.domain.connections.schemas import NetworkAnalysis, Recommendation
from hommie.infra.redis import redis_client
from hommie.obs import metrics as obs_metrics
from hommie.settings import settings

logger = logging.getLogger(__name__)

_RECOMMENDATIONS = TypeAdapter(list[Recommendation])


def analysis_cache_key(user_a: str, user_b: str) -> str:
	first, second = pair_key(user_a, user_b)
	return f"connections:analysis:{first}:{second}"


def _analysis_index_key(user_id: str) -> str:
	return f"connections:analysis:index:{user_id}"


def _recommendations_index_key(viewer_id: str) -> str:
	return f"connections:recs:index:{viewer_id}"


def recommendations_cache_key(viewer_id: str, options: dict) -> str:
	digest = hashlib.sha1(json.dumps(options, sort_keys=True, default=str).encode("utf-8")).hexdigest()[:16]
	return f"connections:recs:{viewer_id}:{digest}"


async def get_analysis(user_a: str, user_b: str) -> Optional[NetworkAnalysis]:
	cached = await redis_client.get(analysis_cache_key(user_a, user_b))
	if cached:
		try:
			analysis = NetworkAnalysis.model_validate_json(cached)
		except ValidationError:
			logger.warning("Discarding malformed network analysis cache entry")
		else:
			obs_metrics.inc_cache_lookup("analysis", True)
			return analysis
	obs_metrics.inc_cache_lookup("analysis", False)
	return None


async def set_analysis(user_a: str, user_b: str, analysis: NetworkAnalysis) -> None:
	key = analysis_cache_key(user_a, user_b)
	ttl = settings.connection_cache_ttl_seconds
	await redis_client.setex(key, ttl, analysis.model_dump_json())
	# Each user indexes every cached pair they belong to.
	for user_id in pair_key(user_a, user_b):
		index_key = _analysis_index_key(user_id)
		await redis_client.sadd(index_key, key)
		await redis_client.expire(index_key, ttl)


async def get_recommendations(viewer_id: str, options: dict) -> Optional[list[Recommendation]]:
	cached = await redis_client.get(recommendations_cache_key(viewer_id, options))
	if cached:
		try:
			items = _RECOMMENDATIONS.validate_json(cached)
		except ValidationError:
			logger.warning("Discarding malformed recommendations cache entry")
		else:
			obs_metrics.inc_cache_lookup("recommendations", True)
			return items
	obs_metrics.inc_cache_lookup("recommendations", False)
	return None


async def set_recommendations(viewer_id: str, options: dict, items: list[Recommendation]) -> None:
	key = recommendations_cache_key(viewer_id, options)
	ttl = settings.recommendation_cache_ttl_seconds
	index_key = _recommendations_index_key(viewer_id)
	await redis_client.setex(key, ttl, _RECOMMENDATIONS.dump_json(items).decode("utf-8"))
	await redis_client.sadd(index_key, key)
	await redis_client.expire(index_key, ttl)


async def invalidate_recommendations(viewer_ids: Iterable[str]) -> None:
	for viewer_id in viewer_ids:
		index_key = _recommendations_index_key(str(viewer_id))
		keys = await redis_client.smembers(index_key)
		if keys:
			await redis_client.delete(*keys)
		await redis_client.delete(index_key)


async def invalidate_analyses(user_ids: Iterable[str]) -> None:
	for user_id in user_ids:
		index_key = _analysis_index_key(str(user_id))
		keys = await redis_client.smembers(index_key)
		if keys:
			await redis_client.delete(*keys)
		await redis_client.delete(index_key)


async def invalidate_pair(user_a: str, user_b: str) -> None:
	"""Drop cached results touching either user after their connection changed."""
	await redis_client.delete(analysis_cache_key(user_a, user_b))
	await invalidate_analyses((user_a, user_b))
	await invalidate_recommendations((user_a, user_b))
