"""Persisted set of recommendations a viewer has dismissed."""

from __future__ import annotations

from hommie.infra.redis import redis_client
from hommie.obs import metrics as obs_metrics


def _key(viewer_id: str) -> str:
	return f"connections:dismissed:{viewer_id}"


async def dismiss(viewer_id: str, candidate_id: str) -> None:
	await redis_client.sadd(_key(str(viewer_id)), str(candidate_id))
	obs_metrics.inc_dismissal("dismiss")


async def restore(viewer_id: str, candidate_id: str) -> None:
	await redis_client.srem(_key(str(viewer_id)), str(candidate_id))
	obs_metrics.inc_dismissal("restore")


async def list_dismissed(viewer_id: str) -> set[str]:
	return {str(member) for member in await redis_client.smembers(_key(str(viewer_id))) or []}
