"""Audit helpers for connection transitions."""

from __future__ import annotations

from typing import Dict

from hommie.infra.redis import redis_client
from hommie.obs import metrics as obs_metrics

CONNECTION_EVENTS_STREAM = "x:connections.events"


async def log_connection_event(event: str, fields: Dict[str, str]) -> None:
	payload = {"event": event, **{k: str(v) for k, v in fields.items() if v is not None}}
	await redis_client.xadd_capped(CONNECTION_EVENTS_STREAM, payload)


def inc_request_sent(connection_type: str) -> None:
	obs_metrics.inc_request_sent(connection_type)


def inc_transition(action: str, status: str) -> None:
	obs_metrics.inc_transition(action, status)


def inc_reject(action: str, reason: str) -> None:
	obs_metrics.inc_reject(action, reason)


def inc_conflict_retry(action: str) -> None:
	obs_metrics.inc_conflict_retry(action)
