"""Observability package bootstrap."""

from __future__ import annotations

from hommie.obs import logging as obs_logging

_initialised = False


def init() -> None:
	"""Install JSON logging once per process."""
	global _initialised
	if _initialised:
		return
	obs_logging.configure_logging()
	_initialised = True
