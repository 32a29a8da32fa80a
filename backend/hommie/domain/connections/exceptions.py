"""Domain-level exceptions for neighbor connections."""

from __future__ import annotations


class ConnectionsError(Exception):
	"""Base class for connection feature errors."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class ValidationError(ConnectionsError):
	reason = "invalid"


class NotFound(ConnectionsError):
	reason = "not_found"


class ForbiddenAction(ConnectionsError):
	reason = "forbidden"


class RecipientNotAcceptingConnections(ConnectionsError):
	reason = "recipient_not_accepting"


class InsufficientTrust(ConnectionsError):
	reason = "insufficient_trust"


class InvalidUpgrade(ConnectionsError):
	reason = "invalid_upgrade"

	def __init__(self, current: str, target: str) -> None:
		super().__init__(f"cannot upgrade {current} to {target}")
		self.reason = "invalid_upgrade"
		self.current = current
		self.target = target


class InvalidStateTransition(ConnectionsError):
	"""Raised when an action is attempted from a state that does not allow it."""

	reason = "invalid_state"

	def __init__(self, action: str, current_state: str) -> None:
		super().__init__(f"cannot {action} a connection in state {current_state}")
		self.reason = "invalid_state"
		self.action = action
		self.current_state = current_state


class ConcurrencyConflict(ConnectionsError):
	"""Raised by repositories when an optimistic version check fails."""

	reason = "conflict"
