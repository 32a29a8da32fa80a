"""Neighbor connections domain exports."""

from . import network, ranking, registry, trust  # noqa: F401
from .exceptions import (  # noqa: F401
	ConcurrencyConflict,
	ConnectionsError,
	ForbiddenAction,
	InsufficientTrust,
	InvalidStateTransition,
	InvalidUpgrade,
	NotFound,
	RecipientNotAcceptingConnections,
	ValidationError,
)
from .models import (  # noqa: F401
	Connection,
	ConnectionStatus,
	ConnectionType,
	MutualConnection,
	Profile,
)
from .schemas import ConnectionPage, ConnectionRequests, NetworkAnalysis, Recommendation  # noqa: F401
