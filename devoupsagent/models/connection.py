"""Backend connection state machine."""

from __future__ import annotations

from enum import Enum


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SHUTTING_DOWN = "shutting_down"

    def can_transition_to(self, target: ConnectionState) -> bool:
        return target in _TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return self is ConnectionState.SHUTTING_DOWN


# SHUTTING_DOWN is absorbing: reachable from everywhere, never left.
_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.DISCONNECTED: frozenset(
        {ConnectionState.CONNECTING, ConnectionState.SHUTTING_DOWN}
    ),
    ConnectionState.CONNECTING: frozenset(
        {
            ConnectionState.CONNECTED,
            ConnectionState.DISCONNECTED,
            ConnectionState.SHUTTING_DOWN,
        }
    ),
    ConnectionState.CONNECTED: frozenset(
        {ConnectionState.DISCONNECTED, ConnectionState.SHUTTING_DOWN}
    ),
    ConnectionState.SHUTTING_DOWN: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    """Raised when the connection manager attempts an illegal state change."""

    def __init__(self, current: ConnectionState, target: ConnectionState) -> None:
        super().__init__(f"Invalid connection transition: {current.value} -> {target.value}")
        self.current = current
        self.target = target
