from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, List, Optional

from core.models import ConnectionState, ConnectionStatus
from utils.logger import FeedLogger


class ConnectionEvent(Enum):
    START = "START"
    OPENED = "OPENED"
    FAILED = "FAILED"
    UNSUPPORTED = "UNSUPPORTED"
    DISPOSE = "DISPOSE"


Callback = Callable[[ConnectionState], None]


class ConnectionStateMachine:
    """Deterministic FSM for one supervisor's connection lifecycle."""

    _TRANSITIONS: Dict[ConnectionStatus, Dict[ConnectionEvent, ConnectionStatus]] = {
        ConnectionStatus.IDLE: {
            ConnectionEvent.START: ConnectionStatus.CONNECTING,
            ConnectionEvent.UNSUPPORTED: ConnectionStatus.DEGRADED,
            ConnectionEvent.DISPOSE: ConnectionStatus.CLOSED,
        },
        ConnectionStatus.CONNECTING: {
            ConnectionEvent.OPENED: ConnectionStatus.OPEN,
            ConnectionEvent.FAILED: ConnectionStatus.DEGRADED,
            ConnectionEvent.UNSUPPORTED: ConnectionStatus.DEGRADED,
            ConnectionEvent.DISPOSE: ConnectionStatus.CLOSED,
        },
        ConnectionStatus.OPEN: {
            ConnectionEvent.FAILED: ConnectionStatus.DEGRADED,
            ConnectionEvent.DISPOSE: ConnectionStatus.CLOSED,
        },
        ConnectionStatus.DEGRADED: {
            ConnectionEvent.DISPOSE: ConnectionStatus.CLOSED,
        },
        ConnectionStatus.CLOSED: {},
    }

    def __init__(self, name: str, logger: FeedLogger | None = None):
        self.name = name
        self.logger = logger or FeedLogger(__name__)
        self.state = ConnectionState(ConnectionStatus.IDLE)
        self._callbacks: List[Callback] = []

    @property
    def status(self) -> ConnectionStatus:
        return self.state.status

    def on_change(self, callback: Callback) -> None:
        self._callbacks.append(callback)

    def transition(self, event: ConnectionEvent, reason: Optional[str] = None) -> bool:
        """Apply ``event``; returns False (and changes nothing) when it is not allowed."""
        next_status = self._TRANSITIONS[self.state.status].get(event)
        if next_status is None:
            self.logger.debug(
                "fsm noop transition",
                connection=self.name,
                state=self.state.status.value,
                event=event.value,
            )
            return False
        self.state = ConnectionState(next_status, reason)
        for cb in list(self._callbacks):
            cb(self.state)
        return True
