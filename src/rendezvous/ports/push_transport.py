"""Push transport interface."""

from typing import Any, Callable, Protocol

Handler = Callable[..., None]

# Events the client receives
PRESENCE_INIT = "presence:init"
PRESENCE_UPDATE = "presence:update"
AVAILABILITY_CHANGED = "availability:changed"
APPOINTMENT_CREATED = "appointment:created"
APPOINTMENT_UPDATED = "appointment:updated"
APPOINTMENT_DELETED = "appointment:deleted"
APPOINTMENT_STATUS_CHANGED = "appointment:statusChanged"
APPOINTMENT_REMINDER = "appointment:reminder"
APPOINTMENT_STARTED = "appointment:started"

# Events the client sends
APPOINTMENT_JOINED = "appointment:joined"
APPOINTMENT_DECLINED = "appointment:declined"

# Connection lifecycle
CONNECT = "connect"
DISCONNECT = "disconnect"


class PushTransport(Protocol):
    """A persistent, ordered, bidirectional event channel."""

    @property
    def connection_id(self) -> str | None:
        """Identifies the current connection; None while disconnected."""
        ...

    def on(self, event: str, handler: Handler) -> None:
        """Register a handler for an incoming event."""
        ...

    def off(self, event: str, handler: Handler) -> None:
        """Remove a previously registered handler."""
        ...

    def emit(self, event: str, data: Any = None) -> None:
        """Send an event to the server."""
        ...
