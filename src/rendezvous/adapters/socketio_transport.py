"""Socket.IO push transport adapter."""

import logging
from typing import Any

import socketio
from socketio.exceptions import ConnectionError as SocketIOConnectionError

from rendezvous.config import Config, Tokens, load_config
from rendezvous.core.errors import BookingError
from rendezvous.ports.push_transport import Handler

logger = logging.getLogger(__name__)


class TransportError(BookingError):
    """Raised when the push connection cannot be established."""

    pass


class SocketIOTransport:
    """
    Push transport over Socket.IO.

    Implements PushTransport protocol. socketio.Client keeps one handler per
    event, so handlers are fanned out here, in registration order.
    """

    def __init__(
        self,
        config: Config | None = None,
        tokens: Tokens | None = None,
        client: socketio.Client | None = None,
    ):
        self.config = config or load_config()
        self.tokens = tokens or Tokens.load()
        self._client = client or socketio.Client(reconnection=True, logger=False)
        self._handlers: dict[str, list[Handler]] = {}

    @property
    def connection_id(self) -> str | None:
        if not self._client.connected:
            return None
        return self._client.sid

    @property
    def connected(self) -> bool:
        return self._client.connected

    def _dispatcher(self, event: str):
        def dispatch(*args):
            for handler in list(self._handlers.get(event, [])):
                handler(*args)

        return dispatch

    def on(self, event: str, handler: Handler) -> None:
        if event not in self._handlers:
            self._handlers[event] = []
            self._client.on(event, self._dispatcher(event))
        self._handlers[event].append(handler)

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, data: Any = None) -> None:
        if not self._client.connected:
            logger.warning(f"Dropping {event}: transport is not connected")
            return
        self._client.emit(event, data)

    def connect(self) -> None:
        """Open the connection, authenticating with the session cookie."""
        if self._client.connected:
            return
        if not self.tokens.jwt:
            raise TransportError("Not logged in. Run 'rendezvous login' first.")
        try:
            self._client.connect(
                self.config.socket_url,
                headers={"Cookie": f"jwt={self.tokens.jwt}"},
                transports=["websocket", "polling"],
            )
        except SocketIOConnectionError as e:
            raise TransportError(f"Could not connect to {self.config.socket_url}: {e}") from e
        logger.info(f"Connected to {self.config.socket_url} as {self._client.sid}")

    def disconnect(self) -> None:
        if self._client.connected:
            self._client.disconnect()

    def wait(self) -> None:
        """Block until the connection ends."""
        self._client.wait()
