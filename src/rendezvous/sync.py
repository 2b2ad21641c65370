"""Presence sync protocol - feeds a PresenceRegistry from a push transport.

Wire contract:

    presence:init         {onlineUsers: [{userId, online, availabilityStatus?}]}
                          once per connection; rebuilds the registry
    presence:update       {userId, online}
    availability:changed  {userId, availabilityStatus, availability}
    disconnect            registry cleared, awaiting the next init

Events are applied in delivery order, one registry mutation each.
"""

import logging

from .core.presence import PresenceEntry, PresenceRegistry
from .core.profile import AvailabilityProfile, AvailabilityStatus
from .ports.push_transport import (
    AVAILABILITY_CHANGED,
    DISCONNECT,
    PRESENCE_INIT,
    PRESENCE_UPDATE,
    PushTransport,
)

logger = logging.getLogger(__name__)


def _user_id(payload) -> str | None:
    if not isinstance(payload, dict):
        return None
    uid = payload.get("userId")
    return str(uid) if uid else None


class PresenceSync:
    """
    Binds one registry to one transport.

    The sync layer is the registry's only writer. attach() is idempotent,
    so repeated initialization never duplicates deliveries.
    """

    def __init__(self, registry: PresenceRegistry | None = None):
        self.registry = registry or PresenceRegistry()
        self._transport: PushTransport | None = None
        self._profiles: dict[str, AvailabilityProfile] = {}
        self._handlers = {
            PRESENCE_INIT: self.handle_init,
            PRESENCE_UPDATE: self.handle_update,
            AVAILABILITY_CHANGED: self.handle_availability,
            DISCONNECT: self.handle_disconnect,
        }

    @property
    def attached(self) -> bool:
        return self._transport is not None

    def attach(self, transport: PushTransport) -> bool:
        """
        Register protocol handlers on the transport.

        Handlers stay registered across the transport's reconnects, so a
        second attach() to the same transport is a no-op and returns False.
        """
        if self._transport is transport:
            return False
        if self._transport is not None:
            self.detach()

        for event, handler in self._handlers.items():
            transport.on(event, handler)
        self._transport = transport
        logger.debug(f"Presence sync attached (connection {transport.connection_id})")
        return True

    def detach(self) -> None:
        """Remove handlers and forget all presence."""
        if self._transport is None:
            return
        for event, handler in self._handlers.items():
            self._transport.off(event, handler)
        self._transport = None
        self._profiles.clear()
        self.registry.reset()

    def latest_profile(self, user_id: str) -> AvailabilityProfile | None:
        """Profile last pushed with an availability:changed event, if any."""
        return self._profiles.get(str(user_id))

    # ---- protocol handlers ----

    def handle_init(self, payload) -> None:
        users = payload.get("onlineUsers") if isinstance(payload, dict) else None
        if not isinstance(users, list):
            logger.warning("Ignoring presence:init without an onlineUsers list")
            return

        entries = []
        for item in users:
            uid = _user_id(item)
            if not uid:
                continue
            entries.append(
                PresenceEntry(
                    user_id=uid,
                    online=bool(item.get("online", True)),
                    availability_status=AvailabilityStatus.parse(item.get("availabilityStatus")),
                )
            )
        self.registry.load_snapshot(entries)

    def handle_update(self, payload) -> None:
        uid = _user_id(payload)
        if not uid:
            logger.debug(f"Ignoring presence:update without userId: {payload!r}")
            return
        if self.registry.apply_presence(uid, bool(payload.get("online"))):
            logger.debug(f"{uid} is now {'online' if payload.get('online') else 'offline'}")

    def handle_availability(self, payload) -> None:
        uid = _user_id(payload)
        if not uid:
            logger.debug(f"Ignoring availability:changed without userId: {payload!r}")
            return

        status = AvailabilityStatus.parse(payload.get("availabilityStatus"))
        if payload.get("availability"):
            self._profiles[uid] = AvailabilityProfile.from_api(payload["availability"], payload.get("availabilityStatus"))
        if status is None:
            logger.debug(f"Ignoring unknown availability status for {uid}: {payload.get('availabilityStatus')!r}")
            return
        self.registry.apply_availability(uid, status)

    def handle_disconnect(self, *args) -> None:
        """Stale presence is never trusted across a reconnect."""
        logger.info("Transport disconnected; clearing presence")
        self._profiles.clear()
        self.registry.reset()
