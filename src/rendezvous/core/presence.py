"""In-memory presence registry.

Holds who is online and their availability status for the lifetime of one
transport connection. Written only by the sync layer (rendezvous.sync);
read and subscribed to by anyone.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from itertools import count
from typing import Callable, Iterable

from .profile import AvailabilityStatus

logger = logging.getLogger(__name__)


class PresenceEventKind(Enum):
    SYNC = "sync"  # whole registry changed; re-derive everything
    PRESENCE = "presence"
    AVAILABILITY = "availability"


@dataclass(frozen=True)
class PresenceEvent:
    """A notification delivered to subscribers."""

    kind: PresenceEventKind
    user_id: str | None = None
    online: bool | None = None
    status: AvailabilityStatus | None = None

    @property
    def is_sync(self) -> bool:
        return self.kind == PresenceEventKind.SYNC

    def concerns(self, user_id: str | None) -> bool:
        """True if a listener tracking `user_id` should re-read state."""
        return self.is_sync or (user_id is not None and self.user_id == str(user_id))


@dataclass(frozen=True)
class PresenceEntry:
    user_id: str
    online: bool
    availability_status: AvailabilityStatus | None = None


Listener = Callable[[PresenceEvent], None]

SYNC_EVENT = PresenceEvent(kind=PresenceEventKind.SYNC)


class Subscription:
    """Handle returned by subscribe(); call it (or dispose()) to unsubscribe."""

    def __init__(self, registry: "PresenceRegistry", token: int):
        self._registry = registry
        self._token = token

    @property
    def active(self) -> bool:
        return self._registry._has_listener(self._token)

    def dispose(self) -> None:
        self._registry._remove_listener(self._token)

    def __call__(self) -> None:
        self.dispose()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.dispose()


class PresenceRegistry:
    """
    Who is online, and with what availability status.

    Starts empty and awaiting the first snapshot. Mutators return whether
    state changed; subscribers are notified only on change.
    """

    def __init__(self):
        self._online: set[str] = set()
        self._status: dict[str, AvailabilityStatus] = {}
        self._listeners: dict[int, Listener] = {}
        self._tokens = count(1)
        self.awaiting_init = True

    # ---- reads ----

    def is_online(self, user_id: str | None) -> bool:
        if not user_id:
            return False
        return str(user_id) in self._online

    def get_status(self, user_id: str | None) -> AvailabilityStatus | None:
        if not user_id:
            return None
        return self._status.get(str(user_id))

    def entry(self, user_id: str) -> PresenceEntry:
        uid = str(user_id)
        return PresenceEntry(user_id=uid, online=uid in self._online, availability_status=self._status.get(uid))

    def online_users(self) -> frozenset[str]:
        return frozenset(self._online)

    @property
    def has_data(self) -> bool:
        return not self.awaiting_init or bool(self._online) or bool(self._status)

    # ---- subscriptions ----

    def subscribe(self, listener: Listener) -> Subscription:
        """
        Register a listener.

        If the registry already holds data the listener is replayed a single
        sync event right away, so late subscribers see current state.
        """
        token = next(self._tokens)
        self._listeners[token] = listener
        if self.has_data:
            self._deliver(token, listener, SYNC_EVENT)
        return Subscription(self, token)

    def _has_listener(self, token: int) -> bool:
        return token in self._listeners

    def _remove_listener(self, token: int) -> None:
        self._listeners.pop(token, None)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _deliver(self, token: int, listener: Listener, event: PresenceEvent) -> None:
        try:
            listener(event)
        except Exception:
            logger.exception(f"Presence listener {token} failed on {event.kind.value} event")

    def _notify(self, event: PresenceEvent) -> None:
        for token, listener in list(self._listeners.items()):
            # Unsubscribed during this pass
            if token not in self._listeners:
                continue
            self._deliver(token, listener, event)

    # ---- mutations (sync layer only) ----

    def load_snapshot(self, entries: Iterable[PresenceEntry]) -> None:
        """Replace everything with a full snapshot, then notify a sync."""
        self._online.clear()
        self._status.clear()
        for entry in entries:
            if entry.online:
                self._online.add(entry.user_id)
            if entry.availability_status is not None:
                self._status[entry.user_id] = entry.availability_status
        self.awaiting_init = False
        logger.debug(f"Presence snapshot loaded: {len(self._online)} online")
        self._notify(SYNC_EVENT)

    def apply_presence(self, user_id: str, online: bool) -> bool:
        """Set one user's online flag; notify only if it changed."""
        uid = str(user_id)
        was_online = uid in self._online
        if was_online == online:
            return False
        if online:
            self._online.add(uid)
        else:
            self._online.discard(uid)
        self._notify(PresenceEvent(kind=PresenceEventKind.PRESENCE, user_id=uid, online=online))
        return True

    def apply_availability(self, user_id: str, status: AvailabilityStatus) -> bool:
        """Set one user's availability status; notify only if it changed."""
        uid = str(user_id)
        if self._status.get(uid) == status:
            return False
        self._status[uid] = status
        self._notify(PresenceEvent(kind=PresenceEventKind.AVAILABILITY, user_id=uid, status=status))
        return True

    def reset(self) -> None:
        """Forget everything and wait for the next snapshot."""
        had_data = bool(self._online) or bool(self._status)
        self._online.clear()
        self._status.clear()
        self.awaiting_init = True
        if had_data:
            self._notify(SYNC_EVENT)
