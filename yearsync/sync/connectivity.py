"""Online/offline signal with browser-style ``online``/``offline`` events."""

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ONLINE = "online"
OFFLINE = "offline"


class ConnectivityMonitor:
    """Holds the current connectivity state and notifies listeners on change."""

    def __init__(self, online: bool = True):
        self._online = online
        self._listeners: dict[str, list[Callable[[], None]]] = {ONLINE: [], OFFLINE: []}

    @property
    def is_online(self) -> bool:
        return self._online

    def add_listener(self, event: str, listener: Callable[[], None]) -> None:
        if listener not in self._listeners[event]:
            self._listeners[event].append(listener)

    def remove_listener(self, event: str, listener: Callable[[], None]) -> None:
        if listener in self._listeners[event]:
            self._listeners[event].remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners[event])

    def set_online(self, online: bool) -> None:
        """Record a connectivity change; listeners fire only on transitions."""
        if online == self._online:
            return
        self._online = online
        event = ONLINE if online else OFFLINE
        logger.info(f"Connectivity changed: {event}")
        for listener in list(self._listeners[event]):
            listener()


_monitor: Optional[ConnectivityMonitor] = None


def get_connectivity_monitor() -> ConnectivityMonitor:
    """Get the process-wide connectivity monitor."""
    global _monitor
    if _monitor is None:
        _monitor = ConnectivityMonitor()
    return _monitor


def reset_connectivity_monitor() -> None:
    global _monitor
    _monitor = None
