"""Navigation requests issued by the console.

The router lives outside the console. Navigator records where the console
wants to go, optionally after a delay, and tells subscribed routers.
"""
import asyncio
from typing import Callable, Dict, List, Optional

from clinician_console import config
from clinician_console.logging_config import get_logger

logger = get_logger(__name__)

LANDING = "/"
AUTH_HANDLER = "/auth-handler"
DASHBOARD = "/dashboard"
SETTINGS = "/settings"

RouteListener = Callable[[str], None]


class Navigator:
    """Records the current location and pending delayed navigations."""

    def __init__(self, location: str = LANDING, history_limit: int = config.HISTORY_LIMIT):
        self.location = location
        self.history: List[str] = [location]
        self._listeners: List[RouteListener] = []
        self._pending: Dict[object, asyncio.TimerHandle] = {}
        self.history_limit = history_limit

    def subscribe(self, listener: RouteListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def go(self, location: str, delay: float = 0) -> Optional[asyncio.TimerHandle]:
        """
        Navigate to location, now or after delay seconds.

        Delayed navigation is scheduled on the running event loop. Called
        from synchronous code (no running loop) it is applied immediately.

        Returns:
            Timer handle for delayed navigation, None if applied immediately
        """
        if delay <= 0:
            self._apply(location)
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("navigation_delay_skipped", location=location, delay=delay)
            self._apply(location)
            return None

        marker = object()
        handle = loop.call_later(delay, self._fire, location, marker)
        self._pending[marker] = handle
        logger.debug("navigation_scheduled", location=location, delay=delay)
        return handle

    def open_external(self, url: str) -> None:
        """Full-page navigation away from the console (e.g. OAuth connect)."""
        self._apply(url)

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def cancel_pending(self) -> None:
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()

    def _fire(self, location: str, marker: object) -> None:
        self._pending.pop(marker, None)
        self._apply(location)

    def _apply(self, location: str) -> None:
        self.location = location
        self.history.append(location)
        del self.history[:-self.history_limit]
        logger.info("navigated", location=location)
        for listener in list(self._listeners):
            listener(location)

