"""Cache of server-derived state (profile, appointment list).

Best Practices:
- Keys are independent: invalidating one never touches another
- Mutations invalidate explicitly; nothing expires unless stale_after is set
- Concurrent reads of one key share a single in-flight fetch
- Keys with an active consumer re-fetch as soon as they are invalidated
"""
import asyncio
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from clinician_console.logging_config import get_logger

logger = get_logger(__name__)

PROFILE_KEY = "profile"
APPOINTMENTS_KEY = "appointments"

Fetcher = Callable[[], Awaitable[Any]]
Listener = Callable[[str], None]


@dataclass
class CacheEntry:
    """Last known state of one key."""
    data: Any = None
    has_data: bool = False
    error: Optional[BaseException] = None
    stale: bool = False
    updated_at: float = 0.0


class ServerStateCache:
    """
    Key-indexed cache of remote resources.

    Pattern: entry map + in-flight task registry + per-key generation counter.
    A fetch stores its result as stale when the key was invalidated while it
    was running, so the next read fetches again.
    """

    def __init__(self, stale_after: Optional[float] = None):
        """
        Initialize cache.

        Args:
            stale_after: Seconds after which data counts as stale.
                         None (default) means data only goes stale on invalidate().
        """
        self.stale_after = stale_after
        self._entries: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._generation: Dict[str, int] = defaultdict(int)
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._observers: Dict[str, List[Fetcher]] = defaultdict(list)
        self.fetch_count: Dict[str, int] = defaultdict(int)

    def entry(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def peek(self, key: str) -> Any:
        """Last known data for key, stale or not. Never fetches."""
        entry = self._entries.get(key)
        return entry.data if entry is not None else None

    def is_fetching(self, key: str) -> bool:
        return key in self._in_flight

    def is_fresh(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None or not entry.has_data or entry.stale:
            return False
        if self.stale_after is not None:
            return time.time() - entry.updated_at <= self.stale_after
        return True

    async def read(self, key: str, fetcher: Fetcher, enabled: bool = True) -> Any:
        """
        Return fresh data for key, fetching it if needed.

        Args:
            key: Resource key
            fetcher: Coroutine function producing the resource
            enabled: When False, nothing is fetched and None is returned

        Returns:
            Cached or freshly fetched data

        Raises:
            Exception: Whatever the fetcher raised (not retried)
        """
        if not enabled:
            return None

        while True:
            if self.is_fresh(key):
                return self._entries[key].data

            task = self._start_fetch(key, fetcher)
            generation, data = await asyncio.shield(task)
            if generation == self._generation[key]:
                return data
            # Invalidated while that fetch ran; its result is already stale.

    def invalidate(self, key: str) -> Optional[asyncio.Task]:
        """
        Mark key stale.

        If the key has an active consumer a re-fetch is scheduled on the
        running loop and its task returned; otherwise the next read fetches.
        """
        self._generation[key] += 1
        entry = self._entries.get(key)
        if entry is not None:
            entry.stale = True
        logger.info("cache_invalidated", key=key, observers=len(self._observers[key]))

        if not self._observers[key]:
            return None
        fetcher = self._observers[key][-1]
        refresh = asyncio.ensure_future(self.read(key, fetcher))
        refresh.add_done_callback(self._consume_background_error(key))
        return refresh

    def observe(self, key: str, fetcher: Fetcher) -> Callable[[], None]:
        """Register an active consumer of key; returns a callable that drops it."""
        self._observers[key].append(fetcher)

        def unobserve():
            if fetcher in self._observers[key]:
                self._observers[key].remove(fetcher)

        return unobserve

    def subscribe(self, key: str, listener: Listener) -> Callable[[], None]:
        """Call listener(key) after every store for key; returns an unsubscribe callable."""
        self._listeners[key].append(listener)

        def unsubscribe():
            if listener in self._listeners[key]:
                self._listeners[key].remove(listener)

        return unsubscribe

    def set(self, key: str, data: Any) -> None:
        """Store data as fresh (e.g. a value already known from a mutation)."""
        self._store(key, data=data, error=None, stale=False)

    def remove(self, key: str) -> None:
        """Forget key. An in-flight fetch still completes but its result is stale."""
        self._generation[key] += 1
        if self._entries.pop(key, None) is not None:
            self._notify(key)

    def clear(self) -> None:
        for key in list(self._entries):
            self.remove(key)
        for key in list(self._in_flight):
            self._generation[key] += 1

    def _start_fetch(self, key: str, fetcher: Fetcher) -> asyncio.Task:
        task = self._in_flight.get(key)
        if task is not None:
            return task

        generation = self._generation[key]
        task = asyncio.ensure_future(self._run_fetch(key, fetcher, generation))
        self._in_flight[key] = task
        self.fetch_count[key] += 1
        task.add_done_callback(lambda t: self._finish_fetch(key, t))
        return task

    async def _run_fetch(self, key: str, fetcher: Fetcher, generation: int) -> Tuple[int, Any]:
        try:
            data = await fetcher()
        except Exception as e:
            logger.warning("cache_fetch_failed", key=key, error=str(e))
            if self._accepts(key, generation):
                # Keep serving the previous data alongside the error.
                entry = self._entries.get(key)
                self._store(
                    key,
                    data=entry.data if entry is not None else None,
                    error=e,
                    stale=True,
                    has_data=entry is not None and entry.has_data
                )
            raise

        if self._accepts(key, generation):
            self._store(key, data=data, error=None, stale=generation != self._generation[key])
        return generation, data

    def _accepts(self, key: str, generation: int) -> bool:
        """A result is dropped when its key was removed while the fetch ran."""
        return generation == self._generation[key] or key in self._entries

    def _finish_fetch(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the exception retrieved; readers awaiting the task still get it.
            task.exception()

    def _consume_background_error(self, key: str):
        def callback(task: asyncio.Task):
            if task.cancelled():
                return
            error = task.exception()
            if error is not None:
                logger.warning("cache_refresh_failed", key=key, error=str(error))
        return callback

    def _store(self, key: str, data: Any, error: Optional[BaseException], stale: bool, has_data: bool = True) -> None:
        self._entries[key] = CacheEntry(
            data=data,
            has_data=has_data,
            error=error,
            stale=stale,
            updated_at=time.time(),
        )
        self._notify(key)

    def _notify(self, key: str) -> None:
        for listener in list(self._listeners[key]):
            listener(key)
