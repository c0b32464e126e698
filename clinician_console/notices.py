"""User-visible notices (toasts).

Rendering is someone else's job: the console only emits Notice values to
whoever subscribed.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List

from clinician_console import config
from clinician_console.logging_config import get_logger

logger = get_logger(__name__)


class NoticeVariant(str, Enum):
    """Visual weight of a notice."""
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Notice:
    title: str
    description: str
    variant: NoticeVariant = NoticeVariant.DEFAULT


NoticeListener = Callable[[Notice], None]


class Notifier:
    """Fan-out of notices to subscribed renderers."""

    def __init__(self, history_limit: int = config.HISTORY_LIMIT):
        self._listeners: List[NoticeListener] = []
        self.history: List[Notice] = []
        self.history_limit = history_limit

    def subscribe(self, listener: NoticeListener) -> Callable[[], None]:
        """Register listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(
        self,
        title: str,
        description: str,
        variant: NoticeVariant = NoticeVariant.DEFAULT
    ) -> Notice:
        notice = Notice(title=title, description=description, variant=variant)
        self.history.append(notice)
        del self.history[:-self.history_limit]
        logger.info("notice", title=title, variant=variant.value)
        for listener in list(self._listeners):
            listener(notice)
        return notice

    def error(self, title: str, description: str) -> Notice:
        return self.notify(title, description, NoticeVariant.DESTRUCTIVE)
