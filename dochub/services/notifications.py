"""In-process change notification for collection writes"""

import inspect
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, FrozenSet, Iterable, Optional, Tuple, Union

from dochub.utils.logger import get_logger

logger = get_logger(__name__)

# Origins of a change event
ORIGIN_LOCAL = "local"  # written by this process
ORIGIN_STORAGE = "storage"  # written by another process sharing the store


@dataclass(frozen=True)
class ChangeEvent:
    """A collection was written; observers should re-fetch it"""

    key: str
    origin: str = ORIGIN_LOCAL


Listener = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


class ChangeNotifier:
    """Observer registry that fans change events out to subscribers.

    Backends call ``notify`` after every successful write. Listeners may be
    plain callables or coroutine functions; a failing listener is logged and
    does not stop delivery to the others.
    """

    def __init__(self):
        self._subscribers: Dict[int, Tuple[Listener, Optional[FrozenSet[str]]]] = {}
        self._next_id = 0

    def subscribe(self, listener: Listener, keys: Optional[Iterable[str]] = None) -> Callable[[], None]:
        """Register a listener, optionally limited to some keys. Returns an unsubscribe callable."""
        subscription_id = self._next_id
        self._next_id += 1
        self._subscribers[subscription_id] = (listener, frozenset(keys) if keys is not None else None)

        def unsubscribe():
            self._subscribers.pop(subscription_id, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def notify(self, key: str, origin: str = ORIGIN_LOCAL):
        """Deliver a change event for ``key`` to every interested subscriber"""
        event = ChangeEvent(key=key, origin=origin)
        # Snapshot so listeners may unsubscribe while being notified
        for listener, keys in list(self._subscribers.values()):
            if keys is not None and key not in keys:
                continue
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Change listener failed for key {key}: {e}", exc_info=True)
