"""
Observer registry for state changes.

Follows the store contract used by reactive UI hosts: ``subscribe`` calls the
callback once with the current value straight away and returns a function
that removes it again.
"""

import logging
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], Any]


class SubscriptionRegistry:
    """Ordered set of subscriber callbacks, keyed by identity."""

    def __init__(self):
        self._subscribers: Dict[int, Subscriber] = {}

    def add(self, callback: Subscriber, current: Any) -> Callable[[], None]:
        """
        Register ``callback`` and call it immediately with ``current``.

        Adding the same callback object twice keeps a single registration.

        Returns:
            A function that unregisters the callback. Calling it more than
            once is harmless.
        """
        key = id(callback)
        self._subscribers[key] = callback
        logger.debug(f"Subscriber added ({len(self._subscribers)} total)")
        callback(current)

        def unsubscribe() -> None:
            if self._subscribers.get(key) is callback:
                del self._subscribers[key]
                logger.debug(f"Subscriber removed ({len(self._subscribers)} total)")

        return unsubscribe

    def notify(self, state: Any) -> None:
        """Call every subscriber, in subscription order, with ``state``."""
        # Snapshot so callbacks may unsubscribe while being notified; a
        # callback removed earlier in this pass is skipped
        for key, callback in list(self._subscribers.items()):
            if self._subscribers.get(key) is callback:
                callback(state)

    def clear(self) -> None:
        self._subscribers.clear()

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, callback) -> bool:
        return self._subscribers.get(id(callback)) is callback
