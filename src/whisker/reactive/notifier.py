"""Change notifier — publish/subscribe hub for "content changed".

The publisher owns the subscriber list.  ``publish()`` iterates a snapshot,
so handlers may unsubscribe themselves (or others) mid-pass; a handler that
was removed earlier in the same pass is skipped.  A handler that raises is
logged and unsubscribed, and the remaining handlers still run.
"""

from __future__ import annotations

import itertools
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from whisker._types import ChangeHandler


@dataclass(frozen=True, slots=True)
class SubscriptionToken:
    """Handle returned by ``subscribe()``; pass it to ``unsubscribe()``."""

    id: int


class ChangeNotifier:
    """Observer registry with a single event type and no payload.

    Single-threaded: subscribe, unsubscribe and publish all run on the
    event loop, so no lock is needed.
    """

    __slots__ = ("_handlers", "_ids")

    def __init__(self) -> None:
        self._handlers: dict[SubscriptionToken, ChangeHandler] = {}
        self._ids = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        """Number of currently subscribed handlers."""
        return len(self._handlers)

    def subscribe(self, handler: ChangeHandler) -> SubscriptionToken:
        """Register *handler* to be called on every ``publish()``."""
        token = SubscriptionToken(id=next(self._ids))
        self._handlers[token] = handler
        return token

    def unsubscribe(self, token: SubscriptionToken) -> bool:
        """Remove a handler.  Returns False if it was already gone."""
        return self._handlers.pop(token, None) is not None

    def publish(self) -> int:
        """Call every subscribed handler once.

        Returns:
            Number of handlers that completed without raising.

        """
        delivered = 0
        for token, handler in tuple(self._handlers.items()):
            if token not in self._handlers:
                continue
            try:
                handler()
            except Exception as exc:
                print(f"  Subscriber {token.id} failed, unsubscribing: {exc}", file=sys.stderr)
                self._handlers.pop(token, None)
                continue
            delivered += 1
        return delivered
