"""Reactive layer — change propagation to connected browsers.

Connects re-renders to browser reloads through the change notifier and the
per-viewer SSE channels.
"""

from whisker.reactive.broadcaster import CHANGE_SIGNAL, ConnectionRegistry, ViewerChannel
from whisker.reactive.notifier import ChangeNotifier, SubscriptionToken

__all__ = [
    "CHANGE_SIGNAL",
    "ChangeNotifier",
    "ConnectionRegistry",
    "SubscriptionToken",
    "ViewerChannel",
]
