"""Connection registry — fans change signals out to connected browsers.

Each browser tab holds one SSE stream.  The registry gives every stream a
``ViewerChannel`` (a bounded queue), subscribes it to the ChangeNotifier, and
pushes the ``"change"`` token onto every channel when the notifier fires.
The browser then re-fetches ``/html``; no content travels over the channel.

Delivery is independent per channel.  A channel that is closed or has
fallen ``queue_size`` signals behind is dropped and its subscription
released without disturbing delivery to the others.
"""

from __future__ import annotations

import asyncio
import sys
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from whisker._errors import ChannelDeliveryError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from whisker._types import ClientID
    from whisker.observability.collector import StackCollector
    from whisker.reactive.notifier import ChangeNotifier, SubscriptionToken

# The only message ever pushed to viewers.
CHANGE_SIGNAL = "change"

# Put on a closed channel so a consumer waiting on an empty queue wakes up.
_CLOSED_MARKER = ""


@dataclass(eq=False, slots=True)
class ViewerChannel:
    """A connected browser's push channel.

    Compared and hashed by identity; two tabs are never the same channel.

    Attributes:
        client_id: Unique identifier for this connection.
        queue: Pending signals, consumed by the SSE stream in FIFO order.
        closed: Set once the viewer disconnects; later sends fail.

    """

    client_id: ClientID = field(default_factory=lambda: str(uuid.uuid4()))
    queue: asyncio.Queue[str] = field(default_factory=lambda: asyncio.Queue(maxsize=64))
    closed: bool = False

    @classmethod
    def bounded(cls, queue_size: int) -> ViewerChannel:
        """Create a channel that tolerates at most *queue_size* pending signals."""
        return cls(queue=asyncio.Queue(maxsize=queue_size))

    def send(self, token: str) -> None:
        """Queue *token* for the viewer.

        Raises:
            ChannelDeliveryError: If the channel is closed or its queue is full.

        """
        if self.closed:
            msg = f"channel {self.client_id} is closed"
            raise ChannelDeliveryError(msg)
        try:
            self.queue.put_nowait(token)
        except asyncio.QueueFull as exc:
            msg = f"channel {self.client_id} is {self.queue.maxsize} signals behind"
            raise ChannelDeliveryError(msg) from exc

    def close(self) -> None:
        """Mark the channel closed and wake its consumer.  Idempotent.

        A full queue needs no marker: its consumer is not waiting and stops
        once it has drained the pending signals.
        """
        if self.closed:
            return
        self.closed = True
        if not self.queue.full():
            self.queue.put_nowait(_CLOSED_MARKER)


class ConnectionRegistry:
    """Tracks open viewer channels and forwards change signals to them.

    Mutated from two places: ``register()`` when a browser connects, and
    ``deregister()`` on disconnect or failed delivery.  Removal during a
    fan-out pass is safe because the notifier iterates a snapshot.

    Args:
        notifier: Hub whose events are forwarded to every channel.
        collector: Optional collector for ``ChannelDropped`` events.

    """

    def __init__(
        self,
        notifier: ChangeNotifier,
        collector: StackCollector | None = None,
    ) -> None:
        self._notifier = notifier
        self._collector = collector
        self._channels: dict[ViewerChannel, SubscriptionToken] = {}

    @property
    def connection_count(self) -> int:
        """Number of registered viewer channels."""
        return len(self._channels)

    def __contains__(self, channel: object) -> bool:
        return channel in self._channels

    def register(self, channel: ViewerChannel) -> SubscriptionToken:
        """Start forwarding change signals to *channel*."""
        token = self._notifier.subscribe(lambda: self._deliver(channel))
        self._channels[channel] = token
        return token

    def deregister(self, channel: ViewerChannel, reason: str = "closed") -> bool:
        """Stop forwarding to *channel* and release its subscription.

        Safe to call more than once; returns False if it was not registered.
        """
        token = self._channels.pop(channel, None)
        if token is None:
            return False
        self._notifier.unsubscribe(token)
        if self._collector is not None:
            self._collector.record_channel_dropped(channel.client_id, reason)
        return True

    def _deliver(self, channel: ViewerChannel) -> None:
        """Push one signal to one channel; drop the channel if that fails."""
        try:
            channel.send(CHANGE_SIGNAL)
        except Exception as exc:
            print(f"  Dropping viewer {channel.client_id[:8]}: {exc}", file=sys.stderr)
            channel.close()
            self.deregister(channel, reason=str(exc))

    async def client_generator(self, channel: ViewerChannel) -> AsyncIterator[str]:
        """Async generator that yields signals from a channel's queue.

        Used as the source for Chirp's ``EventStream``.  When the viewer goes
        away the stream task is cancelled (or the generator closed); either
        way the channel is closed and deregistered.  A channel closed from
        elsewhere (dropped for falling behind) ends the stream once its
        pending signals have been yielded.  A disconnect is a normal
        transition, so ``CancelledError`` ends the stream quietly instead of
        leaking into the event loop's exception handler.

        """
        try:
            while not (channel.closed and channel.queue.empty()):
                token = await channel.queue.get()
                if token == _CLOSED_MARKER:
                    return
                yield token
        except (asyncio.CancelledError, GeneratorExit):
            return
        finally:
            channel.close()
            self.deregister(channel, reason="disconnected")
