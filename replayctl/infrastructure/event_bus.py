import threading
from collections import deque
from typing import Deque, List, Optional, Tuple, Type
from replayctl.domain.events import Event

DEFAULT_BUFFER_SIZE = 64


class Subscription:
    """A consumer's private, bounded view onto the EventBus.

    Events arrive in publish order. When the buffer is full the oldest event is
    dropped so the publisher never waits; `dropped` counts the losses.
    Use as a context manager or call `close()` when the consumer goes away.
    """

    def __init__(self, bus: "EventBus", maxlen: int, event_types: Tuple[Type[Event], ...]):
        if maxlen < 1:
            raise ValueError("maxlen must be >= 1")
        self._bus = bus
        self._buffer: Deque[Event] = deque(maxlen=maxlen)
        self._cond = threading.Condition()
        self._closed = False
        self.event_types = event_types
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def wants(self, event: Event) -> bool:
        return not self.event_types or isinstance(event, self.event_types)

    def _deliver(self, event: Event) -> None:
        with self._cond:
            if self._closed:
                return
            if len(self._buffer) == self._buffer.maxlen:
                self.dropped += 1
            self._buffer.append(event)
            self._cond.notify()

    def get(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Next event, or None on timeout or once the subscription is closed."""
        with self._cond:
            self._cond.wait_for(lambda: self._buffer or self._closed, timeout=timeout)
            if self._buffer:
                return self._buffer.popleft()
            return None

    def drain(self) -> List[Event]:
        """Return every buffered event without waiting."""
        with self._cond:
            events = list(self._buffer)
            self._buffer.clear()
            return events

    def close(self) -> None:
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._buffer.clear()
            self._cond.notify_all()
        self._bus._unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class EventBus:
    """Broadcast channel with one publisher and any number of subscribers.

    `publish` only appends to each subscriber's buffer; it never blocks on a
    consumer and a misbehaving consumer cannot raise into the publisher.
    Subscribers only see events published after they subscribed.
    """

    def __init__(self, default_buffer_size: int = DEFAULT_BUFFER_SIZE):
        self.default_buffer_size = default_buffer_size
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, *event_types: Type[Event], maxlen: Optional[int] = None) -> Subscription:
        """Creates a subscription, optionally filtered to some event types."""
        sub = Subscription(self, maxlen if maxlen is not None else self.default_buffer_size, event_types)
        with self._lock:
            self._subscriptions.append(sub)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, event: Event) -> None:
        """Publishes an event to all interested subscribers."""
        with self._lock:
            targets = list(self._subscriptions)
        for sub in targets:
            if sub.wants(event):
                sub._deliver(event)
