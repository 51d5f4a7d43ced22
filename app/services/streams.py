"""Single-slot reactive cells and a debouncer for the dashboard pipeline."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger("crypto_dashboard.streams")

T = TypeVar("T")

Handler = Callable[[T], None]

_MISSING = object()


class Subscription:
    """Handle returned by ``LatestValue.subscribe``; ``cancel`` detaches the handler."""

    def __init__(self, cell: "LatestValue", handler: Callable) -> None:
        self._cell: Optional[LatestValue] = cell
        self._handler = handler

    @property
    def active(self) -> bool:
        return self._cell is not None

    def cancel(self) -> None:
        if self._cell is None:
            return
        self._cell._unsubscribe(self._handler)
        self._cell = None


class LatestValue(Generic[T]):
    """
    Holds the most recent value of a stream and pushes every new value to
    its subscribers synchronously, in subscription order.

    Each ``send`` replaces the value wholesale; equal values are still
    delivered.
    """

    def __init__(self, name: str, *args: T) -> None:
        if len(args) > 1:
            raise TypeError("LatestValue takes at most one initial value")
        self.name = name
        self._value: object = args[0] if args else _MISSING
        self._subscribers: List[Handler] = []

    @property
    def has_value(self) -> bool:
        return self._value is not _MISSING

    @property
    def value(self) -> T:
        if self._value is _MISSING:
            raise LookupError(f"{self.name} has not emitted yet")
        return self._value  # type: ignore[return-value]

    def get(self, default: Optional[T] = None) -> Optional[T]:
        if self._value is _MISSING:
            return default
        return self._value  # type: ignore[return-value]

    def send(self, value: T) -> None:
        self._value = value
        for handler in list(self._subscribers):
            handler(value)

    def subscribe(self, handler: Handler) -> Subscription:
        self._subscribers.append(handler)
        return Subscription(self, handler)

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _unsubscribe(self, handler: Handler) -> None:
        try:
            self._subscribers.remove(handler)
        except ValueError:
            pass


class Debouncer(Generic[T]):
    """
    Forwards only the last value pushed within ``delay`` seconds of quiet.

    Uses the running event loop's ``call_later``; a non-positive delay
    forwards immediately.
    """

    def __init__(self, delay: float, callback: Handler) -> None:
        self._delay = delay
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._pending: object = _MISSING

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._pending is not _MISSING

    def push(self, value: T) -> None:
        if self._delay <= 0:
            self._callback(value)
            return

        loop = asyncio.get_running_loop()
        self.cancel()
        self._pending = value
        self._handle = loop.call_later(self._delay, self._fire)

    def flush(self) -> None:
        """Deliver a pending value now instead of waiting for the timer."""
        if self._pending is _MISSING:
            return
        if self._handle is not None:
            self._handle.cancel()
        self._fire()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending = _MISSING

    def _fire(self) -> None:
        value = self._pending
        self._handle = None
        self._pending = _MISSING
        if value is _MISSING:
            return
        self._callback(value)  # type: ignore[arg-type]
