"""Single-value channels that measure how long the answer took to arrive."""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Generator, Generic, List, Optional, Tuple, TypeVar

from .errors import ChannelClosed

T = TypeVar("T")

_log = logging.getLogger("oneshot")


class Reason(enum.IntEnum):
    """Why a oneshot receiver finished."""

    COMPLETION = 1
    CANCELLATION = 2
    HARD_TIMEOUT = 3


@dataclass(frozen=True)
class Measurements:
    """Timings taken by the receiving side, in seconds."""

    duration_since_first_poll: float
    duration_since_creation: float
    reason: Reason


class OneshotError(Exception):
    """A oneshot receive failed; ``measurements`` describes how it went."""

    def __init__(self, message: str, measurements: Measurements) -> None:
        super().__init__(message)
        self.measurements = measurements


class Canceled(OneshotError):
    """The sender went away without sending, or the value was already taken."""

    def __init__(self, measurements: Measurements) -> None:
        super().__init__("Oneshot was canceled.", measurements)


class HardTimeout(OneshotError):
    """No value arrived within the hard timeout."""

    def __init__(self, timeout: float, measurements: Measurements) -> None:
        super().__init__(f"Oneshot did not receive a response within {timeout}", measurements)
        self.timeout = timeout


@dataclass
class OutputWithMeasurements(Generic[T]):
    """A received value together with the timings of its delivery."""

    value: T
    measurements: Measurements


class _Shared:
    """State shared by both ends of one oneshot channel."""

    def __init__(self) -> None:
        self.slot: Optional[Tuple[float, Any]] = None
        self.complete = False
        self.receiver_closed = False
        self.waiters: List[asyncio.Future] = []

    def wake(self) -> None:
        for fut in self.waiters:
            if not fut.done():
                fut.set_result(None)
        self.waiters.clear()

    async def wait(self, timeout: Optional[float] = None) -> None:
        fut = asyncio.get_running_loop().create_future()
        self.waiters.append(fut)
        try:
            await asyncio.wait({fut}, timeout=timeout)
        finally:
            if fut in self.waiters:
                self.waiters.remove(fut)
            if not fut.done():
                fut.cancel()


def channel(name: str, soft_timeout: float, hard_timeout: float) -> Tuple[OneshotSender, OneshotReceiver]:
    """Create a connected oneshot sender and receiver.

    Timeouts are in seconds and count from the first time the receiver is awaited.
    Passing the soft timeout logs a warning; passing the hard one fails the receive.
    """
    shared = _Shared()
    return OneshotSender(shared), OneshotReceiver(shared, name, soft_timeout, hard_timeout)


class OneshotSender:
    """Sending end; it can send exactly one value."""

    def __init__(self, shared: _Shared) -> None:
        self._shared = shared
        self._released = False

    def send(self, value: Any) -> None:
        """Send ``value``; raises ChannelClosed (holding it) if the receiver is closed."""
        if self._released:
            raise ValueError("sender has already been used or closed")
        self._released = True
        shared = self._shared
        if shared.receiver_closed:
            shared.complete = True
            shared.wake()
            raise ChannelClosed(value)
        shared.slot = (time.monotonic(), value)
        shared.complete = True
        shared.wake()

    def close(self) -> None:
        """Drop the sender without sending; the receiver sees a cancellation."""
        if self._released:
            return
        self._released = True
        self._shared.complete = True
        self._shared.wake()

    def is_canceled(self) -> bool:
        """True once the receiver has been closed."""
        return self._shared.receiver_closed

    async def cancellation(self) -> None:
        """Wait until the receiver has been closed."""
        while not self._shared.receiver_closed:
            await self._shared.wait()

    def is_connected_to(self, receiver: OneshotReceiver) -> bool:
        """True if ``receiver`` is the other end of this channel."""
        return receiver._shared is self._shared

    def __enter__(self) -> OneshotSender:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class OneshotReceiver:
    """Receiving end; await it to get an :class:`OutputWithMeasurements`."""

    def __init__(self, shared: _Shared, name: str, soft_timeout: float, hard_timeout: float) -> None:
        self._shared = shared
        self.name = name
        self.soft_timeout = soft_timeout
        self.hard_timeout = hard_timeout
        self._created = time.monotonic()
        self._first_poll: Optional[float] = None
        self._soft_warned = False

    def _measure(self, start: float, reason: Reason) -> Measurements:
        end = time.monotonic()
        return Measurements(
            duration_since_first_poll=max(0.0, end - start),
            duration_since_creation=max(0.0, end - self._created),
            reason=reason,
        )

    def _take(self) -> OutputWithMeasurements:
        sent_at, value = self._shared.slot
        self._shared.slot = None
        return OutputWithMeasurements(value, self._measure(sent_at, Reason.COMPLETION))

    def close(self) -> None:
        """Refuse further sends; a value already sent can still be received."""
        shared = self._shared
        shared.receiver_closed = True
        shared.complete = True
        shared.wake()

    def try_recv(self) -> Optional[OutputWithMeasurements]:
        """Take the value if it has arrived, return None if not yet.

        Raises Canceled if the sender went away without sending.
        """
        shared = self._shared
        if shared.slot is not None:
            return self._take()
        if shared.complete:
            start = self._first_poll if self._first_poll is not None else time.monotonic()
            raise Canceled(self._measure(start, Reason.CANCELLATION))
        return None

    def is_terminated(self) -> bool:
        """True once the channel is finished and holds no value."""
        return self._shared.complete and self._shared.slot is None

    async def _receive(self) -> OutputWithMeasurements:
        if self._first_poll is None:
            self._first_poll = time.monotonic()
        first = self._first_poll
        soft_deadline = first + self.soft_timeout
        hard_deadline = first + self.hard_timeout
        shared = self._shared
        while True:
            now = time.monotonic()
            if not self._soft_warned and now >= soft_deadline:
                self._soft_warned = True
                _log.warning("Oneshot `%s` exceeded the soft threshold", self.name)
            if now >= hard_deadline:
                raise HardTimeout(self.hard_timeout, self._measure(first, Reason.HARD_TIMEOUT))
            if shared.slot is not None:
                return self._take()
            if shared.complete:
                raise Canceled(self._measure(first, Reason.CANCELLATION))
            next_deadline = hard_deadline if self._soft_warned else min(soft_deadline, hard_deadline)
            await shared.wait(max(0.0, next_deadline - now))

    def __await__(self) -> Generator[Any, None, OutputWithMeasurements]:
        return self._receive().__await__()