"""Unbounded channels that keep count of their traffic."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Any, List, Tuple, TypeVar

from .errors import ChannelClosed, ChannelEmpty, ReceiverClosed, RecvError
from .meter import MaybeTimeOfFlight, Meter, prepare_with_tof

_H = TypeVar("_H", bound="_SenderHandle")


class _Shared:
    """Lifecycle state shared by both ends of a channel."""

    def __init__(self) -> None:
        self.senders = 1
        self.closed = False
        self.waiters: List[asyncio.Future] = []

    def close(self) -> None:
        self.closed = True
        self.wake()

    def wake(self) -> None:
        for fut in self.waiters:
            if not fut.done():
                fut.set_result(None)
        self.waiters.clear()

    async def wait(self) -> None:
        fut = asyncio.get_running_loop().create_future()
        self.waiters.append(fut)
        try:
            await fut
        finally:
            if fut in self.waiters:
                self.waiters.remove(fut)


class _QueueShared(_Shared):
    """Shared state holding a single unbounded queue."""

    def __init__(self) -> None:
        super().__init__()
        self.queue: deque[MaybeTimeOfFlight] = deque()

    def __len__(self) -> int:
        return len(self.queue)


class _SenderHandle:
    """Common behaviour of sender handles; the channel closes when all are released."""

    def __init__(self, meter: Meter, shared: Any) -> None:
        self._meter = meter
        self._shared = shared
        self._released = False

    def _check_live(self) -> None:
        if self._released:
            raise ValueError("sender handle has been released")

    def _prepare(self, msg: Any) -> MaybeTimeOfFlight:
        """Count ``msg`` as sent and wrap it; raises ChannelClosed if the channel is closed."""
        item = prepare_with_tof(self._meter, msg)
        if self._shared.closed:
            self._meter.retract_sent()
            raise ChannelClosed(msg)
        return item

    def _clone(self: _H) -> _H:
        self._check_live()
        self._shared.senders += 1
        return type(self)(self._meter, self._shared)

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        self._shared.senders -= 1
        if self._shared.senders == 0:
            self._shared.close()

    def close(self) -> None:
        self._release()

    def __enter__(self: _H) -> _H:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __bool__(self) -> bool:
        return True


class _ReceiverHandle:
    """Common behaviour of receiver handles."""

    def __init__(self, meter: Meter, shared: Any) -> None:
        self._meter = meter
        self._shared = shared

    def _deliver(self, item: MaybeTimeOfFlight) -> Any:
        self._meter.note_received()
        if item.sent_at is not None:
            self._meter.note_time_of_flight(max(0.0, time.monotonic() - item.sent_at))
        return item.value

    def _poll(self) -> Any:
        """Take a message, or raise ChannelEmpty / ReceiverClosed."""
        raise ChannelEmpty()

    def _recv_now(self, first: bool) -> Any:
        return self._poll()

    async def _recv(self) -> Any:
        first = True
        while True:
            try:
                return self._recv_now(first)
            except ChannelEmpty:
                await self._shared.wait()
                first = False
            except ReceiverClosed:
                raise RecvError() from None

    async def _next(self) -> Any:
        while True:
            try:
                return self._poll()
            except ChannelEmpty:
                await self._shared.wait()
            except ReceiverClosed:
                # the end of the stream is counted as a receive, like any poll result
                self._meter.note_received()
                raise StopAsyncIteration from None

    def _is_terminated(self) -> bool:
        return self._shared.closed and len(self._shared) == 0

    def __bool__(self) -> bool:
        return True


def unbounded(deterministic_tof: bool = False) -> Tuple[UnboundedMeteredSender, UnboundedMeteredReceiver]:
    """Create a connected sender and receiver sharing one meter."""
    meter = Meter(deterministic_tof)
    shared = _QueueShared()
    return UnboundedMeteredSender(meter, shared), UnboundedMeteredReceiver(meter, shared)


class UnboundedMeteredSender(_SenderHandle):
    """Sending end of an unbounded channel."""

    def meter(self) -> Meter:
        """Return the meter shared with the receiver."""
        return self._meter

    def unbounded_send(self, msg: Any) -> None:
        """Queue ``msg``; raises ChannelClosed if the channel is closed."""
        self._check_live()
        try:
            self._shared.queue.append(self._prepare(msg))
            self._shared.wake()
        finally:
            self._meter.note_channel_len(len(self._shared))

    def clone(self) -> UnboundedMeteredSender:
        """Return another handle to the same channel."""
        return self._clone()

    def close(self) -> None:
        """Release this handle; idempotent."""
        self._release()

    def __len__(self) -> int:
        return len(self._shared)


class UnboundedMeteredReceiver(_ReceiverHandle):
    """Receiving end of an unbounded channel, usable with ``async for``."""

    def _poll(self) -> Any:
        if self._shared.queue:
            return self._deliver(self._shared.queue.popleft())
        if self._shared.closed:
            raise ReceiverClosed()
        raise ChannelEmpty()

    def _recv_now(self, first: bool) -> Any:
        return self.try_next()

    def meter(self) -> Meter:
        """Return the meter shared with the senders."""
        return self._meter

    def try_next(self) -> Any:
        """Take a queued message; raises ChannelEmpty or ReceiverClosed if none."""
        try:
            return self._poll()
        finally:
            self._meter.note_channel_len(len(self._shared))

    async def recv(self) -> Any:
        """Wait for the next message; raises RecvError once the channel is closed."""
        return await self._recv()

    def close(self) -> None:
        """Close the channel; queued messages can still be received."""
        self._shared.close()

    def is_terminated(self) -> bool:
        """True once the channel is closed and drained."""
        return self._is_terminated()

    def __len__(self) -> int:
        return len(self._shared)

    def __aiter__(self) -> UnboundedMeteredReceiver:
        return self

    async def __anext__(self) -> Any:
        return await self._next()