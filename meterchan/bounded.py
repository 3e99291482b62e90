"""Bounded channels, optionally with a priority lane, that keep count of their traffic."""

from __future__ import annotations

from collections import deque
from typing import Any, Optional, Tuple

from .errors import ChannelClosed, ChannelEmpty, ChannelFull, ReceiverClosed, SendError
from .meter import MaybeTimeOfFlight, Meter
from .unbounded import _ReceiverHandle, _SenderHandle, _Shared


class _Lane:
    """One bounded queue of messages."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("channel capacity must be at least 1")
        self.capacity = capacity
        self.queue: deque[MaybeTimeOfFlight] = deque()

    def is_full(self) -> bool:
        return len(self.queue) >= self.capacity

    def __len__(self) -> int:
        return len(self.queue)


class _LaneShared(_Shared):
    """Shared state holding a bulk lane and an optional priority lane."""

    def __init__(self, bulk: _Lane, priority: Optional[_Lane]) -> None:
        super().__init__()
        self.bulk = bulk
        self.priority = priority

    def __len__(self) -> int:
        return len(self.bulk) + (len(self.priority) if self.priority is not None else 0)


def channel(capacity: int, deterministic_tof: bool = False) -> Tuple[MeteredSender, MeteredReceiver]:
    """Create a connected sender and receiver without a priority lane."""
    return _pair(_LaneShared(_Lane(capacity), None), deterministic_tof)


def channel_with_priority(
    capacity_bulk: int, capacity_priority: int, deterministic_tof: bool = False
) -> Tuple[MeteredSender, MeteredReceiver]:
    """Create a connected sender and receiver with a priority lane."""
    return _pair(_LaneShared(_Lane(capacity_bulk), _Lane(capacity_priority)), deterministic_tof)


def _pair(shared: _LaneShared, deterministic_tof: bool) -> Tuple[MeteredSender, MeteredReceiver]:
    meter = Meter(deterministic_tof)
    return MeteredSender(meter, shared), MeteredReceiver(meter, shared)


class MeteredSender(_SenderHandle):
    """Sending end of a bounded channel."""

    _shared: _LaneShared

    def meter(self) -> Meter:
        """Return the meter with its channel length brought up to date."""
        self._meter.note_channel_len(len(self._shared))
        return self._meter

    async def send(self, msg: Any) -> None:
        """Send on the bulk lane, waiting for capacity; raises SendError if closed."""
        await self._send_inner(msg, False)

    async def priority_send(self, msg: Any) -> None:
        """Send on the priority lane (or the bulk lane if there is none), waiting for capacity."""
        await self._send_inner(msg, True)

    async def _send_inner(self, msg: Any, use_priority: bool) -> None:
        try:
            if use_priority:
                self.try_priority_send(msg)
            else:
                self.try_send(msg)
        except ChannelFull as err:
            self._meter.note_blocked()
            # the waiting send is counted up front
            self._meter.note_sent()
            await self._send_to_channel(err.value, use_priority)
        except ChannelClosed as err:
            raise SendError(err.value) from None

    async def _send_to_channel(self, msg: Any, use_priority: bool) -> None:
        shared = self._shared
        lane = shared.priority if use_priority and shared.priority is not None else shared.bulk
        while True:
            if shared.closed:
                self._meter.retract_sent()
                raise SendError(msg)
            if not lane.is_full():
                lane.queue.append(MaybeTimeOfFlight(msg))
                shared.wake()
                return
            await shared.wait()

    def _push(self, lane: _Lane, msg: Any) -> None:
        self._check_live()
        item = self._prepare(msg)
        if lane.is_full():
            self._meter.retract_sent()
            raise ChannelFull(msg)
        lane.queue.append(item)
        self._shared.wake()

    def try_send(self, msg: Any) -> None:
        """Send on the bulk lane or raise ChannelFull / ChannelClosed at once."""
        self._push(self._shared.bulk, msg)

    def try_priority_send(self, msg: Any) -> None:
        """Send on the priority lane, falling back to the bulk lane if there is none."""
        lane = self._shared.priority
        self._push(lane if lane is not None else self._shared.bulk, msg)

    def clone(self) -> MeteredSender:
        """Return another handle to the same channel."""
        return self._clone()

    def close(self) -> None:
        """Release this handle; idempotent."""
        self._release()

    def __len__(self) -> int:
        return len(self._shared)


class MeteredReceiver(_ReceiverHandle):
    """Receiving end of a bounded channel; the priority lane is served first."""

    _shared: _LaneShared

    def _take(self, lane: _Lane) -> Any:
        item = lane.queue.popleft()
        self._shared.wake()
        return self._deliver(item)

    def _poll(self, check_priority: bool = True) -> Any:
        shared = self._shared
        if check_priority and shared.priority is not None:
            if shared.priority.queue:
                return self._take(shared.priority)
            if shared.closed:
                raise ReceiverClosed()
        if shared.bulk.queue:
            return self._take(shared.bulk)
        if shared.closed:
            raise ReceiverClosed()
        raise ChannelEmpty()

    def _recv_now(self, first: bool) -> Any:
        # after the first attempt only the bulk lane is awaited
        return self._poll(check_priority=first)

    def meter(self) -> Meter:
        """Return the meter with its channel length brought up to date."""
        self._meter.note_channel_len(len(self._shared))
        return self._meter

    def try_next(self) -> Any:
        """Take a queued message, return None if closed, raise ChannelEmpty if empty."""
        try:
            return self._poll()
        except ReceiverClosed:
            return None

    def try_recv(self) -> Any:
        """Take a queued message; raises ChannelEmpty or ReceiverClosed if none."""
        return self._poll()

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

    def __aiter__(self) -> MeteredReceiver:
        return self

    async def __anext__(self) -> Any:
        return await self._next()