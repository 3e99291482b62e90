"""Shared counters describing the traffic through a channel."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, TypeVar

T = TypeVar("T")

#: Maximum number of time-of-flight samples kept by a meter.
TOF_QUEUE_SIZE = 100

_MASK64 = (1 << 64) - 1
_WY_ADD = 0xA0761D6478BD642F
_WY_XOR = 0xE7037ED1A0B428DB
_PROB = int(float(1 << 64) * 0.053)


@dataclass
class Readout:
    """A snapshot of a meter.

    Because of concurrency ``received`` may briefly exceed ``sent``.
    ``tof`` holds time-of-flight samples in seconds, oldest first.
    """

    sent: int = 0
    received: int = 0
    channel_len: int = 0
    blocked: int = 0
    tof: List[float] = field(default_factory=list)

    def __str__(self) -> str:
        return f"(sent={self.sent} received={self.received})"


class Meter:
    """Counters shared by the sending and receiving ends of a channel."""

    def __init__(self, deterministic_tof: bool = False) -> None:
        self.deterministic_tof = deterministic_tof
        self._lock = threading.Lock()
        self._sent = 0
        self._received = 0
        self._channel_len = 0
        self._blocked = 0
        self._tof: deque[float] = deque(maxlen=TOF_QUEUE_SIZE)

    def read(self) -> Readout:
        """Return the current counters; the time-of-flight samples are drained."""
        with self._lock:
            tof = list(self._tof)
            self._tof.clear()
            return Readout(
                sent=self._sent,
                received=self._received,
                channel_len=self._channel_len,
                blocked=self._blocked,
                tof=tof,
            )

    def note_sent(self) -> int:
        """Count one send and return the count before it."""
        with self._lock:
            previous = self._sent
            self._sent += 1
            return previous

    def retract_sent(self) -> None:
        """Undo one counted send."""
        with self._lock:
            self._sent -= 1

    def note_received(self) -> None:
        with self._lock:
            self._received += 1

    def note_blocked(self) -> None:
        with self._lock:
            self._blocked += 1

    def note_channel_len(self, length: int) -> None:
        with self._lock:
            self._channel_len = length

    def note_time_of_flight(self, tof: float) -> None:
        """Record a sample, dropping the oldest one when the buffer is full."""
        with self._lock:
            self._tof.append(tof)


@dataclass
class MaybeTimeOfFlight(Generic[T]):
    """A queued message, with the monotonic time it was sent if it is measured."""

    value: T
    sent_at: Optional[float] = None


def _wyrand_u64(seed: int) -> int:
    seed = (seed + _WY_ADD) & _MASK64
    t = seed * (seed ^ _WY_XOR)
    return ((t >> 64) ^ t) & _MASK64


def measure_tof_check(nth: int, deterministic: bool = False) -> bool:
    """Decide whether the ``nth`` message has its time of flight measured.

    In deterministic mode every even message is measured; otherwise the
    decision is a pseudo-random draw seeded with ``nth``.
    """
    if deterministic:
        return nth & 0x01 == 0
    return _wyrand_u64(nth & _MASK64) >= _PROB


def prepare_with_tof(meter: Meter, item: Any) -> MaybeTimeOfFlight:
    """Count a send on ``meter`` and wrap ``item``, stamping it if measured."""
    previous = meter.note_sent()
    if measure_tof_check(previous, meter.deterministic_tof):
        return MaybeTimeOfFlight(item, time.monotonic())
    return MaybeTimeOfFlight(item)