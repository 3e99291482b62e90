"""Errors raised by metered channels."""

from __future__ import annotations

from typing import Any, Callable


class SendError(Exception):
    """A waiting send failed because the channel has been closed.

    The rejected message is kept in ``value`` unless the channel could not
    hand it back, in which case ``terminated`` is set and ``value`` is None.
    """

    def __init__(self, value: Any = None, *, terminated: bool = False) -> None:
        if terminated:
            message = "Bounded channel has been closed and the original message is lost"
        else:
            message = "Bounded channel has been closed"
        super().__init__(message)
        self.terminated = terminated
        self.value = None if terminated else value

    def into_inner(self) -> Any:
        """Return the rejected message, or None if it was lost."""
        return self.value


class TrySendError(Exception):
    """A non-waiting send failed; the rejected message is kept in ``value``."""

    default_message = "Bounded channel could not accept the message"

    def __init__(self, value: Any) -> None:
        super().__init__(self.default_message)
        self.value = value

    def into_inner(self) -> Any:
        """Return the rejected message."""
        return self.value

    def is_full(self) -> bool:
        """True if the message was rejected because the channel was full."""
        return isinstance(self, ChannelFull)

    def is_disconnected(self) -> bool:
        """True if the message was rejected because the channel was closed."""
        return isinstance(self, ChannelClosed)

    def transform_inner(self, f: Callable[[Any], Any]) -> TrySendError:
        """Return an error of the same kind holding ``f(value)``."""
        return type(self)(f(self.value))

    def try_transform_inner(self, f: Callable[[Any], Any]) -> TrySendError:
        """Like :meth:`transform_inner`; an exception raised by ``f`` propagates."""
        return self.transform_inner(f)


class ChannelFull(TrySendError):
    """The channel had no free capacity."""

    default_message = "Bounded channel is full"


class ChannelClosed(TrySendError):
    """The channel has been closed."""

    default_message = "Bounded channel has been closed"


class RecvError(Exception):
    """Receiving from an empty and closed channel."""

    def __init__(self, message: str = "receiving from an empty and closed channel") -> None:
        super().__init__(message)


class TryRecvError(Exception):
    """A non-waiting receive found no message."""


class ChannelEmpty(TryRecvError):
    """No message is queued, but the channel is still open."""

    def __init__(self, message: str = "receiving from an empty channel") -> None:
        super().__init__(message)


class ReceiverClosed(TryRecvError):
    """No message is queued and the channel has been closed."""

    def __init__(self, message: str = "receiving from an empty and closed channel") -> None:
        super().__init__(message)