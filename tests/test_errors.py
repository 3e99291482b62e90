import pytest

from meterchan.errors import (
    ChannelClosed,
    ChannelEmpty,
    ChannelFull,
    ReceiverClosed,
    RecvError,
    SendError,
    TryRecvError,
    TrySendError,
)


def test_send_error_closed_keeps_value():
    err = SendError("msg")
    assert err.into_inner() == "msg"
    assert str(err) == "Bounded channel has been closed"


def test_send_error_terminated_loses_value():
    err = SendError("msg", terminated=True)
    assert err.into_inner() is None
    assert str(err) == "Bounded channel has been closed and the original message is lost"


def test_full_error_flags():
    err = ChannelFull(7)
    assert err.is_full() is True
    assert err.is_disconnected() is False
    assert err.into_inner() == 7
    assert str(err) == "Bounded channel is full"


def test_closed_error_flags():
    err = ChannelClosed(7)
    assert err.is_full() is False
    assert err.is_disconnected() is True
    assert err.into_inner() == 7
    assert str(err) == "Bounded channel has been closed"


@pytest.mark.parametrize("kind", [ChannelFull, ChannelClosed])
def test_transform_inner_keeps_kind(kind):
    err = kind(3)
    out = err.transform_inner(lambda v: [v, v])
    assert type(out) is kind
    assert out.into_inner() == [3, 3]
    assert out.is_full() == err.is_full()


def test_try_transform_inner_success():
    out = ChannelFull("a").try_transform_inner(str.upper)
    assert out.into_inner() == "A"
    assert out.is_full()


def test_try_transform_inner_propagates_error():
    def fail(_):
        raise KeyError("nope")

    with pytest.raises(KeyError):
        ChannelClosed(1).try_transform_inner(fail)


def _raise_and_catch(err):
    try:
        raise err
    except TrySendError as caught:
        return caught


def test_try_send_errors_are_catchable_as_base():
    full = _raise_and_catch(ChannelFull(5))
    closed = _raise_and_catch(ChannelClosed(6))
    assert full.into_inner() == 5
    assert full.is_full() is True
    assert closed.into_inner() == 6
    assert closed.is_disconnected() is True


def test_recv_error_message():
    assert str(RecvError()) == "receiving from an empty and closed channel"


def _catch_recv(err):
    try:
        raise err
    except TryRecvError as caught:
        return caught


def test_try_recv_errors_share_base():
    empty = _catch_recv(ChannelEmpty())
    closed = _catch_recv(ReceiverClosed())
    assert type(empty) is ChannelEmpty
    assert type(closed) is ReceiverClosed
    assert str(closed) == "receiving from an empty and closed channel"