import asyncio

import pytest

from meterchan.errors import ChannelClosed, ChannelEmpty, ReceiverClosed, RecvError
from meterchan.unbounded import unbounded


def snapshot(handle, *fields):
    readout = handle.meter().read()
    return tuple(len(readout.tof) if name == "tof" else getattr(readout, name) for name in fields)


def test_try_send_try_next_unbounded():
    tx, rx = unbounded(deterministic_tof=True)
    assert snapshot(rx, "sent", "received") == (0, 0)
    tx.unbounded_send(0)
    assert snapshot(tx, "sent", "received") == (1, 0)
    for _ in range(3):
        tx.unbounded_send(0)
    assert snapshot(tx, "sent", "received") == (4, 0)
    rx.try_next()
    assert snapshot(rx, "sent", "received") == (4, 1)
    for _ in range(2):
        rx.try_next()
    # every second message is timed; the earlier read consumed the first sample
    full = ("sent", "channel_len", "received", "blocked", "tof")
    assert snapshot(tx, *full) == (4, 1, 3, 0, 1)
    rx.try_next()
    assert snapshot(rx, *full) == (4, 0, 4, 0, 0)
    with pytest.raises(ChannelEmpty):
        rx.try_next()


def test_failed_send_does_not_inc_sent():
    tx, rx = unbounded()
    rx.close()
    with pytest.raises(ChannelClosed) as info:
        tx.unbounded_send("m")
    assert info.value.into_inner() == "m"
    assert snapshot(tx, "sent", "received") == (0, 0)


def test_messages_come_out_in_order_and_len_tracks():
    tx, rx = unbounded()
    for i in range(3):
        tx.unbounded_send(i)
    assert (len(tx), len(rx)) == (3, 3)
    assert [rx.try_next() for _ in range(3)] == [0, 1, 2]
    assert len(rx) == 0


def test_clone_keeps_channel_open():
    tx, rx = unbounded()
    tx2 = tx.clone()
    tx.close()
    tx2.unbounded_send("x")
    assert rx.try_next() == "x"
    with pytest.raises(ChannelEmpty):
        rx.try_next()
    tx2.close()
    with pytest.raises(ReceiverClosed):
        rx.try_next()
    assert rx.is_terminated()


def test_released_handle_cannot_send():
    tx, _rx = unbounded()
    tx.close()
    with pytest.raises(ValueError):
        tx.unbounded_send(1)


def test_receiver_close_keeps_queued_messages():
    tx, rx = unbounded()
    tx.unbounded_send("a")
    rx.close()
    assert not rx.is_terminated()
    assert rx.try_next() == "a"
    assert rx.is_terminated()


@pytest.mark.asyncio
async def test_recv_waits_for_message():
    tx, rx = unbounded()
    loop = asyncio.get_running_loop()
    loop.call_later(0.01, tx.unbounded_send, 5)
    assert await asyncio.wait_for(rx.recv(), timeout=5) == 5
    assert snapshot(rx, "received") == (1,)


@pytest.mark.asyncio
async def test_recv_on_closed_channel_raises():
    tx, rx = unbounded()
    with tx:
        tx.unbounded_send(1)
    assert await rx.recv() == 1
    with pytest.raises(RecvError):
        await rx.recv()


@pytest.mark.asyncio
async def test_async_iteration_ends_when_senders_released():
    tx, rx = unbounded()

    async def producer():
        for i in range(3):
            tx.unbounded_send(i)
            await asyncio.sleep(0)
        tx.close()

    task = asyncio.create_task(producer())
    got = [m async for m in rx]
    await task
    assert got == [0, 1, 2]
    assert snapshot(rx, "sent", "received") == (3, 4)