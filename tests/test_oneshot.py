import asyncio
import logging

import pytest

from meterchan.errors import ChannelClosed
from meterchan.oneshot import (
    Canceled,
    HardTimeout,
    Measurements,
    OneshotError,
    OutputWithMeasurements,
    Reason,
    channel,
)

DUMMY = bytes(256)


async def _outcome(rx):
    try:
        return await rx
    except OneshotError as err:
        return err


@pytest.mark.asyncio
async def test_easy():
    tx, rx = channel("easy", 1.0, 3.0)

    async def sender():
        tx.send(DUMMY)

    task = asyncio.create_task(sender())
    out = await rx
    await task
    assert isinstance(out, OutputWithMeasurements)
    assert out.value == DUMMY
    assert out.measurements.reason is Reason.COMPLETION
    assert out.measurements.duration_since_creation >= 0.0


@pytest.mark.asyncio
async def test_cancel_by_drop():
    tx, rx = channel("cancel_by_drop", 0.5, 2.0)

    async def sender():
        await asyncio.sleep(0.05)
        tx.close()

    task = asyncio.create_task(sender())
    result = await _outcome(rx)
    await task
    assert type(result) is Canceled
    assert result.measurements.reason is Reason.CANCELLATION
    assert result.measurements.duration_since_first_poll >= 0.0


@pytest.mark.asyncio
async def test_starve_till_hard_timeout():
    tx, rx = channel("starve_till_timeout", 0.05, 0.1)

    async def sender():
        await asyncio.sleep(0.3)
        tx.send(DUMMY)

    task = asyncio.create_task(sender())
    result = await _outcome(rx)
    await task
    assert type(result) is HardTimeout
    assert result.timeout == 0.1
    assert result.measurements.reason is Reason.HARD_TIMEOUT
    assert result.measurements.duration_since_first_poll >= 0.1
    assert "0.1" in str(result)


@pytest.mark.asyncio
async def test_starve_till_soft_timeout_then_food(caplog):
    tx, rx = channel("starve_till_soft_timeout_then_food", 0.05, 1.0)

    async def sender():
        await asyncio.sleep(0.15)
        tx.send(DUMMY)

    task = asyncio.create_task(sender())
    with caplog.at_level(logging.WARNING, logger="oneshot"):
        out = await rx
    await task
    assert out.value == DUMMY
    assert out.measurements.reason is Reason.COMPLETION
    assert any("exceeded the soft threshold" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_zero_hard_timeout_wins_over_ready_value():
    tx, rx = channel("zero", 0.0, 0.0)
    tx.send(1)
    result = await _outcome(rx)
    assert type(result) is HardTimeout
    assert result.timeout == 0.0
    assert result.measurements.reason is Reason.HARD_TIMEOUT


def test_try_recv_lifecycle():
    tx, rx = channel("try", 1.0, 1.0)
    assert rx.try_recv() is None
    assert rx.is_terminated() is False
    tx.send(7)
    assert rx.is_terminated() is False
    out = rx.try_recv()
    assert out.value == 7
    assert out.measurements.reason is Reason.COMPLETION
    assert rx.is_terminated() is True
    with pytest.raises(Canceled) as info:
        rx.try_recv()
    assert info.value.measurements.reason is Reason.CANCELLATION


def test_try_recv_after_sender_drop():
    tx, rx = channel("drop", 1.0, 1.0)
    tx.close()
    assert rx.is_terminated() is True
    with pytest.raises(Canceled):
        rx.try_recv()


def test_send_after_receiver_close_returns_value():
    tx, rx = channel("closed", 1.0, 1.0)
    rx.close()
    assert tx.is_canceled() is True
    with pytest.raises(ChannelClosed) as info:
        tx.send("payload")
    assert info.value.into_inner() == "payload"


def test_value_sent_before_close_is_still_received():
    tx, rx = channel("keep", 1.0, 1.0)
    tx.send(3)
    rx.close()
    assert rx.try_recv().value == 3


def test_send_twice_is_rejected():
    tx, _rx = channel("twice", 1.0, 1.0)
    tx.send(1)
    with pytest.raises(ValueError):
        tx.send(2)


def test_is_connected_to():
    tx, rx = channel("a", 1.0, 1.0)
    _tx2, rx2 = channel("b", 1.0, 1.0)
    assert tx.is_connected_to(rx) is True
    assert tx.is_connected_to(rx2) is False


def test_is_canceled_initially_false():
    tx, _rx = channel("c", 1.0, 1.0)
    assert tx.is_canceled() is False


@pytest.mark.asyncio
async def test_cancellation_resolves_when_receiver_closes():
    tx, rx = channel("cancel", 1.0, 1.0)
    waiter = asyncio.create_task(tx.cancellation())
    await asyncio.sleep(0.01)
    assert waiter.done() is False
    rx.close()
    await asyncio.wait_for(waiter, 1.0)
    assert tx.is_canceled() is True


def test_errors_share_base_and_measurements():
    m = Measurements(0.5, 1.0, Reason.HARD_TIMEOUT)
    err = HardTimeout(2.0, m)
    assert isinstance(err, OneshotError)
    assert err.measurements == m
    assert str(Canceled(m)) == "Oneshot was canceled."


def test_reason_values():
    assert Reason(1) is Reason.COMPLETION
    assert Reason(2) is Reason.CANCELLATION
    assert Reason(3) is Reason.HARD_TIMEOUT
    m = Measurements(0.0, 0.0, Reason(3))
    assert m.reason is Reason.HARD_TIMEOUT