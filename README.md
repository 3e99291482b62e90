# meterchan

Asyncio channels that keep count of the traffic that passes through them.

Every channel shares a `Meter` (`meterchan.meter`) between its ends. The meter
records:

- how many messages were sent and received,
- how many times a sender had to wait for room,
- the queue length, which the bounded ends' `meter()` and the unbounded ends'
  send and `try_next()` bring up to date,
- up to 100 time-of-flight samples, in seconds.

`Meter.read()` returns a `Readout` snapshot with the fields `sent`, `received`,
`channel_len`, `blocked` and `tof`. Each read drains the time-of-flight samples
collected so far. A `Readout` prints as `(sent=N received=M)`.

Not every message is timed. By default a pseudo-random draw, seeded with the
message's sequence number, decides which ones are. Pass `deterministic_tof=True`
to any channel constructor to time every even-numbered message instead, which is
useful in tests.

## Installation

```
pip install meterchan
```

To run the test suite, install the `test` extra:

```
pip install "meterchan[test]"
```

## Bounded channels

```python
import asyncio
from meterchan.bounded import channel, channel_with_priority

async def main():
    tx, rx = channel(4)
    await tx.send("hello")
    tx.try_send("world")          # raises at once if full or closed
    print(await rx.recv())        # hello
    print(rx.try_next())          # world
    print(rx.meter().read())      # (sent=2 received=2)

    ptx, prx = channel_with_priority(8, 2)
    ptx.try_send(1)
    ptx.try_priority_send(42)
    print(prx.try_next())         # 42: the priority lane is served first

asyncio.run(main())
```

### Capacity

Capacities must be at least 1; a smaller value raises `ValueError`.

### Sending

- `send()` and `priority_send()` wait for room when the lane is full. The wait is
  counted in `blocked`.
- If the channel is closed, they raise `SendError`. The rejected message is
  returned by `into_inner()`.
- `try_send()` and `try_priority_send()` never wait. They raise a
  `TrySendError`: `ChannelFull` if the lane is full, `ChannelClosed` if the
  channel is closed.
- A `TrySendError` offers `into_inner()`, `is_full()`, `is_disconnected()` and
  `transform_inner()`.
- Without a priority lane, the priority methods fall back to the bulk lane.

### Receiving

- `try_next()` returns `None` once the channel is closed and drained. It raises
  `ChannelEmpty` when nothing is queued but the channel is still open.
- `try_recv()` raises `ReceiverClosed` instead of returning `None`.
- `recv()` waits for a message. It raises `RecvError` once the channel is closed.
- Receivers also work with `async for`. The end of the stream is counted as one
  receive in the meter.

### Closing

- `clone()` gives another sender handle.
- The channel closes when every sender handle has been closed. A sender can also
  be used as a context manager, which closes it on exit.
- `MeteredReceiver.close()` closes the channel from the receiving side. Messages
  already queued can still be received.
- `len()` of either end is the number of queued messages.
- `is_terminated()` is true once the channel is closed and drained.

## Unbounded channels

```python
from meterchan.unbounded import unbounded

tx, rx = unbounded()
tx.unbounded_send("ping")
print(rx.try_next())   # ping
```

- `unbounded_send()` raises `ChannelClosed` if the channel is closed.
- `UnboundedMeteredReceiver.try_next()` raises `ChannelEmpty` or `ReceiverClosed`
  when nothing is queued.
- `recv()`, `async for`, `clone()`, `close()`, `len()` and `is_terminated()`
  behave as on the bounded channels.

## Metered oneshots

```python
import asyncio
from meterchan.oneshot import channel

async def main():
    tx, rx = channel("answer", soft_timeout=1.0, hard_timeout=3.0)
    tx.send(42)
    out = await rx
    print(out.value, out.measurements.reason)

asyncio.run(main())
```

Awaiting the receiver gives an `OutputWithMeasurements`. Its `measurements` hold
`duration_since_first_poll`, `duration_since_creation` and a `Reason`:
`COMPLETION`, `CANCELLATION` or `HARD_TIMEOUT`. The timeouts are in seconds and
count from the first time the receiver is awaited.

Awaiting the receiver can fail in these ways:

- If the sender is closed without sending, it raises `Canceled`.
- If nothing arrives before the hard timeout, it raises `HardTimeout`.
- Passing the soft timeout does not fail; it only logs a warning on the
  `oneshot` logger.
- Both errors are `OneshotError`s and carry `measurements`.

The sender and receiver have these other methods:

- `OneshotReceiver.try_recv()` returns `None` if nothing has arrived yet.
- `OneshotReceiver.close()` makes a later `send()` raise `ChannelClosed`.
- `OneshotSender.is_canceled()`, `cancellation()` and `is_connected_to()` let the
  sender observe the receiver.

## Connection graphs

`meterchan.graph` models subsystems that talk through messages. Each subsystem
is described by a `SubsystemSpec(name, consumes, sends)`:

```python
from meterchan.graph import ConnectionGraph, SubsystemSpec

graph = ConnectionGraph.construct([
    SubsystemSpec("a", consumes="MsgA", sends=["MsgB"]),
    SubsystemSpec("b", consumes="MsgB", sends=["MsgA", "Log"]),
])
print("\n".join(graph.describe_cycles()))
print(graph.unconsumed_messages)   # {'Log': [('b', 1)]}
print(graph.to_dot())
```

`ConnectionGraph.construct()` builds a `networkx.MultiDiGraph` with one edge
per message, running from the sender to the consumer. It also records:

- `unsent_messages`: consumed but never sent,
- `unconsumed_messages`: sent but never consumed,
- `sccs`: the strongly connected components that contain a cycle.

If two subsystems consume the same message, the later one wins.

The graph can be rendered as text:

- `describe_cycles()` returns a summary line, then one cycle traced through each
  component.
- `to_dot()` returns a graphviz document. Cycles are coloured and tagged with
  Greek letters; at most 10 components are annotated.
- `strongly_connected_components()` and `greek_alphabet()` are available on
  their own.

## What it does not do

- The graph module only describes message flow. It does not run subsystems or
  route messages between them.
- `to_dot()` returns the dot text. It does not write files, and it does not lay
  the graph out or convert it to SVG.