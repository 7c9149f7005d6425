# chronosim

Deterministic simulation building blocks for testing distributed systems.
Latency, packet loss, duplication, reordering and bandwidth delays are all
drawn from random number generators seeded up front. Partitions and clock
faults are applied at the instants you choose. Given the same seed and the
same inputs, a simulated network therefore behaves the same way every time.

Simulated instants and durations are integer nanoseconds throughout.

## Installation

```
pip install chronosim
```

To install the test dependencies as well:

```
pip install "chronosim[test]"
```

## What is inside

- `chronosim.network.message`
  - `Message` is a frozen dataclass with the fields `id`, `src`, `dst`,
    `data` and `sent_at`. `Message.create()` gives it a fresh id from
    `next_message_id()`. `reset_message_ids()` restarts ids at zero.
  - `InFlightMessage` is a message together with the time it is due,
    `deliver_at`.
- `chronosim.network.latency`
  - The latency models are `FixedLatency`, `UniformLatency`,
    `NormalLatency` (clamped at zero) and `BimodalLatency`. Each has a
    `sample(rng)` method that takes a `random.Random`.
  - The presets are `lan()` (uniform 1–5 ms), `wan()` (uniform 50–150 ms),
    `datacenter()` (100 µs or 1 ms, 30% slow) and `default_latency()`
    (fixed 1 ms).
- `chronosim.network.fault`
  - The fault values are `Partition`, `Drop`, `Delay`, `Duplicate`,
    `ClockSkew`, `ClockJump`, `Crash`, `Restart`, `DiskReadError`,
    `DiskWriteError`, `FullDisk`, `Corrupt` and `Heal`.
  - Each fault has a constructor function: `partition()`, `split()`,
    `drop()`, `clock_skew()`, `heal()` and so on. The constructors clamp
    rates to [0, 1], and clock skew to at least 0.01.
  - `FaultSchedule` holds faults due at given instants.
  - `FaultState` holds the faults in effect now. It answers
    `can_communicate()`, `adjusted_time()`, `is_crashed()`,
    `should_fail_read()` / `should_fail_write()` / `should_corrupt()`, and
    `corrupt_data()`, which flips one random bit of a `bytearray`.
- `chronosim.network.link`
  - `Link` is a one-way, seeded link. It has the settable properties
    `drop_rate`, `duplicate_rate`, `reorder_rate` and `bandwidth` (bytes
    per second, 0 for unlimited).
  - Its methods are `enqueue()`, `deliver()`, `peek_deliverable()`,
    `next_delivery_time()` and `reset()`.
- `chronosim.network.sim`
  - `NetworkSim` and `NetworkConfig` connect nodes in both directions, send
    messages, and deliver them into per-node inboxes on `tick()`. They also
    apply scheduled faults.
  - Sending between nodes that are not connected raises
    `NodeNotFoundError`. A message sent across a partition is dropped
    silently.
- `chronosim.recording.format`
  - `Header` and `Event` use a little-endian binary encoding, with the
    event payload classes `TaskSpawnPayload`, `NetSendPayload`,
    `ScheduleDecisionPayload` and so on.
  - `Header.validate()` raises `InvalidRecordingError` for bad magic bytes
    or a newer version.
- `chronosim.recording.writer`
  - `RecordingWriter` writes a header and then length-prefixed events, plain
    or gzip-compressed (`RecordingWriter.compressed()`).
  - It is a context manager. `finish()` returns the number of events
    written.
- `chronosim.recording.reader`
  - `RecordingReader.open()` detects gzip compression from a `.gz`
    extension or from the gzip magic bytes at the start of the file.
  - The reader exposes `header`, `seed`, `strategy` and `is_compressed`.
  - Read events one at a time with `next_event()`, which returns `None` at
    the end. To get all of them, iterate over the reader.
- `chronosim.runtime.waker`
  - `WakeNotifier` is the interface a scheduler implements.
  - `create_waker()` returns a `Waker` that holds its notifier weakly.
    Waking it after the notifier is gone does nothing.
- `chronosim.runtime.task`
  - `Task` wraps an awaitable. `poll(waker)` runs it to its next suspension
    and returns `True` once it has completed.
  - `TaskHandle` reports completion, and `await handle.join()` waits for it.
  - `BlockReason` and `BlockKind` describe why a task is waiting.

## Example: a network with a scheduled partition

```python
from chronosim.network import fault
from chronosim.network.latency import FixedLatency
from chronosim.network.sim import NetworkConfig, NetworkSim

config = NetworkConfig(latency=FixedLatency(1_000_000))  # 1 ms
net = NetworkSim(config, seed=42)
net.connect(0, 1)

net.schedule_fault(10_000_000, fault.partition([[0], [1]]))
net.schedule_fault(20_000_000, fault.heal())

net.send(0, 1, b"hello", 0)
net.tick(2_000_000)
print(net.recv(1).data)            # b'hello'

net.tick(15_000_000)
print(net.can_communicate(0, 1))   # False

net.tick(25_000_000)
print(net.can_communicate(0, 1))   # True
```

## Example: recording a trace

```python
from chronosim.recording.format import Event, Header
from chronosim.recording.reader import RecordingReader
from chronosim.recording.writer import RecordingWriter

with RecordingWriter.compressed("run.chrn.gz", Header.create(seed=7, strategy=1)) as writer:
    writer.write_event(Event.task_spawn(1, 0, "main", 0))
    writer.write_event(Event.task_complete(1, 300))

with RecordingReader.open("run.chrn.gz") as reader:
    print(reader.seed)
    for event in reader:
        print(event.event_type.name, event.task_id)
```

## What this package does not do

This package provides the pieces only. It has no runtime loop that spawns
tasks, schedules them, advances a virtual clock and records or replays a
run. It has no scheduling strategies, no deadlock, livelock or data-race
detection, no multi-node cluster model, no simulated filesystem, and no
command-line tool. Crash and restart faults, and disk faults, are tracked in
`FaultState`, but nothing in the package acts on them beyond what
`FaultState` itself answers.

## Running the tests

```
pytest
```