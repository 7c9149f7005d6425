"""Network simulator coordinating links, faults and per-node inboxes.

Instants and durations are integer nanoseconds.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Optional

from chronosim.network.fault import Fault, FaultSchedule, FaultState, heal, partition
from chronosim.network.latency import LatencyModel, default_latency
from chronosim.network.link import Link
from chronosim.network.message import Message

__all__ = ["NetworkConfig", "NetworkSim", "NodeNotFoundError"]

_log = logging.getLogger(__name__)

_U64_MASK = 2**64 - 1


class NodeNotFoundError(LookupError):
    """Raised when a message is sent over a link that does not exist."""

    def __init__(self, node: int) -> None:
        super().__init__(f"node not found: {node}")
        self.node = node


@dataclass
class NetworkConfig:
    """Defaults applied to every link created by :meth:`NetworkSim.connect`."""

    latency: LatencyModel = field(default_factory=default_latency)
    drop_rate: float = 0.0
    duplicate_rate: float = 0.0
    reorder_rate: float = 0.0
    bandwidth_bps: int = 0


class NetworkSim:
    """Links between node pairs, the faults in effect and each node's inbox."""

    def __init__(self, config: Optional[NetworkConfig] = None, seed: int = 0) -> None:
        self.config = config if config is not None else NetworkConfig()
        self.seed = seed
        self._links: dict[tuple[int, int], Link] = {}
        self._inboxes: dict[int, deque[Message]] = {}
        self._fault_state = FaultState()
        self._fault_schedule = FaultSchedule()
        self._link_counter = 0

    @classmethod
    def with_seed(cls, seed: int) -> NetworkSim:
        """Simulator with the default configuration."""
        return cls(NetworkConfig(), seed)

    @property
    def fault_state(self) -> FaultState:
        """The faults currently in effect."""
        return self._fault_state

    def _next_link_seed(self) -> int:
        seed = (self.seed + self._link_counter) & _U64_MASK
        self._link_counter += 1
        return seed

    def _new_link(self) -> Link:
        link = Link(self.config.latency, self._next_link_seed())
        link.drop_rate = self.config.drop_rate
        link.duplicate_rate = self.config.duplicate_rate
        link.reorder_rate = self.config.reorder_rate
        link.bandwidth = self.config.bandwidth_bps
        return link

    def connect(self, a: int, b: int) -> None:
        """Create links in both directions between ``a`` and ``b``."""
        link_ab = self._new_link()
        link_ba = self._new_link()
        self._links[(a, b)] = link_ab
        self._links[(b, a)] = link_ba
        self.add_node(a)
        self.add_node(b)

    def add_node(self, node: int) -> None:
        """Make sure ``node`` has an inbox."""
        self._inboxes.setdefault(node, deque())

    def send(self, src: int, dst: int, data: bytes, now: int) -> None:
        """Send ``data`` from ``src`` to ``dst`` at time ``now``.

        A message across a partition is silently dropped. Raises
        :class:`NodeNotFoundError` if the two nodes are not connected.
        """
        if not self._fault_state.can_communicate(src, dst):
            _log.debug("message %d -> %d dropped: partitioned", src, dst)
            return

        link = self._links.get((src, dst))
        if link is None:
            raise NodeNotFoundError(dst)

        _log.debug("sending %d bytes %d -> %d", len(data), src, dst)

        base_drop = link.drop_rate
        base_dup = link.duplicate_rate
        link.drop_rate = min(1.0, base_drop + self._fault_state.drop_rate)
        link.duplicate_rate = min(1.0, base_dup + self._fault_state.duplicate_rate)
        try:
            link.enqueue(Message.create(src, dst, data, now), now)
        finally:
            link.drop_rate = base_drop
            link.duplicate_rate = base_dup

    def recv(self, node: int) -> Optional[Message]:
        """Remove and return the oldest message in ``node``'s inbox, or None."""
        inbox = self._inboxes.get(node)
        if not inbox:
            return None
        return inbox.popleft()

    def peek(self, node: int) -> Optional[Message]:
        """The oldest message in ``node``'s inbox, left in place, or None."""
        inbox = self._inboxes.get(node)
        if not inbox:
            return None
        return inbox[0]

    def inbox_len(self, node: int) -> int:
        """Number of messages waiting in ``node``'s inbox."""
        return len(self._inboxes.get(node, ()))

    def tick(self, now: int) -> None:
        """Apply faults due by ``now`` and deliver every message that has arrived."""
        for instant, fault in self._fault_schedule.take_faults_until(now):
            _log.debug("applying fault %r at %d ns", fault, instant)
            self._fault_state.apply(fault)

        for (src, dst), link in self._links.items():
            for msg in link.deliver(now):
                if not self._fault_state.can_communicate(src, dst):
                    continue
                inbox = self._inboxes.get(dst)
                if inbox is not None:
                    inbox.append(msg)

    def schedule_fault(self, at: int, fault: Fault) -> None:
        """Schedule ``fault`` to take effect at instant ``at``."""
        self._fault_schedule.add(at, fault)

    def partition(self, groups: Iterable[Iterable[int]]) -> None:
        """Partition the network into ``groups`` immediately."""
        self._fault_state.apply(partition(groups))

    def heal(self) -> None:
        """Remove every partition and fault immediately."""
        self._fault_state.apply(heal())

    def can_communicate(self, a: int, b: int) -> bool:
        """True if no partition separates ``a`` from ``b``."""
        return self._fault_state.can_communicate(a, b)

    def next_event_time(self) -> Optional[int]:
        """Earliest pending delivery or scheduled fault, or None."""
        candidates = [
            t for t in (link.next_delivery_time() for link in self._links.values()) if t is not None
        ]
        next_fault = self._fault_schedule.next_fault_time(0)
        if next_fault is not None:
            candidates.append(next_fault)
        return min(candidates, default=None)

    def in_flight_count(self) -> int:
        """Total number of messages on all links."""
        return sum(link.in_flight_count() for link in self._links.values())

    def reset(self) -> None:
        """Empty links and inboxes and drop all faults, active and scheduled."""
        for link in self._links.values():
            link.reset()
        for inbox in self._inboxes.values():
            inbox.clear()
        self._fault_state = FaultState()
        self._fault_schedule = FaultSchedule()
        self._link_counter = 0

    def __repr__(self) -> str:
        return (
            f"NetworkSim(seed={self.seed}, links={len(self._links)}, "
            f"in_flight={self.in_flight_count()})"
        )