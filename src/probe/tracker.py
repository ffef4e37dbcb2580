"""
Sequence & Loss Tracker

This module estimates loss and reordering of a peer's send stream from
the sequence numbers that arrive, without any acknowledgement traffic.
"""

from dataclasses import dataclass, replace
import threading


@dataclass(frozen=True)
class TrackerState:
    """
    Counters describing one direction of the probe stream.

    Loss is never stored: it is the gap between the highest sequence
    number seen and the number of packets that actually arrived.

    Attributes:
        max_seq: Highest sequence number observed so far
        received: Packets received with a nonzero sequence number
        reordered: Arrivals whose sequence number was below max_seq
    """
    max_seq: int = 0
    received: int = 0
    reordered: int = 0

    @property
    def lost(self) -> int:
        """Estimated number of lost packets."""
        return self.max_seq - self.received

    def observe(self, seq: int) -> 'TrackerState':
        """
        Produce the state after a packet with `seq` arrives.

        Sequence number 0 is the handshake sentinel and changes nothing.
        A repeat of the current maximum is counted as received but not
        as reordered.

        Args:
            seq: Sequence number of the arrived packet

        Returns:
            Updated state (self when nothing changes)
        """
        if seq == 0:
            return self

        if seq < self.max_seq:
            return replace(self, received=self.received + 1,
                           reordered=self.reordered + 1)

        return replace(self, received=self.received + 1, max_seq=seq)


class SequenceTracker:
    """
    Owner of the live TrackerState for the inbound direction.

    The reactor swaps in a new immutable state on every arrival; any other
    context reads a consistent snapshot under the same lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state = TrackerState()

    def observe(self, seq: int) -> TrackerState:
        """Feed one arrived sequence number and return the new state."""
        with self._lock:
            self._state = self._state.observe(seq)
            return self._state

    def snapshot(self) -> TrackerState:
        """Current state; safe to call from any thread."""
        with self._lock:
            return self._state

    @property
    def received(self) -> int:
        return self.snapshot().received

    @property
    def lost(self) -> int:
        return self.snapshot().lost

    @property
    def reordered(self) -> int:
        return self.snapshot().reordered

    def __repr__(self) -> str:
        state = self.snapshot()
        return (f"SequenceTracker(max={state.max_seq}, r={state.received}, "
                f"l={state.lost}, o={state.reordered})")
