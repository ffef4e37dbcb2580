"""
Jitter-Compensated Send Scheduling

This module holds the deadline arithmetic of the probe reactor: how long
to wait before the next send, given how long the last wake-up took.
"""

from typing import Optional, Tuple
import sys
sys.path.insert(0, '..')
from config import calculate_period

from src.utils.metrics import CadenceMetrics


def period_for_rate(rate: int) -> float:
    """
    Nominal send period for a rate.

    Args:
        rate: Packets per second

    Returns:
        Period in seconds
    """
    if rate <= 0:
        raise ValueError("Rate must be positive")
    return calculate_period(rate)


def next_wait(period: float, elapsed: float) -> Tuple[float, bool]:
    """
    Compute the bounded wait until the next send.

    When the last send is more than one period old, one full period is
    added back and a send becomes due. If that single correction is still
    not enough, the wait is clamped to half a period instead of trying to
    catch up.

    Args:
        period: Nominal send period in seconds
        elapsed: Time since the last send in seconds

    Returns:
        Tuple of (wait in seconds, send due)
    """
    delta = period - elapsed
    if delta >= 0:
        return delta, False

    delta += period
    if delta < 0:
        delta = period / 2
    return delta, True


class SendScheduler:
    """
    Send deadline state for one probe socket.

    Attributes:
        period: Nominal send period in seconds
        last_send: Monotonic time of the last send (or of start)
        send_due: Whether the next writable socket should get a packet
        handshake: True until the first packet from the peer arrives;
            sends made meanwhile keep sequence number 0
        metrics: Cadence statistics for sends
    """

    def __init__(self, period: float, metrics: Optional[CadenceMetrics] = None):
        self.period = period
        self.metrics = metrics or CadenceMetrics(period)

        self.last_send = 0.0
        self.send_due = False
        self.handshake = True

    def start(self, now: float) -> float:
        """
        Arm the scheduler; the first probe goes out as soon as the socket
        is writable, and later deadlines are measured from it.

        Returns:
            Initial wait in seconds
        """
        self.last_send = now
        self.send_due = True
        return self.period

    def peer_seen(self):
        """The peer is alive; subsequent sends advance the sequence."""
        self.handshake = False

    def mark_sent(self, now: float):
        """Record a completed send."""
        self.last_send = now
        self.send_due = False
        self.metrics.record_send(now)

    def wait(self, now: float) -> float:
        """
        Recompute the wait after a wake cycle, raising send_due if the
        deadline has passed.

        Args:
            now: Current monotonic time

        Returns:
            Wait in seconds, never negative
        """
        delta, due = next_wait(self.period, now - self.last_send)
        if due:
            self.send_due = True
        return delta
