"""
Send Cadence Metrics

This module tracks how closely the probe hits its nominal send period,
plus counters for inbound datagrams that never reached the tracker.
"""

from collections import deque
from typing import Dict
import numpy as np
import sys
sys.path.insert(0, '..')
from config import CADENCE_WINDOW


class CadenceMetrics:
    """
    Collects send instants and derives interval statistics.

    Jitter is reported as the standard deviation of the intervals between
    consecutive sends; drift is the mean interval minus the nominal period.

    Attributes:
        period: Nominal send period in seconds
        send_times: Most recent send instants (monotonic seconds)
        packets_sent: Total sends recorded
        checksum_failures: Inbound packets dropped on checksum mismatch
        malformed_packets: Inbound datagrams shorter than the header
    """

    def __init__(self, period: float, window: int = CADENCE_WINDOW):
        """
        Initialize metrics collector.

        Args:
            period: Nominal send period in seconds
            window: Number of send instants to keep
        """
        self.period = period
        self.send_times: deque = deque(maxlen=window)

        self.packets_sent = 0
        self.packets_received = 0
        self.checksum_failures = 0
        self.malformed_packets = 0

    def record_send(self, time: float):
        """
        Record one outbound probe.

        Args:
            time: Monotonic send instant
        """
        self.send_times.append(time)
        self.packets_sent += 1

    def record_receive(self):
        self.packets_received += 1

    def record_checksum_failure(self):
        self.checksum_failures += 1

    def record_malformed(self):
        self.malformed_packets += 1

    def intervals(self) -> np.ndarray:
        """Intervals between consecutive recorded sends, in seconds."""
        if len(self.send_times) < 2:
            return np.zeros(0)
        return np.diff(np.fromiter(self.send_times, dtype=float))

    def get_cadence_statistics(self) -> Dict[str, float]:
        """
        Get send interval statistics.

        Returns:
            Dictionary with interval count, mean, jitter, min, max,
            achieved rate and drift against the nominal period
        """
        intervals = self.intervals()
        if intervals.size == 0:
            return {
                'intervals': 0, 'mean': 0.0, 'jitter': 0.0,
                'min': 0.0, 'max': 0.0, 'rate': 0.0, 'drift': 0.0
            }

        mean = float(np.mean(intervals))
        return {
            'intervals': int(intervals.size),
            'mean': mean,
            'jitter': float(np.std(intervals)),
            'min': float(np.min(intervals)),
            'max': float(np.max(intervals)),
            'rate': 1.0 / mean if mean > 0 else 0.0,
            'drift': mean - self.period
        }

    def get_summary(self) -> Dict:
        """
        Get comprehensive metrics summary.

        Returns:
            Dictionary with counters and cadence statistics
        """
        return {
            'period': self.period,
            'packets_sent': self.packets_sent,
            'packets_received': self.packets_received,
            'checksum_failures': self.checksum_failures,
            'malformed_packets': self.malformed_packets,
            'cadence': self.get_cadence_statistics()
        }
