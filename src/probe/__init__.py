"""
Probe package - Sequence probe protocol components.

Contains implementations for:
- Packet structure, checksum and encoding
- Loss and reordering tracking
- Jitter-compensated send scheduling
- Status reporting
"""

from .errors import (
    ProbeError, StartupFailure, ReactorFailure, TransportAnomaly, MalformedPacket
)
from .packet import ProbePacket, checksum
from .tracker import TrackerState, SequenceTracker
from .scheduler import SendScheduler, next_wait, period_for_rate
from .reporter import StatsReporter, StatsSnapshot, loss_percent

__all__ = [
    'ProbeError',
    'StartupFailure',
    'ReactorFailure',
    'TransportAnomaly',
    'MalformedPacket',
    'ProbePacket',
    'checksum',
    'TrackerState',
    'SequenceTracker',
    'SendScheduler',
    'next_wait',
    'period_for_rate',
    'StatsReporter',
    'StatsSnapshot',
    'loss_percent'
]
