"""
Statistics Reporter

This module renders the one-line running status and the final summary
printed when a probe session ends.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, TextIO
import sys

from .tracker import TrackerState


def loss_percent(lost: int, received: int) -> float:
    """Loss as a percentage of received packets (0 when nothing arrived)."""
    if received == 0:
        return 0.0
    return 100.0 * lost / received


@dataclass(frozen=True)
class StatsSnapshot:
    """
    Consistent copy of both views of the exchange.

    Attributes:
        local_seq: Our current outbound sequence number
        local: Our tracker's view of the peer's stream
        remote_seq: Peer's sequence number from its last packet
        remote_received, remote_lost, remote_reordered: Peer's view of
            our stream, as it last reported
    """
    local_seq: int = 0
    local: TrackerState = field(default_factory=TrackerState)
    remote_seq: int = 0
    remote_received: int = 0
    remote_lost: int = 0
    remote_reordered: int = 0


class StatsReporter:
    """
    Status output for a probe session.

    The reactor marks the reporter dirty after every counter change and
    calls flush() once the sink is writable. A sink that would block keeps
    the report pending for the next opportunity.

    Attributes:
        stream: Output sink (stdout if None)
        dirty: Whether a new status line is waiting to be written
        reports_written: Number of status lines emitted
    """

    STATUS_FORMAT = ("Local s: {s.local_seq} r: {s.local.received} "
                     "l: {s.local.lost} o: {s.local.reordered}    "
                     "Remote s: {s.remote_seq} r: {s.remote_received} "
                     "l: {s.remote_lost} o: {s.remote_reordered}\r")

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else sys.stdout
        self.dirty = False
        self.reports_written = 0

    def fileno(self) -> Optional[int]:
        """Descriptor to wait on for writability, or None if unavailable."""
        try:
            return self.stream.fileno()
        except (AttributeError, OSError, ValueError):
            return None

    def mark_dirty(self):
        self.dirty = True

    def banner(self):
        """Announce the start of a run."""
        self.stream.write("Processing the test. Press ^C to stop...\n\n")
        self.stream.flush()

    def status_line(self, snapshot: StatsSnapshot) -> str:
        return self.STATUS_FORMAT.format(s=snapshot)

    def flush(self, snapshot: StatsSnapshot) -> bool:
        """
        Write the status line if one is pending.

        Args:
            snapshot: Counters to render

        Returns:
            True if a line was written, False if nothing was pending or
            the sink was not ready
        """
        if not self.dirty:
            return False

        try:
            self.stream.write(self.status_line(snapshot))
            self.stream.flush()
        except BlockingIOError:
            return False

        self.dirty = False
        self.reports_written += 1
        return True

    def final_summary(
        self,
        snapshot: StatsSnapshot,
        metrics: Optional[Dict] = None
    ) -> str:
        """
        Render the end-of-run report.

        Args:
            snapshot: Final counters
            metrics: Optional CadenceMetrics.get_summary() output

        Returns:
            Multi-line summary text
        """
        local = snapshot.local
        lines = [
            "",
            "",
            "Local statistics:",
            f"   Sent: {snapshot.local_seq}, Received: {local.received}, "
            f"Lost: {local.lost}, Reordered: {local.reordered}, "
            f"Loss %: {loss_percent(local.lost, local.received):g}%",
            "",
            "Remote statistics:",
            f"   Sent: {snapshot.remote_seq}, Received: {snapshot.remote_received}, "
            f"Lost: {snapshot.remote_lost}, Reordered: {snapshot.remote_reordered}, "
            f"Loss %: {loss_percent(snapshot.remote_lost, snapshot.remote_received):g}%",
        ]

        if metrics is not None:
            cadence = metrics['cadence']
            if cadence['intervals'] > 0:
                lines += [
                    "",
                    "Send cadence:",
                    f"   Intervals: {cadence['intervals']}, "
                    f"Mean: {cadence['mean'] * 1000:.3f} ms, "
                    f"Jitter: {cadence['jitter'] * 1000:.3f} ms, "
                    f"Rate: {cadence['rate']:.2f} pkt/s",
                ]
            if metrics['checksum_failures'] or metrics['malformed_packets']:
                lines += [
                    "",
                    "Dropped datagrams:",
                    f"   Bad checksum: {metrics['checksum_failures']}, "
                    f"Malformed: {metrics['malformed_packets']}",
                ]

        lines.append("")
        return "\n".join(lines) + "\n"

    def write_final(
        self,
        snapshot: StatsSnapshot,
        metrics: Optional[Dict] = None
    ):
        """Emit the final summary, blocking if necessary."""
        self.stream.write(self.final_summary(snapshot, metrics))
        self.stream.flush()
