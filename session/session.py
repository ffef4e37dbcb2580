"""
Probe Session - Single-Threaded Reactor

This module implements the probe engine: one UDP socket, one status sink
and a send deadline multiplexed through select(), keeping the send cadence
at the configured rate while inbound probes are tracked as they arrive.
"""

from typing import Optional, TextIO
from dataclasses import dataclass
import select
import socket
import threading
import time
import sys
import os

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import (
    DEFAULT_PORT, DEFAULT_PACKET_SIZE, DEFAULT_RATE, BIND_ADDRESS,
    MAX_DATAGRAM_SIZE, PROBE_HEADER_SIZE
)
from src.probe.errors import (
    StartupFailure, ReactorFailure, TransportAnomaly, MalformedPacket
)
from src.probe.packet import ProbePacket, to_wire_counter, from_wire_counter
from src.probe.tracker import SequenceTracker
from src.probe.scheduler import SendScheduler, period_for_rate
from src.probe.reporter import StatsReporter, StatsSnapshot
from src.utils.metrics import CadenceMetrics
from src.utils.logger import ProbeLogger, LogLevel


@dataclass
class SessionConfig:
    """Configuration for a probe session."""
    host: str
    port: int = DEFAULT_PORT
    listen_port: Optional[int] = None  # None or 0: same as port
    packet_size: int = DEFAULT_PACKET_SIZE
    rate: int = DEFAULT_RATE

    # Drop inbound probes whose checksum disagrees
    verify_checksum: bool = False

    # Stop by itself after this many seconds (None: run until stopped)
    duration: Optional[float] = None

    bind_address: str = BIND_ADDRESS
    log_level: int = LogLevel.WARNING

    def __post_init__(self):
        """Validate and normalize the configuration."""
        if not self.host:
            raise ValueError("Target host is required")
        if not 0 < self.port < 65536:
            raise ValueError(f"Port out of range: {self.port}")
        if not self.listen_port:
            self.listen_port = self.port
        if not 0 < self.listen_port < 65536:
            raise ValueError(f"Listen port out of range: {self.listen_port}")
        if self.rate <= 0:
            raise ValueError("Rate must be positive")
        if self.duration is not None and self.duration < 0:
            raise ValueError("Duration must be non-negative")
        # Never smaller than the header
        self.packet_size = max(self.packet_size, PROBE_HEADER_SIZE)

    def get_period(self) -> float:
        """Nominal send period in seconds."""
        return period_for_rate(self.rate)


class ProbeSession:
    """
    Probe engine for one peer.

    Owns the outbound packet template, the last decoded peer packet, the
    inbound tracker and the send scheduler. All of them are mutated only
    from the thread running run(); other contexts go through snapshot()
    and stop().
    """

    def __init__(
        self,
        config: SessionConfig,
        stream: Optional[TextIO] = None,
        logger: Optional[ProbeLogger] = None
    ):
        """Initialize session."""
        self.config = config

        self.logger = logger or ProbeLogger(name="Probe", level=config.log_level)
        self.reporter = StatsReporter(stream)

        period = config.get_period()
        self.metrics = CadenceMetrics(period)
        self.scheduler = SendScheduler(period, self.metrics)
        self.tracker = SequenceTracker()

        self.outbound = ProbePacket(size=config.packet_size)
        self.inbound = ProbePacket()

        self._lock = threading.Lock()
        self._stop = threading.Event()

        self.sock: Optional[socket.socket] = None
        self.destination = None
        self._wake_r: Optional[socket.socket] = None
        self._wake_w: Optional[socket.socket] = None

    # ------------------------------------------------------------------
    # Setup / teardown
    # ------------------------------------------------------------------

    def _resolve(self):
        try:
            infos = socket.getaddrinfo(
                self.config.host, self.config.port,
                socket.AF_INET, socket.SOCK_DGRAM
            )
        except socket.gaierror as exc:
            raise StartupFailure(f"Host lookup failed: {self.config.host}: {exc}") from exc
        return infos[0][4]

    def open(self):
        """
        Resolve the peer and bind the probe socket.

        Raises:
            StartupFailure: on resolution, socket or bind errors
        """
        if self.sock is not None:
            return

        self.destination = self._resolve()

        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        except OSError as exc:
            raise StartupFailure(f"Can't create socket: {exc}") from exc

        try:
            sock.bind((self.config.bind_address, self.config.listen_port))
        except OSError as exc:
            sock.close()
            raise StartupFailure(
                f"Can't bind socket to port {self.config.listen_port}: {exc}"
            ) from exc

        sock.setblocking(False)
        self.sock = sock

        self._wake_r, self._wake_w = socket.socketpair()
        self._wake_r.setblocking(False)
        self._wake_w.setblocking(False)

    def close(self):
        """Release the socket and the wakeup channel."""
        for s in (self.sock, self._wake_r, self._wake_w):
            if s is not None:
                s.close()
        self.sock = self._wake_r = self._wake_w = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc_info):
        self.close()

    # ------------------------------------------------------------------
    # Cross-context access
    # ------------------------------------------------------------------

    def stop(self):
        """
        Request termination; the reactor returns on its next wake, which
        this call forces immediately. Safe from signal handlers and other
        threads.
        """
        self._stop.set()
        if self._wake_w is not None:
            try:
                self._wake_w.send(b'\0')
            except OSError:
                # Wakeup channel full or closed: the flag alone still stops the loop
                pass

    def snapshot(self) -> StatsSnapshot:
        """Consistent copy of both views of the exchange."""
        with self._lock:
            return StatsSnapshot(
                local_seq=self.outbound.seq,
                local=self.tracker.snapshot(),
                remote_seq=self.inbound.seq,
                remote_received=self.inbound.received,
                remote_lost=from_wire_counter(self.inbound.lost),
                remote_reordered=self.inbound.reordered
            )

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _handle_receive(self):
        """Read one datagram and feed it to the tracker."""
        try:
            data, _ = self.sock.recvfrom(MAX_DATAGRAM_SIZE)
        except (BlockingIOError, InterruptedError):
            return
        except ConnectionRefusedError:
            self.logger.peer_unreachable()
            return
        except OSError as exc:
            raise TransportAnomaly(f"Receive failed: {exc}") from exc

        try:
            packet, valid = ProbePacket.decode(data)
        except MalformedPacket:
            self.metrics.record_malformed()
            self.logger.malformed(len(data))
            return

        self.logger.probe_received(packet.seq, valid)
        if not valid and self.config.verify_checksum:
            self.metrics.record_checksum_failure()
            self.logger.checksum_mismatch(packet.seq, packet.chk_sum, packet.checksum())
            return

        with self._lock:
            self.inbound = packet
            self.tracker.observe(packet.seq)

        self.metrics.record_receive()
        self.scheduler.peer_seen()
        self.reporter.mark_dirty()

    def _handle_send(self, now: float):
        """Stamp, checksum and transmit the outbound probe."""
        with self._lock:
            if not self.scheduler.handshake:
                self.outbound.seq += 1
            state = self.tracker.snapshot()
            self.outbound.size = self.config.packet_size
            self.outbound.received = state.received
            self.outbound.lost = to_wire_counter(state.lost)
            self.outbound.reordered = state.reordered
            self.outbound.stamp()
            data = self.outbound.encode(self.config.packet_size)
            seq = self.outbound.seq

        try:
            self.sock.sendto(data, self.destination)
        except (BlockingIOError, InterruptedError):
            self.logger.debug(f"Send of probe {seq} would block, dropped", "TX")
        except ConnectionRefusedError:
            self.logger.peer_unreachable()
        except OSError as exc:
            raise TransportAnomaly(f"Send failed: {exc}") from exc
        else:
            self.logger.probe_sent(seq, len(data))

        self.scheduler.mark_sent(now)
        self.reporter.mark_dirty()

    def _drain_wakeup(self):
        try:
            while self._wake_r.recv(64):
                pass
        except (BlockingIOError, InterruptedError):
            pass

    # ------------------------------------------------------------------
    # Reactor
    # ------------------------------------------------------------------

    def run(self) -> StatsSnapshot:
        """
        Run the probe until stop() is called or the duration elapses.

        Returns:
            Final snapshot of the counters

        Raises:
            StartupFailure: if the socket can't be set up
            ReactorFailure: if select() fails
            TransportAnomaly: on socket errors
        """
        self.open()

        sink = self.reporter.fileno()
        now = time.monotonic()
        wait = self.scheduler.start(now)
        deadline = None
        if self.config.duration is not None:
            deadline = now + self.config.duration

        self.logger.session_start({
            'peer': f"{self.destination[0]}:{self.destination[1]}",
            'listen': self.config.listen_port,
            'rate': self.config.rate,
            'size': self.config.packet_size
        })

        reason = "stopped"
        while not self._stop.is_set():
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    reason = "duration elapsed"
                    break
                wait = min(wait, remaining)

            rlist = [self.sock, self._wake_r]
            wlist = []
            if self.scheduler.send_due:
                wlist.append(self.sock)
            if self.reporter.dirty:
                if sink is None:
                    wait = 0.0
                else:
                    wlist.append(sink)

            try:
                readable, writable, exceptional = select.select(
                    rlist, wlist, [self.sock], wait
                )
            except (OSError, ValueError) as exc:
                raise ReactorFailure(f"Error in select(): {exc}") from exc

            if self._wake_r in readable:
                self._drain_wakeup()
            if self._stop.is_set():
                break

            if self.sock in exceptional:
                raise TransportAnomaly("Socket exception")

            if self.reporter.dirty and (sink is None or sink in writable):
                self.reporter.flush(self.snapshot())

            if self.sock in readable:
                self._handle_receive()

            if self.sock in writable and self.scheduler.send_due:
                self._handle_send(time.monotonic())

            wait = self.scheduler.wait(time.monotonic())
            self.logger.wake(self.sock in readable, self.sock in writable,
                             sink in writable, wait)

        self.logger.session_end(reason)
        return self.snapshot()
