"""
Integration tests for the probe session over loopback UDP.
"""

import io
import signal
import socket
import threading
import time
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import main
from config import PROBE_HEADER_SIZE
from session import ProbeSession, SessionConfig
from src.probe.errors import StartupFailure
from src.probe.packet import ProbePacket
from src.utils.logger import ProbeLogger, LogLevel


def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


def quiet_logger():
    return ProbeLogger(level=LogLevel.CRITICAL, stream=io.StringIO())


def make_session(port, listen_port, **kwargs):
    config = SessionConfig(host='127.0.0.1', port=port, listen_port=listen_port,
                           bind_address='127.0.0.1', **kwargs)
    return ProbeSession(config, stream=io.StringIO(), logger=quiet_logger())


class TestSessionConfig:
    """Tests for SessionConfig validation."""

    def test_listen_port_defaults_to_port(self):
        config = SessionConfig(host='example.org', port=31000)
        assert config.listen_port == 31000

        config = SessionConfig(host='example.org', port=31000, listen_port=0)
        assert config.listen_port == 31000

    def test_packet_size_floor(self):
        config = SessionConfig(host='example.org', packet_size=10)
        assert config.packet_size == PROBE_HEADER_SIZE

    def test_defaults(self):
        config = SessionConfig(host='example.org')

        assert config.port == 30000
        assert config.packet_size == 1000
        assert config.rate == 10
        assert config.get_period() == pytest.approx(0.1)
        assert not config.verify_checksum

    @pytest.mark.parametrize("kwargs", [
        {'rate': 0},
        {'port': 70000},
        {'listen_port': -5},
        {'duration': -1.0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            SessionConfig(host='example.org', **kwargs)

    def test_host_required(self):
        with pytest.raises(ValueError):
            SessionConfig(host='')


class TestProbeSession:
    """Tests for the reactor against a real peer on loopback."""

    def test_two_peers_exchange(self):
        port_a, port_b = free_port(), free_port()
        a = make_session(port_b, port_a, rate=100, packet_size=200, duration=1.0)
        b = make_session(port_a, port_b, rate=100, packet_size=200, duration=1.0)
        a.open()
        b.open()

        results = {}
        threads = [
            threading.Thread(target=lambda: results.__setitem__('a', a.run())),
            threading.Thread(target=lambda: results.__setitem__('b', b.run())),
        ]
        try:
            for t in threads:
                t.start()
            for t in threads:
                t.join(timeout=5)
        finally:
            a.close()
            b.close()

        snap_a, snap_b = results['a'], results['b']
        assert snap_a.local.received > 10
        assert snap_b.local.received > 10
        assert snap_a.local.lost == 0
        assert snap_a.local.reordered == 0

        # Each side reports back what it saw of the other's stream
        assert snap_a.remote_received > 0
        assert snap_a.remote_seq > 0
        assert snap_a.local_seq >= snap_b.local.max_seq

        stats = a.metrics.get_cadence_statistics()
        assert stats['intervals'] > 10
        assert stats['mean'] == pytest.approx(0.01, rel=0.5)

    def test_handshake_keeps_seq_zero(self):
        """Without a peer, every probe carries sequence number 0."""
        sink_port = free_port()
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sink:
            sink.bind(('127.0.0.1', sink_port))
            sink.settimeout(2)

            session = make_session(sink_port, free_port(), rate=50, duration=0.3)
            with session:
                session.run()

            data, _ = sink.recvfrom(65535)
            packet, valid = ProbePacket.decode(data)

        assert valid
        assert packet.seq == 0
        assert len(data) == 1000
        assert session.snapshot().local_seq == 0

    def test_first_send_is_immediate(self):
        """At 1 pkt/s a 0.2 s run still emits the opening packet."""
        sink_port = free_port()
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sink:
            sink.bind(('127.0.0.1', sink_port))
            sink.settimeout(2)

            session = make_session(sink_port, free_port(), rate=1, duration=0.2)
            with session:
                session.run()

            data, _ = sink.recvfrom(65535)

        assert ProbePacket.decode(data)[0].seq == 0
        assert session.metrics.packets_sent == 1

    def test_status_lines_written(self):
        port_a, port_b = free_port(), free_port()
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as peer:
            peer.bind(('127.0.0.1', port_b))
            session = make_session(port_b, port_a, rate=50, duration=0.3)
            with session:
                session.run()

        assert session.reporter.reports_written > 0
        assert "Local s: 0" in session.reporter.stream.getvalue()

    def test_stop_is_prompt(self):
        session = make_session(free_port(), free_port(), rate=1)
        session.open()
        thread = threading.Thread(target=session.run)
        thread.start()
        time.sleep(0.2)

        started = time.monotonic()
        session.stop()
        thread.join(timeout=2)
        session.close()

        assert not thread.is_alive()
        assert time.monotonic() - started < 0.5

    def _inject(self, datagrams, **kwargs):
        listen = free_port()
        session = make_session(free_port(), listen, rate=20, duration=0.4, **kwargs)
        session.open()
        thread = threading.Thread(target=session.run)
        thread.start()
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sender:
            for data in datagrams:
                sender.sendto(data, ('127.0.0.1', listen))
        thread.join(timeout=3)
        session.close()
        return session

    def test_bad_checksum_dropped_when_verifying(self):
        good = ProbePacket(seq=1, size=100).encode()
        bad = bytearray(ProbePacket(seq=2, size=100).encode())
        bad[20] ^= 0xFF

        session = self._inject([good, bytes(bad)], verify_checksum=True)

        assert session.tracker.received == 1
        assert session.metrics.checksum_failures == 1

    def test_bad_checksum_counted_by_default(self):
        bad = bytearray(ProbePacket(seq=2, size=100).encode())
        bad[20] ^= 0xFF

        session = self._inject([bytes(bad)])

        assert session.tracker.received == 1
        assert session.metrics.checksum_failures == 0

    def test_short_datagram_ignored(self):
        session = self._inject([b'short', ProbePacket(seq=3).encode()])

        assert session.metrics.malformed_packets == 1
        assert session.tracker.snapshot().max_seq == 3
        assert session.tracker.lost == 2

    def test_duplicate_of_max_keeps_running(self):
        """Repeated copies push the loss estimate below zero without stopping the run."""
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as peer:
            peer.bind(('127.0.0.1', 0))
            peer.setblocking(False)
            listen = free_port()
            session = make_session(peer.getsockname()[1], listen, rate=20, duration=0.4)
            session.open()
            result = []
            thread = threading.Thread(target=lambda: result.append(session.run()))
            thread.start()

            dup = ProbePacket(seq=1, size=100).encode()
            peer.sendto(dup, ('127.0.0.1', listen))
            peer.sendto(dup, ('127.0.0.1', listen))
            thread.join(timeout=3)
            session.close()

            sent = []
            while True:
                try:
                    data, _ = peer.recvfrom(65535)
                except BlockingIOError:
                    break
                sent.append(ProbePacket.decode(data)[0])

        assert not thread.is_alive()
        assert len(result) == 1
        assert result[0].local.lost == -1
        assert session.tracker.received == 2
        assert sent[-1].seq > 0
        assert sent[-1].lost == 2 ** 64 - 1

    def test_wrapped_remote_loss_reads_negative(self):
        report = ProbePacket(seq=4, size=100, received=5, lost=2 ** 64 - 1).encode()
        session = self._inject([report])

        snapshot = session.snapshot()
        assert snapshot.remote_lost == -1
        assert snapshot.remote_received == 5

    def test_bind_failure(self):
        port = free_port()
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as taken:
            taken.bind(('127.0.0.1', port))
            session = make_session(free_port(), port)
            with pytest.raises(StartupFailure):
                session.open()

    def test_resolution_failure(self):
        config = SessionConfig(host='no-such-host.invalid')
        session = ProbeSession(config, stream=io.StringIO(), logger=quiet_logger())
        with pytest.raises(StartupFailure):
            session.open()


class TestMain:
    """Tests for the command line entry point."""

    def test_run_with_duration(self, capsys):
        port = free_port()
        code = main.main(['--duration', '0.3', '-r', '20', '-p', str(free_port()),
                          '-l', str(port), '127.0.0.1'])

        out = capsys.readouterr().out
        assert code == 0
        assert "Processing the test" in out
        assert "Local statistics:" in out
        assert "Remote statistics:" in out

    def test_interrupt_handler_installed_before_open(self, monkeypatch, capsys):
        seen = []
        original_open = ProbeSession.open

        def recording_open(self):
            seen.append(signal.getsignal(signal.SIGINT))
            original_open(self)

        monkeypatch.setattr(ProbeSession, 'open', recording_open)
        before = signal.getsignal(signal.SIGINT)
        code = main.main(['--duration', '0.1', '-p', str(free_port()),
                          '-l', str(free_port()), '127.0.0.1'])

        assert code == 0
        assert seen and seen[0] is not before
        assert signal.getsignal(signal.SIGINT) is before

    def test_bad_config_exits_nonzero(self, capsys):
        assert main.main(['-r', '0', '127.0.0.1']) == 1

    def test_startup_failure_exits_nonzero(self, capsys):
        assert main.main(['--duration', '0.1', 'no-such-host.invalid']) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
