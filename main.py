#!/usr/bin/env python3
"""
Sequence Probe - Main Entry Point

Runs one side of a bidirectional loss/reorder test. Start the same command
on both hosts, each pointing at the other, and press ^C to stop and print
the final statistics.

Usage:
    python main.py peer.example.org
    python main.py -r 50 -s 200 -p 30001 -l 30002 10.0.0.2
"""

import argparse
import os
import signal
import sys

# Ensure project root is in path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import DEFAULT_PORT, DEFAULT_PACKET_SIZE, DEFAULT_RATE


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="seqprobe",
        description="Simple test for lost or reordered packets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Default rate and size towards a peer:
    python main.py peer.example.org

  50 packets/s of 200 bytes, distinct ports:
    python main.py -r 50 -s 200 -p 30001 -l 30002 10.0.0.2

  Run for one minute and drop packets with a bad checksum:
    python main.py --duration 60 --verify-checksum 10.0.0.2
        """
    )

    parser.add_argument('host',
                       help='Peer host name or address')
    parser.add_argument('--rate', '-r', type=int, default=DEFAULT_RATE,
                       help=f'Send rate in packets per second (default: {DEFAULT_RATE})')
    parser.add_argument('--size', '-s', type=int, default=DEFAULT_PACKET_SIZE,
                       help=f'Packet size in bytes (default: {DEFAULT_PACKET_SIZE})')
    parser.add_argument('--listen-port', '-l', type=int, default=0,
                       help='Local listen port (default: same as --port)')
    parser.add_argument('--port', '-p', type=int, default=DEFAULT_PORT,
                       help=f'Destination port (default: {DEFAULT_PORT})')
    parser.add_argument('--verify-checksum', action='store_true',
                       help='Drop received packets with a bad checksum')
    parser.add_argument('--duration', type=float, default=None,
                       help='Stop after this many seconds')
    parser.add_argument('--log-file', type=str, default=None,
                       help='Also write diagnostics to this file')
    parser.add_argument('--verbose', '-v', action='store_true',
                       help='Verbose diagnostics')
    parser.add_argument('--debug', action='store_true',
                       help='Trace every reactor wake-up')

    return parser


def main(argv=None) -> int:
    from session import ProbeSession, SessionConfig
    from src.probe.errors import ProbeError
    from src.utils.logger import ProbeLogger, LogLevel

    args = build_parser().parse_args(argv)

    if args.debug:
        level = LogLevel.DEBUG
    elif args.verbose:
        level = LogLevel.INFO
    else:
        level = LogLevel.WARNING

    logger = ProbeLogger(name="seqprobe", level=level, log_file=args.log_file)

    try:
        config = SessionConfig(
            host=args.host,
            port=args.port,
            listen_port=args.listen_port,
            packet_size=args.size,
            rate=args.rate,
            verify_checksum=args.verify_checksum,
            duration=args.duration,
            log_level=level
        )
    except ValueError as exc:
        logger.critical(str(exc), "CONFIG")
        return 1

    session = ProbeSession(config, logger=logger)
    previous_handler = signal.getsignal(signal.SIGINT)
    signal.signal(signal.SIGINT, lambda signum, frame: session.stop())
    try:
        session.open()
        session.reporter.banner()
        snapshot = session.run()
    except ProbeError as exc:
        logger.critical(str(exc))
        return 1
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        session.close()
        logger.close()

    session.reporter.write_final(snapshot, session.metrics.get_summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
