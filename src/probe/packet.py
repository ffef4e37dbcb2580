"""
Probe Packet Structure

This module defines the fixed on-wire header exchanged between two probes,
the additive header checksum, and serialization with zero padding.
"""

import struct
import time
from dataclasses import dataclass
from typing import Optional, Tuple
import sys
sys.path.insert(0, '..')
from config import (
    PROBE_HEADER_FORMAT, PROBE_HEADER_SIZE, CHECKSUM_OFFSET, COUNTER_MASK
)

from .errors import MalformedPacket


def checksum(header: bytes) -> int:
    """
    Additive checksum over a probe header.

    The checksum byte itself is treated as zero, so the result is the
    same whether or not the field is already filled in.

    Args:
        header: At least PROBE_HEADER_SIZE bytes

    Returns:
        Sum of the header bytes modulo 256
    """
    header = header[:PROBE_HEADER_SIZE]
    return (sum(header) - header[CHECKSUM_OFFSET]) & 0xFF


@dataclass
class ProbePacket:
    """
    Probe Packet Structure.

    Header Layout (57 bytes, network byte order):
        - Stamp seconds: 8 bytes (signed)
        - Stamp microseconds: 8 bytes (signed)
        - Sequence Number: 8 bytes
        - Size: 8 bytes (total datagram length as sent)
        - Received: 8 bytes (sender's received count of our stream)
        - Lost: 8 bytes (sender's lost count of our stream)
        - Reordered: 8 bytes (sender's reordered count of our stream)
        - Checksum: 1 byte

    Attributes:
        seq: Sequence number, 0 until the handshake is done
        size: Declared total packet size
        received: Peer-observed received count
        lost: Peer-observed lost count
        reordered: Peer-observed reordered count
        stamp_sec: Send time, whole seconds
        stamp_usec: Send time, microseconds part
        chk_sum: Checksum byte as last encoded or decoded
    """

    seq: int = 0
    size: int = PROBE_HEADER_SIZE
    received: int = 0
    lost: int = 0
    reordered: int = 0
    stamp_sec: int = 0
    stamp_usec: int = 0
    chk_sum: int = 0

    HEADER_FORMAT = PROBE_HEADER_FORMAT
    HEADER_SIZE = PROBE_HEADER_SIZE

    def __post_init__(self):
        """Validate packet after initialization."""
        if self.seq < 0:
            raise ValueError("Sequence number must be non-negative")
        if min(self.received, self.lost, self.reordered) < 0:
            raise ValueError("Counters must be non-negative")

    @property
    def send_time(self) -> float:
        """Send timestamp as float seconds."""
        return self.stamp_sec + self.stamp_usec / 1e6

    def stamp(self, now: Optional[float] = None):
        """
        Stamp the packet with a wall-clock time.

        Args:
            now: Time in seconds since the epoch (current time if None)
        """
        if now is None:
            now = time.time()
        usec = int(round(now * 1e6))
        self.stamp_sec, self.stamp_usec = divmod(usec, 1_000_000)

    def _pack_header(self, chk_sum: int) -> bytes:
        return struct.pack(
            self.HEADER_FORMAT,
            self.stamp_sec,
            self.stamp_usec,
            self.seq,
            self.size,
            self.received,
            self.lost,
            self.reordered,
            chk_sum
        )

    def checksum(self) -> int:
        """Checksum of this packet's header with the checksum field zeroed."""
        return checksum(self._pack_header(0))

    def encode(self, packet_size: Optional[int] = None) -> bytes:
        """
        Serialize the packet to bytes.

        The checksum field is zeroed, summed over, and written back
        before padding is appended.

        Args:
            packet_size: Total datagram length (defaults to self.size)

        Returns:
            Header followed by zero padding
        """
        if packet_size is None:
            packet_size = self.size
        self.chk_sum = 0
        self.chk_sum = self.checksum()

        header = self._pack_header(self.chk_sum)
        padding = max(0, packet_size - self.HEADER_SIZE)
        return header + bytes(padding)

    @classmethod
    def decode(cls, data: bytes) -> Tuple['ProbePacket', bool]:
        """
        Deserialize a datagram into a ProbePacket.

        Trailing padding is ignored. A checksum mismatch does not reject
        the packet; the caller decides what to do with it.

        Args:
            data: Received datagram

        Returns:
            Tuple of (packet, checksum valid)

        Raises:
            MalformedPacket: if the buffer is shorter than the header
        """
        if len(data) < cls.HEADER_SIZE:
            raise MalformedPacket(
                f"Datagram of {len(data)} bytes is shorter than the "
                f"{cls.HEADER_SIZE}-byte probe header"
            )

        header = bytes(data[:cls.HEADER_SIZE])
        (stamp_sec, stamp_usec, seq, size,
         received, lost, reordered, chk_sum) = struct.unpack(cls.HEADER_FORMAT, header)

        packet = cls(
            seq=seq,
            size=size,
            received=received,
            lost=lost,
            reordered=reordered,
            stamp_sec=stamp_sec,
            stamp_usec=stamp_usec,
            chk_sum=chk_sum
        )

        return packet, chk_sum == checksum(header)

    def __repr__(self) -> str:
        return (f"ProbePacket(seq={self.seq}, size={self.size}, "
                f"r={self.received}, l={self.lost}, o={self.reordered}, "
                f"chk=0x{self.chk_sum:02x})")


def encode(packet: ProbePacket, packet_size: Optional[int] = None) -> bytes:
    """Serialize a packet; see ProbePacket.encode."""
    return packet.encode(packet_size)


def decode(data: bytes) -> Tuple[ProbePacket, bool]:
    """Deserialize a datagram; see ProbePacket.decode."""
    return ProbePacket.decode(data)


def to_wire_counter(value: int) -> int:
    """
    Fold a counter into the unsigned 64-bit wire field.

    A negative loss estimate (duplicates of the current maximum, or a
    restarted peer) wraps around as an unsigned long would.
    """
    return value & COUNTER_MASK


def from_wire_counter(value: int) -> int:
    """Read an unsigned 64-bit wire counter back as a signed value."""
    if value > COUNTER_MASK >> 1:
        return value - (COUNTER_MASK + 1)
    return value
