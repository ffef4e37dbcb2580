"""
Configuration file for the sequence probe.
Contains the default probe parameters and the wire format constants.
"""

import struct

# =============================================================================
# TRANSPORT PARAMETERS
# =============================================================================

# Destination UDP port (the listen port defaults to the same value)
DEFAULT_PORT = 30000

# Local address the probe socket binds to
BIND_ADDRESS = "0.0.0.0"

# Largest datagram we ever try to read
MAX_DATAGRAM_SIZE = 65535

# =============================================================================
# PROBE PARAMETERS
# =============================================================================

# Total datagram size in bytes (header + zero padding)
DEFAULT_PACKET_SIZE = 1000

# Send rate in packets per second
DEFAULT_RATE = 10

# Microseconds per second, used for the nominal send period
USEC_PER_SEC = 1_000_000

# =============================================================================
# WIRE FORMAT
# =============================================================================

# stamp_sec(8) + stamp_usec(8) + seq(8) + size(8) + received(8) + lost(8)
# + reordered(8) + checksum(1), network byte order
PROBE_HEADER_FORMAT = '!qqQQQQQB'
PROBE_HEADER_SIZE = struct.calcsize(PROBE_HEADER_FORMAT)  # 57 bytes

# Offset of the checksum byte inside the header
CHECKSUM_OFFSET = PROBE_HEADER_SIZE - 1

# Counters are unsigned 64-bit on the wire
COUNTER_MASK = (1 << 64) - 1

# =============================================================================
# METRICS
# =============================================================================

# Number of send instants kept for cadence statistics
CADENCE_WINDOW = 4096

# =============================================================================
# LOGGING
# =============================================================================

# Minimum level printed by default (LogLevel.WARNING)
DEFAULT_LOG_LEVEL = 2

# =============================================================================
# DERIVED PARAMETERS
# =============================================================================

def calculate_period(rate):
    """Nominal send period in seconds for a rate in packets per second."""
    return (USEC_PER_SEC // rate) / USEC_PER_SEC

def calculate_bandwidth(rate, packet_size):
    """Offered load in bits per second for one direction."""
    return rate * packet_size * 8


# Print configuration summary
if __name__ == "__main__":
    print("=" * 60)
    print("SEQUENCE PROBE - CONFIGURATION")
    print("=" * 60)
    print(f"\nTransport:")
    print(f"  Default Port: {DEFAULT_PORT}")
    print(f"  Bind Address: {BIND_ADDRESS}")

    print(f"\nProbe:")
    print(f"  Packet Size: {DEFAULT_PACKET_SIZE} bytes")
    print(f"  Rate: {DEFAULT_RATE} pkt/s")
    print(f"  Period: {calculate_period(DEFAULT_RATE) * 1000:.1f} ms")
    print(f"  Offered Load: {calculate_bandwidth(DEFAULT_RATE, DEFAULT_PACKET_SIZE) / 1e3:.1f} kbps")

    print(f"\nWire Format:")
    print(f"  Header Format: {PROBE_HEADER_FORMAT}")
    print(f"  Header Size: {PROBE_HEADER_SIZE} bytes")
