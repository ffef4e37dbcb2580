"""
Probe Error Types

Every failure the probe can hit is fatal; these classes only tell the
entry point what kind of diagnostic to print.
"""


class ProbeError(Exception):
    """Base class for all probe failures."""


class StartupFailure(ProbeError):
    """Address resolution, socket creation or bind failed."""


class ReactorFailure(ProbeError):
    """The readiness wait itself failed."""


class TransportAnomaly(ProbeError):
    """An exceptional condition was reported on the probe socket."""


class MalformedPacket(ProbeError, ValueError):
    """A datagram was too short to hold a probe header."""
