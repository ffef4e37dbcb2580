"""
Session package - The probe reactor.

Contains:
- Session configuration
- Single-threaded probe engine
"""

from .session import ProbeSession, SessionConfig

__all__ = [
    'ProbeSession',
    'SessionConfig'
]
