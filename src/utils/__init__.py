"""
Utilities package - Helper functions and classes.

Contains implementations for:
- Send cadence metrics
- Logging utilities
"""

from .metrics import CadenceMetrics
from .logger import ProbeLogger, LogLevel

__all__ = [
    'CadenceMetrics',
    'ProbeLogger',
    'LogLevel'
]
