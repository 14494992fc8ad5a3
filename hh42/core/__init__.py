# core/__init__.py
"""
Core package for the HH42 thermometer reader.

This package provides the serial connection, the line protocol and the
poll timer used by the reader.
"""

from hh42.core.exceptions import (
    HH42Error, CommunicationError, DeviceDisconnectedError, ConfigurationError
)

from hh42.core.protocol import (
    Protocol, LineBuffer, LineKind, ParseResult, Reading,
    POLL_COMMAND, POLL_INTERVAL_SECONDS
)
from hh42.core.communication import SerialCommunication, resolve_options
from hh42.core.timer import PollTimer

__all__ = [
    # Exceptions
    'HH42Error', 'CommunicationError', 'DeviceDisconnectedError', 'ConfigurationError',
    
    # Protocol
    'Protocol', 'LineBuffer', 'LineKind', 'ParseResult', 'Reading',
    'POLL_COMMAND', 'POLL_INTERVAL_SECONDS',
    
    # Core classes
    'SerialCommunication', 'resolve_options', 'PollTimer'
]
