"""
HH42 digital thermometer reader.

Polls an HH42 thermometer over a serial port and delivers parsed
temperature readings to registered callbacks.
"""

from hh42.core.protocol import Reading
from hh42.hardware.hh42 import TemperatureReader, EventType, ReaderState

__version__ = "0.1.0"

__all__ = ['TemperatureReader', 'EventType', 'ReaderState', 'Reading']
