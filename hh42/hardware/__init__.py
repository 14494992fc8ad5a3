# hardware/__init__.py
"""
Hardware package for the HH42 thermometer reader.
"""

from hh42.hardware.hh42 import TemperatureReader, EventType, ReaderState

__all__ = ['TemperatureReader', 'EventType', 'ReaderState']
