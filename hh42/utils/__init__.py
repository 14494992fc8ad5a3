"""
Utility package for the HH42 thermometer reader.
"""

from hh42.utils.logging import setup_logging, get_logger, PortLoggerAdapter

__all__ = ['setup_logging', 'get_logger', 'PortLoggerAdapter']
