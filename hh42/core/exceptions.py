"""
Custom exceptions for the HH42 thermometer reader.
"""

class HH42Error(Exception):
    """Base exception for all HH42-related errors."""
    pass

class CommunicationError(HH42Error):
    """Exception raised for errors in the serial communication."""
    pass

class DeviceDisconnectedError(CommunicationError):
    """Exception raised when the serial port is not open."""
    pass

class ConfigurationError(HH42Error):
    """Exception raised for invalid port or settings configuration."""
    pass
