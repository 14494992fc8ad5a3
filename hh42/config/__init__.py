# config/__init__.py
"""
Configuration package for the HH42 thermometer reader.
"""

from hh42.config.settings import Settings, settings

__all__ = [
    'Settings',
    'settings'
]
