"""
PSEPower utilities package.
Internal utilities - not part of public API.
"""

from . import formatters, pilot_data, validators

__all__ = [
    "formatters",
    "pilot_data",
    "validators",
]
