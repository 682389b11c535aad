"""
Aeris Custom Exceptions

Simple exception hierarchy for error handling.
"""


class AerisError(Exception):
    """Base exception for Aeris."""

    pass


class ConfigurationError(AerisError):
    """Configuration is invalid."""

    pass


class HAConnectionError(AerisError):
    """Cannot connect to Home Assistant."""

    pass


class CommandError(AerisError):
    """A thermostat command could not be delivered."""

    pass
