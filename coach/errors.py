"""Exceptions shared by the external-service clients."""


class ConfigurationError(Exception):
    """Raised when a required credential or identifier is not configured."""

    pass


class TransportError(Exception):
    """Raised when a call to an external service fails."""

    pass
