# udprole/core/errors.py


class RoleError(Exception):
    """Base class for udprole errors."""


class AddressInUse(RoleError):
    """
    The well-known port is already bound by another process.

    Expected during election: drives the Client fallback in bind-race and
    the failure branch of probe-then-bind.
    """

    def __init__(self, endpoint, cause: OSError | None = None):
        super().__init__(f"Address already in use: {endpoint}")
        self.endpoint = endpoint
        self.cause = cause


class ElectionFailed(RoleError):
    """No role could be established; no session exists."""


class TransportClosed(RoleError):
    """The transport was closed. Ends a receive loop."""


class TransportNotOpen(RoleError):
    """Send attempted on a transport that is already closed."""


class UsageError(RoleError):
    """A send method was called on a session of the wrong role."""


class ConfigError(RoleError, ValueError):
    """Invalid runtime settings."""
