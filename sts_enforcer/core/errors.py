"""
STS Enforcer Errors

Declined guarded operations are not errors; they return False.
Everything here is fatal for the operation that raised it and is
propagated to the caller unchanged.
"""


class StsError(Exception):
    """Base class for enforcement engine failures."""


class ConfigurationError(StsError, ValueError):
    """A host cannot become a network locator, or settings are invalid."""


class BackendUnavailable(StsError, RuntimeError):
    """The security service or a durable store cannot be reached."""
