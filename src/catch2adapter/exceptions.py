# src/catch2adapter/exceptions.py

"""
Exception hierarchy for catch2adapter.

Engine components convert most of these into data (error leaves, errored
results) at their boundaries; only InvariantViolationError is meant to
propagate to the caller.
"""


class Catch2AdapterError(Exception):
    """Base class for all catch2adapter errors."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        details: Exception | None = None,
    ):
        self.path = path
        self.details = details
        full_message = message
        if path:
            full_message += f" (Path: '{path}')"
        super().__init__(full_message)
        if details and hasattr(self, "add_note"):
            self.add_note(f"Original error: {type(details).__name__}: {details}")


class ConfigurationError(Catch2AdapterError):
    """The configuration file or one of its executable entries is malformed."""

    pass


class ResolutionError(Catch2AdapterError):
    """A configured pattern could not be stat-ed or expanded."""

    pass


class EnumerationError(Catch2AdapterError):
    """An executable produced an unusable test listing."""

    pass


class ProcessSpawnError(Catch2AdapterError):
    """An executable could not be started."""

    pass


class ProtocolError(Catch2AdapterError):
    """Run output ended mid-test or could not be parsed."""

    pass


class InvariantViolationError(Catch2AdapterError):
    """An internal invariant was broken (e.g. two concurrent load passes)."""

    pass


# 🔼⚙️
