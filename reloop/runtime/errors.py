"""Runtime exceptions."""


class RunError(Exception):
    """Base exception for run execution and reconnection."""

    pass


class NoResponseError(RunError):
    """A step ended without a finished model response."""

    pass


class RunNotFoundError(RunError):
    """No run exists with the requested identifier."""

    pass


class InvalidOffsetError(RunError):
    """Requested replay offset lies outside the run's event log."""

    pass


class WireClosedError(RunError):
    """Write to a wire that was closed or whose reader went away."""

    pass


class RoutingError(RunError):
    """The router produced no usable decision."""

    pass
