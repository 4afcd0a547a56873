"""
Exceptions raised while building and running pollutant-flow queries.

Validation errors (windows, regions, bands) are fatal and are raised before any
Earth Engine request is issued. MissingDataError is the only non-fatal member:
the monthly aggregator catches it per bucket and records a null sample.
"""


class PollutantFlowError(Exception):
    """Base class for every error raised by ee_pollutant_flow."""


class MissingDataError(PollutantFlowError):
    """No imagery intersects the requested window and region."""

    def __init__(self, collection, window, message=None):
        self.collection = collection
        self.window = window
        super().__init__(
            message or f"No imagery in {collection} for {window}")


class InvalidWindowError(PollutantFlowError, ValueError):
    """Date window is malformed, empty, or uses an unsupported cadence."""


class InvalidRegionError(PollutantFlowError, ValueError):
    """Region geometry is empty, unclosed, or rejected as invalid."""


class UnsupportedBandError(PollutantFlowError, ValueError):
    """Band is unknown for a collection, or reducer breaks its aggregation contract."""


class BackendUnavailableError(PollutantFlowError):
    """Earth Engine kept failing after the retry budget was spent."""

    def __init__(self, message, attempts=None, cause=None):
        self.attempts = attempts
        self.cause = cause
        super().__init__(message)
