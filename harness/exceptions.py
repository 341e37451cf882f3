"""
Error taxonomy for the harness.

Only :class:`AuthenticationError` is allowed to unwind a run. Every other
error is caught at its local boundary and turned into data: a failed
``RequestOutcome``, a failed ``QueryMeasurement``, an unavailable sample
field, or a logged persistence failure.
"""

from __future__ import annotations


class HarnessError(Exception):
    """Base class for all harness errors."""


class AuthenticationError(HarnessError):
    """The one-off login before the first load tier failed."""


class RequestError(HarnessError):
    """
    A single scenario request failed.

    Attributes:
        status_code: HTTP status of the response, or ``0`` when no response
            was received (timeout, refused connection, DNS failure).
    """

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class QueryError(HarnessError):
    """A probe iteration raised; aborts the remaining iterations of that probe."""


class SamplingError(HarnessError):
    """One snapshot of a sampling tick could not be captured."""


class PersistenceError(HarnessError):
    """A report artifact could not be written."""
