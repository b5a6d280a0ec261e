"""Domain errors raised by the workflow services.

Routers translate these into HTTP status codes; nothing below the router
knows about HTTP.
"""

from __future__ import annotations


class DataSubjectRequestError(Exception):
    """Base class for data subject request workflow errors."""


class InvalidRequestError(DataSubjectRequestError, ValueError):
    """Unknown request type or status."""


class DuplicateRequestError(DataSubjectRequestError):
    """The user already has an open request of the same type."""


class RequestNotFoundError(DataSubjectRequestError, LookupError):
    """No request with the given id."""
