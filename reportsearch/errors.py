"""Error kinds raised by the repository, search index and pipelines.

The HTTP layer maps each kind to a status code; see ``api.py``.
"""
from __future__ import annotations


class ReportSearchError(Exception):
    """Base exception for the report search backend."""

    code = "internal_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "detail": self.message}


class NotFound(ReportSearchError):
    """A report or tag id does not exist."""

    code = "not_found"


class MalformedInput(ReportSearchError):
    """A request parameter or payload could not be interpreted."""

    code = "malformed_input"


class StoreUnavailable(ReportSearchError):
    """The relational store could not be reached."""

    code = "store_unavailable"


class StoreTimeout(StoreUnavailable):
    """A store round trip exceeded its timeout."""

    code = "store_timeout"


class IndexUnavailable(ReportSearchError):
    """The search backend was unreachable or answered with a non-2xx status."""

    code = "index_unavailable"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class IndexTimeout(IndexUnavailable):
    """A search backend call exceeded its timeout."""

    code = "index_timeout"
