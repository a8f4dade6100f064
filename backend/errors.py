"""Error taxonomy for the fetch/validate/cache/serve pipeline.

Each error carries the HTTP status the API layer answers with, so route
handlers can let them propagate to the registered exception handler.
"""

from __future__ import annotations

from typing import Optional


class RupError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RupError):
    """Bad KLPD/tahun input (user-correctable)."""

    status_code = 400


class UrlError(RupError):
    """Composed or configured source URL is malformed."""


class HttpError(RupError):
    """Upstream answered with a non-200 status."""

    def __init__(self, status: int, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.reason = reason


class ParseError(RupError):
    """Upstream body is not valid JSON."""


class SchemaError(RupError):
    """Upstream payload does not contain a record array."""


class NetworkError(RupError):
    """DNS failure, refused connection or timeout."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class NotLoadedError(RupError):
    status_code = 503


class LoadingError(RupError):
    # Not a failure: tells the client to retry shortly.
    status_code = 202


class SatkerNotFoundError(RupError):
    status_code = 404


def describe_http_status(status: int, klpd: str, tahun: str, url: str, reason: Optional[str] = None) -> str:
    if status == 404:
        return (
            f"No RUP data published for KLPD '{klpd}' tahun '{tahun}'. "
            "Possible causes: the data has not been published for this KLPD/year yet, "
            "or the KLPD has no RUP for that year. "
            f"URL: {url}. Try another KLPD/year or contact the data administrator."
        )
    return f"HTTP {status}: {reason or 'Unknown error'}"
