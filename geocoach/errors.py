"""Error taxonomy shared by the adapters, the audit pipeline, and the API."""

from typing import Optional


class GeoCoachError(Exception):
    """Base class for every error the application converts to ``{"error": ...}``."""

    http_status: int = 500


class ValidationError(GeoCoachError):
    """Missing or malformed caller input."""

    http_status = 400


class SchemaError(ValidationError):
    """Model output failed structural validation.

    Still a validation failure, but the caller did nothing wrong, so it is
    answered as a server error.
    """

    http_status = 500


class ConfigError(GeoCoachError):
    """A required secret or setting is missing."""

    http_status = 500


class UpstreamError(GeoCoachError):
    """A dependency answered with a non-2xx status or could not be reached.

    Args:
        message: Human-readable message returned to the caller.
        status_code: Upstream HTTP status, when there was a response.
        reason: Upstream status text, when there was a response.
        http_status: Status used when the error is answered over HTTP.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.http_status = http_status


class BudgetExceededError(GeoCoachError):
    """The monthly LLM spend limit has been reached."""

    http_status = 500
