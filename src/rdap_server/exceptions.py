"""
Exception classes for the RDAP server.

All exceptions inherit from RDAPServerError and provide structured
error information with codes, messages, and optional details. Each
query-level error carries the HTTP status it maps to at the boundary.
"""

from typing import Optional


class RDAPServerError(Exception):
    """Base exception for all RDAP server errors."""

    http_status = 500
    title = "Internal Server Error"

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def to_rdap(self) -> dict:
        """Render the error as an RDAP error response object (RFC 9083 section 6)."""
        return {
            "errorCode": self.http_status,
            "title": self.title,
            "description": [self.message],
        }


class NotFoundError(RDAPServerError):
    """Raised when no stored record matches the query."""

    http_status = 404
    title = "Not Found"


class UnsupportedResourceError(RDAPServerError):
    """Raised when a resource type is not supported by the requested operation."""

    http_status = 501
    title = "Not Implemented"


class DecodeError(RDAPServerError):
    """Raised when a query identifier is malformed (bad IP, CIDR, ASN or handle)."""

    http_status = 400
    title = "Bad Request"


class PatternError(DecodeError):
    """Raised when a search glob pattern cannot be compiled."""

    http_status = 422
    title = "Unprocessable Entity"


class DataError(RDAPServerError):
    """Raised when a stored record fails to parse into its typed shape."""

    pass


class UpstreamError(RDAPServerError):
    """Raised when the record store fails (I/O, connection, protocol)."""

    http_status = 502
    title = "Bad Gateway"


class ConfigError(RDAPServerError):
    """Raised when the configuration is invalid or cannot be loaded."""

    pass
