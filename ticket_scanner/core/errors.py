"""
Error taxonomy for the ticket scanning service.

Every error carries the HTTP status it maps to, so the API layer can turn
any of them into a `{"error": message}` response with a single handler.
"""


class TicketScannerError(Exception):
    """Base class for all errors surfaced to API clients."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TicketScannerError):
    """Session or stored file does not exist."""

    status_code = 404


class BadRequestError(TicketScannerError):
    """Missing or invalid request input."""

    status_code = 400


class ExternalServiceError(TicketScannerError):
    """Vision model call failed or returned something unusable."""

    status_code = 500


class ConfigurationError(TicketScannerError):
    """Service is missing required configuration (e.g. API key)."""

    status_code = 500


class InternalError(TicketScannerError):
    """Filesystem, archive or image processing failure."""

    status_code = 500


class ArchiveError(InternalError):
    """A ZIP archive could not be read."""
