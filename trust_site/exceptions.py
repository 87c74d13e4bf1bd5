"""
Error taxonomy shared by the services and mapped to HTTP responses in main.
"""
from fastapi import status


class TrustSiteError(Exception):
    """Base class for errors raised by the gallery, card and contact services."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    title = "Internal error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgument(TrustSiteError):
    """A required field is empty or missing."""

    status_code = status.HTTP_400_BAD_REQUEST
    title = "Invalid argument"


class NotFound(TrustSiteError):
    """The referenced collection, item or card does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    title = "Not found"


class InvalidOperation(TrustSiteError):
    """The operation is not allowed on the target, e.g. the reserved hero slider."""

    status_code = status.HTTP_409_CONFLICT
    title = "Invalid operation"


class UpstreamUnavailable(TrustSiteError):
    """The media host or mail server is unreachable or returned malformed data."""

    status_code = status.HTTP_502_BAD_GATEWAY
    title = "Upstream unavailable"
