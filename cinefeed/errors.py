"""Error taxonomy for catalog access and feed assembly."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for failures talking to the upstream catalog."""


class GatewayUnavailable(CatalogError):
    """Transport failure or timeout before a response was received."""


class UpstreamRejected(CatalogError):
    """The catalog answered with a non-success status code."""

    def __init__(self, status_code: int, message: str | None = None):
        self.status_code = status_code
        super().__init__(message or f"Catalog responded with HTTP {status_code}")


class MalformedResponse(CatalogError):
    """The catalog payload could not be decoded into the expected shape."""


class ConfigurationInvalid(CatalogError):
    """The catalog adapter is missing required configuration."""


class FeedUnavailable(Exception):
    """Single user-facing failure raised when a feed cannot be assembled."""

    DEFAULT_MESSAGE = "Could not load movies. Please try again."

    def __init__(self, message: str | None = None):
        self.message = message or self.DEFAULT_MESSAGE
        super().__init__(self.message)
