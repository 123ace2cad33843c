from typing import Optional


class AddonError(Exception):
    """Base class for errors raised by the addon."""


class ConfigError(AddonError):
    """A required setting (the TorBox API key) is missing."""


class UpstreamError(AddonError):
    """
    TorBox answered with a failure.
    Carries the HTTP status and raw body for diagnostics.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"{base} (HTTP {self.status_code}): {self.body}"
        return base


class NotFoundError(AddonError):
    """Unknown catalog, series or stream id."""


class InternalError(AddonError):
    """Unexpected failure while dispatching a request."""
