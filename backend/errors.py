# errors.py
from __future__ import annotations


class AssistError(Exception):
    """Base for errors the assist backend reports to clients."""

    status_code = 500
    public_message = "Failed to provide interview assistance"

    def __init__(self, message: str = "", details: str = ""):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.public_message, "message": self.message}


class ValidationError(AssistError):
    """Required input missing or empty. Raised before any upstream call."""

    status_code = 400
    public_message = "Invalid request"


class UpstreamError(AssistError):
    """The model API failed before or during a stream."""

    status_code = 502
    public_message = "Analysis failed"


class CacheUnavailable(AssistError):
    # internal only; CacheStore turns it into a miss
    public_message = "Cache unavailable"


class TransportError(AssistError):
    """Malformed client envelope on the socket transport."""

    status_code = 400
    public_message = "Failed to process message"


class SinkClosed(Exception):
    """The downstream consumer went away mid-relay."""
