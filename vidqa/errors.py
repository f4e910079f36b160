"""Error kinds raised by the vidqa core.

Each error carries the HTTP-style status the transport layer should use.
UpstreamGenerationError never leaves ConversationPipeline: it is always
replaced by fallback text.
"""

from __future__ import annotations


class VidqaError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(VidqaError):
    """Malformed or oversized input, or a missing required field."""

    status_code = 400


class ForbiddenError(VidqaError):
    status_code = 403


class NotFoundError(VidqaError):
    status_code = 404


class NotReadyError(VidqaError):
    """The video exists but its processing has not completed."""

    status_code = 409


class QuotaExceededError(VidqaError):
    status_code = 429


class UpstreamGenerationError(VidqaError):
    status_code = 502
