"""Custom exception hierarchy for statshub."""

from __future__ import annotations

from typing import Any


class HubError(Exception):
    """Base exception for all statshub errors."""


class HubConfigError(HubError):
    """Invalid or missing configuration."""


class HubIngestError(HubError):
    """A snapshot submission was rejected.

    Carries everything the transport needs to build a structured
    rejection: an HTTP-ish ``status_code``, a short ``error`` label,
    human readable ``details`` and optional ``extra`` fields such as
    ``expected``/``received``.
    """

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, details: str, **extra: Any) -> None:
        self.details = details
        self.extra = extra
        super().__init__(details)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, "details": self.details, **self.extra}


class HubValidationError(HubIngestError):
    """Snapshot payload is missing a required field."""

    status_code = 400
    error = "Bad Request"


class HubAuthorizationError(HubIngestError):
    """Caller credentials are missing or rejected.

    The credential value itself is never attached to this exception.
    """

    status_code = 401
    error = "Unauthorized"


class HubForbiddenError(HubAuthorizationError):
    """Caller authenticated but is not the configured producer."""

    status_code = 403
    error = "Forbidden"


class HubInternalError(HubIngestError):
    """Unexpected failure while merging or broadcasting."""


class HubSendError(HubError):
    """Delivery to a single subscriber failed.

    Handled inside :class:`statshub.broadcast.BroadcastHub`; never reaches
    the producer or the other subscribers.
    """

    def __init__(self, message: str, *, subscriber_id: int | None = None) -> None:
        self.subscriber_id = subscriber_id
        super().__init__(message)


class HubPersistenceError(HubError):
    """Loading or writing a checkpoint failed."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)
