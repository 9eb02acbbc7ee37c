"""Domain errors raised by the credentialing and attendance services.

Services raise these; the global handler registered in credhub.main turns
them into JSON responses with the status code declared on each class.
Authentication failures are not listed here: require_user answers 401
before any service runs.
"""

from __future__ import annotations

import re
from datetime import datetime


class CredentialingError(Exception):
    status_code = 400
    default_message = "request could not be processed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    @property
    def code(self) -> str:
        name = type(self).__name__.removesuffix("Error")
        return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()

    def extra(self) -> dict[str, object]:
        return {}


class NotFoundError(CredentialingError):
    status_code = 404
    default_message = "not found"


class NotEnrolledError(CredentialingError):
    status_code = 403
    default_message = "not enrolled in this course"


class ForbiddenError(CredentialingError):
    status_code = 403
    default_message = "Insufficient permissions"


class AlreadyRegisteredError(CredentialingError):
    status_code = 409
    default_message = "already registered for this event"


class EventFullError(CredentialingError):
    status_code = 409
    default_message = "event is full"


class EventPastError(CredentialingError):
    status_code = 409
    default_message = "event has already taken place"


class InvalidTokenError(CredentialingError):
    status_code = 404
    default_message = "invalid check-in code for this event"


class AlreadyCheckedInError(CredentialingError):
    """Second scan of a token that was already redeemed.

    An expected outcome rather than a fault: clients show it as a notice
    with the original check-in time.
    """

    status_code = 409
    default_message = "already checked in"

    def __init__(self, attended_at: datetime | None, registration_id: object = None) -> None:
        when = attended_at.isoformat() if attended_at else "an earlier scan"
        super().__init__(f"already checked in at {when}")
        self.attended_at = attended_at
        self.registration_id = registration_id

    def extra(self) -> dict[str, object]:
        return {
            "informational": True,
            "attended_at": self.attended_at.isoformat() if self.attended_at else None,
            "registration_id": str(self.registration_id) if self.registration_id else None,
        }


class NotificationDeliveryError(CredentialingError):
    """Email (or other notification) could not be delivered.

    Always caught by the caller that triggered the notification.
    """

    status_code = 502
    default_message = "notification delivery failed"
