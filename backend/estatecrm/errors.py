"""
EstateCRM Reminders - Domain Errors

Purpose: Typed errors raised by reminder operations. The API layer maps
them to HTTP status codes in main.py.
"""


class ReminderError(Exception):
    """Base class for reminder domain errors"""

    status_code = 500
    kind = "Reminder Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ReminderError):
    """Malformed input to a mutating operation"""

    status_code = 400
    kind = "Validation Error"


class AuthorizationError(ReminderError):
    """Caller is not the reminder's owner"""

    status_code = 403
    kind = "Authorization Error"


class NotFoundError(ReminderError):
    """Operation targets a nonexistent record"""

    status_code = 404
    kind = "Not Found"


class TransportError(ReminderError):
    """Push or broadcast delivery failed (recorded, never propagated by the dispatcher)"""

    kind = "Transport Error"

    def __init__(self, message: str, is_token_invalid: bool = False):
        super().__init__(message)
        self.is_token_invalid = is_token_invalid
