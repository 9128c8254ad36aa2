from __future__ import annotations

from typing import Any, Dict, Optional


class AttendanceError(Exception):
    """Base for domain failures; carries the HTTP status and a stable kind."""

    status_code = 400
    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def extra(self) -> Dict[str, Any]:
        return {}


class InvalidToken(AttendanceError):
    status_code = 404
    kind = "invalid_token"

    def __init__(self, message: str = "QR code not recognised") -> None:
        super().__init__(message)


class TokenExpired(AttendanceError):
    status_code = 410
    kind = "token_expired"

    def __init__(self, message: str = "QR code has expired") -> None:
        super().__init__(message)


class TokenInactive(AttendanceError):
    status_code = 403
    kind = "token_inactive"

    def __init__(self, message: str = "QR code has been deactivated") -> None:
        super().__init__(message)


class IllegalTransition(AttendanceError):
    status_code = 409
    kind = "illegal_transition"

    def __init__(self, current_status: str, attempted_action: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Cannot {attempted_action.replace('_', ' ')} while status is {current_status.replace('_', ' ')}"
        )
        self.current_status = current_status
        self.attempted_action = attempted_action

    def extra(self) -> Dict[str, Any]:
        return {"current_status": self.current_status, "attempted_action": self.attempted_action}


class ValidationError(AttendanceError):
    status_code = 422
    kind = "validation_error"


class NotFound(AttendanceError):
    status_code = 404
    kind = "not_found"


class ConflictError(AttendanceError):
    status_code = 409
    kind = "conflict"
