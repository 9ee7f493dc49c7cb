from typing import Dict, List, Optional

from fastapi import HTTPException, status


class ClinicError(HTTPException):
    """Base for every error the API translates into a structured response."""
    error = "Error"

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(ClinicError):
    error = "Validation Error"

    def __init__(self, errors: List[Dict[str, str]], detail: str = "Validation errors"):
        super().__init__(detail, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}])


class AuthenticationError(ClinicError):
    error = "Unauthorized"

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            detail,
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InvalidCredentials(AuthenticationError):
    def __init__(self, detail: str = "Invalid credentials"):
        super().__init__(detail)


class AccountLocked(AuthenticationError):
    def __init__(self, detail: str = "Account is temporarily locked due to too many failed login attempts"):
        super().__init__(detail)


class AccountInactive(AuthenticationError):
    def __init__(self, detail: str = "Account is not active. Please contact administrator."):
        super().__init__(detail)


class Unauthorized(AuthenticationError):
    pass


class AuthorizationError(ClinicError):
    error = "Forbidden"

    def __init__(self, detail: str = "Not enough permissions"):
        super().__init__(detail, status_code=status.HTTP_403_FORBIDDEN)


class NotFound(ClinicError):
    error = "Not Found"

    def __init__(self, detail: str = "The requested resource was not found"):
        super().__init__(detail, status_code=status.HTTP_404_NOT_FOUND)


class DuplicateEntity(ClinicError):
    error = "Duplicate Entity"

    def __init__(self, detail: str):
        super().__init__(detail, status_code=status.HTTP_409_CONFLICT)


class SlotUnavailable(ClinicError):
    error = "Slot Unavailable"

    def __init__(self, detail: str = "Appointment time slot is already booked"):
        super().__init__(detail, status_code=status.HTTP_409_CONFLICT)


class InvalidStateTransition(ClinicError):
    error = "Invalid State Transition"

    def __init__(self, detail: str):
        super().__init__(detail, status_code=status.HTTP_409_CONFLICT)


class RateLimited(ClinicError):
    error = "Too Many Requests"

    def __init__(self, detail: str = "Too many requests. Please try again later."):
        super().__init__(detail, status_code=status.HTTP_429_TOO_MANY_REQUESTS)


class DependencyFailure(ClinicError):
    error = "Service Unavailable"

    def __init__(self, detail: str = "A backing service is unavailable. Please try again later."):
        super().__init__(detail, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
