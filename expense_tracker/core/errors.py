"""Error taxonomy for the expense handlers."""

from fastapi import status


class ExpenseTrackerError(Exception):
    """Base class for all expense tracker errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ExpenseTrackerError):
    """Missing or malformed input, raised before any store access."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(ExpenseTrackerError):
    """The request carries no session identity."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class PersistenceError(ExpenseTrackerError):
    """A store operation failed. The message is safe to show to the user."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
