from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ImportFileError(ServiceError):
    """The uploaded file cannot be decoded as text."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class ImportConflictError(ServiceError):
    """A uniqueness violation surfaced at insert time and was not isolated."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class NotificationError(Exception):
    """Outbound mail could not be sent."""
