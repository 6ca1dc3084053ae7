from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(ServiceError):
    """Referenced record (year, fee head, student, enrollment, ...) does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ValidationError(ServiceError):
    """Input rejected before persistence (bad dates, amounts, ranges)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class ConflictError(ServiceError):
    """Duplicate name/code/number or a record still referenced elsewhere."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class PermissionDeniedError(ServiceError):
    def __init__(self, message: str = "You do not have access to this record") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)
