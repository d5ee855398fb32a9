from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base for errors raised by the services; carries a machine-readable code."""
    http_status: int = status.HTTP_400_BAD_REQUEST
    code: str = "BAD_REQUEST"

    def __init__(self, detail: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(status_code=self.http_status, detail=detail)
        self.details = details


class NotFoundError(DomainError):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ForbiddenError(DomainError):
    http_status = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class InvalidStateError(DomainError):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "INVALID_STATE"


class AlreadyCompletedError(InvalidStateError):
    code = "ALREADY_COMPLETED"

    def __init__(self, attempt_id: int, detail: str = "You have already completed this exam."):
        super().__init__(detail, details={"attempt_id": attempt_id})
        self.attempt_id = attempt_id


class DomainValidationError(DomainError):
    http_status = 422
    code = "VALIDATION_ERROR"


class LimitReachedError(DomainError):
    http_status = status.HTTP_403_FORBIDDEN
    code = "LIMIT_REACHED"


class ConflictError(DomainError):
    http_status = status.HTTP_409_CONFLICT
    code = "CONFLICT"
