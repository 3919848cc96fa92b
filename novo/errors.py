"""Error kinds raised by the services and routes.

Each kind is an ``HTTPException`` with a fixed status code, so services can
raise them directly and FastAPI renders them without extra handlers.
"""
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status


class TrackerError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **extra: Any):
        detail: Dict[str, Any] = {"message": message}
        detail.update({key: value for key, value in extra.items() if value is not None})
        super().__init__(status_code=self.status_code, detail=detail)
        self.message = message


class Unauthorized(TrackerError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)
        self.headers = {"WWW-Authenticate": "Bearer"}


class Forbidden(TrackerError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(TrackerError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(TrackerError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, conflicts: Optional[List[Any]] = None):
        super().__init__(message, conflicts=conflicts)
        self.conflicts = conflicts or []


class ValidationFailed(TrackerError):
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, field=field)
        self.field = field


READ_ONLY_MESSAGE = "Project is read-only"
