# errors.py — Error taxonomy for the task board API
# Each kind is an HTTPException so routers and services can raise it directly;
# main.py renders them with a stable error code and the request id.

from typing import Dict, Optional

from fastapi import HTTPException, status

NOT_FOUND_OR_DENIED = "Not found or access denied"


class TaskBoardError(HTTPException):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "TB-SYS-000"
    default_detail: str = "Internal server error"

    def __init__(self, detail: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )


class Unauthorized(TaskBoardError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "TB-AUTH-001"
    default_detail = "Not authenticated"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(TaskBoardError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "TB-AUTH-002"
    default_detail = "Insufficient permissions"


class NotFound(TaskBoardError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "TB-RES-001"
    default_detail = NOT_FOUND_OR_DENIED


class Conflict(TaskBoardError):
    status_code = status.HTTP_409_CONFLICT
    code = "TB-RES-002"
    default_detail = "Resource already exists"


class InvalidOperation(TaskBoardError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "TB-BIZ-001"
    default_detail = "Operation not allowed"


class Transient(TaskBoardError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "TB-SYS-001"
    default_detail = "Storage temporarily unavailable, retry shortly"

    def __init__(self, detail: Optional[str] = None, retry_after: int = 2):
        super().__init__(detail, headers={"Retry-After": str(retry_after)})
