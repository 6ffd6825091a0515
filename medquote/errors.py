"""
Structured service errors.

Every business-rule failure is raised as a ServiceError whose detail is the
same envelope the exception handlers in main.py emit:

    {"error": {"code": "NOT_FOUND", "message": "RFQ not found"}}
"""

from typing import Optional

from fastapi import HTTPException, status

UNAUTHENTICATED = "UNAUTHENTICATED"
NOT_FOUND = "NOT_FOUND"
FORBIDDEN = "FORBIDDEN"
CONFLICT = "CONFLICT"
BAD_REQUEST = "BAD_REQUEST"
EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
NOT_IMPLEMENTED = "NOT_IMPLEMENTED"

_STATUS_BY_CODE = {
    UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FORBIDDEN: status.HTTP_403_FORBIDDEN,
    CONFLICT: status.HTTP_409_CONFLICT,
    BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    EXTERNAL_SERVICE_ERROR: status.HTTP_502_BAD_GATEWAY,
    NOT_IMPLEMENTED: status.HTTP_501_NOT_IMPLEMENTED,
}


class ServiceError(HTTPException):
    def __init__(self, code: str, message: str, headers: Optional[dict] = None):
        super().__init__(
            status_code=_STATUS_BY_CODE[code],
            detail={"error": {"code": code, "message": message}},
            headers=headers,
        )
        self.code = code
        self.message = message


def unauthenticated(message: str = "User not logged in") -> ServiceError:
    return ServiceError(
        UNAUTHENTICATED, message, headers={"WWW-Authenticate": "Bearer"}
    )


def not_found(message: str) -> ServiceError:
    return ServiceError(NOT_FOUND, message)


def forbidden(message: str) -> ServiceError:
    return ServiceError(FORBIDDEN, message)


def conflict(message: str) -> ServiceError:
    return ServiceError(CONFLICT, message)


def bad_request(message: str) -> ServiceError:
    return ServiceError(BAD_REQUEST, message)


def external_service_error(message: str) -> ServiceError:
    return ServiceError(EXTERNAL_SERVICE_ERROR, message)


def not_implemented(message: str) -> ServiceError:
    return ServiceError(NOT_IMPLEMENTED, message)
