"""
Unified error handling.
Maps application errors to HTTP responses with one JSON shape:
{"success": false, "error_code", "message", "details"}.

Unexpected exceptions are logged and recorded in the operation log table.
"""

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


class ErrorResponse:
    """Standard error response body"""

    def __init__(self, error_code: str, message: str,
                 details: Optional[Dict[str, Any]] = None,
                 http_status: int = 400):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }

    def to_json_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.http_status,
            content=jsonable_encoder(self.to_dict())
        )


class ErrorHandler:
    """Error code to HTTP status translation"""

    ERROR_CODE_STATUS_MAP = {
        "VALIDATION_ERROR": 400,
        "RESOURCE_NOT_FOUND": 404,
        "INVALID_TRANSITION": 409,
        "BUSINESS_RULE_VIOLATION": 422,
        "NO_ACTIVE_MENU_CYCLE": 409,
        "MULTIPLE_ACTIVE_MENU_CYCLES": 409,
        "DATA_INTEGRITY_FAULT": 500,
        "CONCURRENCY_CONFLICT": 409,
        "DATABASE_ERROR": 500,
        "INTERNAL_ERROR": 500,
    }

    @classmethod
    def handle_application_error(cls, error: BaseApplicationError) -> ErrorResponse:
        return ErrorResponse(
            error_code=error.error_code,
            message=error.message,
            details=error.details,
            http_status=cls.ERROR_CODE_STATUS_MAP.get(error.error_code, 400)
        )

    @classmethod
    def handle_http_exception(cls, error: HTTPException) -> ErrorResponse:
        return ErrorResponse(
            error_code="HTTP_ERROR",
            message=str(error.detail),
            details={"status_code": error.status_code},
            http_status=error.status_code
        )

    @classmethod
    def handle_validation_error(cls, error: RequestValidationError) -> ErrorResponse:
        return ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Request validation failed",
            details={"validation_errors": error.errors()},
            http_status=422
        )

    @classmethod
    def handle_unknown_error(cls, error: Exception, request: Optional[Request] = None) -> ErrorResponse:
        error_details = {
            "type": type(error).__name__,
            "message": str(error),
            "path": request.url.path if request is not None else None,
            "traceback": traceback.format_exception(type(error), error, error.__traceback__),
        }
        logger.error("Unhandled %s: %s", error_details["type"], error, exc_info=error)
        cls._log_system_error(request, error_details)

        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message=str(error) or "Internal server error",
            details={"error_type": type(error).__name__},
            http_status=500
        )

    @classmethod
    def _log_system_error(cls, request: Optional[Request], error_details: Dict[str, Any]):
        """Record the error in the logs table of the app's database"""
        services = getattr(request.app.state, "services", None) if request is not None else None
        if services is None:
            return
        try:
            services.operation_log.append(
                "system_error", error_details, created_at=services.clock.now()
            )
        except BaseApplicationError as e:
            logger.error("Failed to record system error in the operation log: %s", e.message)


async def application_error_handler(request: Request, exc: BaseApplicationError) -> JSONResponse:
    if exc.error_code in ("DATABASE_ERROR", "DATA_INTEGRITY_FAULT"):
        logger.error("%s on %s: %s", exc.error_code, request.url.path, exc.message)
    return ErrorHandler.handle_application_error(exc).to_json_response()


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return ErrorHandler.handle_http_exception(exc).to_json_response()


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return ErrorHandler.handle_validation_error(exc).to_json_response()


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return ErrorHandler.handle_unknown_error(exc, request).to_json_response()


def create_success_response(data: Any = None, message: str = "OK") -> Dict[str, Any]:
    """Standard success envelope"""
    response = {
        "success": True,
        "message": message
    }

    if data is not None:
        response["data"] = jsonable_encoder(data)

    return response
