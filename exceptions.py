# exceptions.py
"""
Application exceptions and FastAPI error handlers.

Services raise these; the handlers registered in main.py render them as
{"error_code", "message", "details"} JSON bodies.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
     """Base application exception."""

     def __init__(
          self,
          message: str,
          error_code: str,
          status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
          details: Optional[Dict[str, Any]] = None,
     ):
          self.message = message
          self.error_code = error_code
          self.status_code = status_code
          self.details = details or {}
          super().__init__(message)


class NotFoundError(AppException):
     """Raised when a referenced contract, due, payment or flat does not exist."""

     def __init__(self, resource: str, resource_id: Any = None):
          message = f"{resource} not found"
          if resource_id is not None:
               message = f"{resource} not found with ID: {resource_id}"
          super().__init__(
               message=message,
               error_code="ERR_NOT_FOUND_001",
               status_code=status.HTTP_404_NOT_FOUND,
               details={"resource": resource, "id": resource_id},
          )


class ValidationError(AppException):
     """Raised for malformed input (bad dates, day of month, amounts)."""

     def __init__(self, message: str, field: Optional[str] = None):
          self.field = field
          super().__init__(
               message=message,
               error_code="ERR_VALIDATION_001",
               status_code=status.HTTP_400_BAD_REQUEST,
               details={"field": field} if field else {},
          )


class BusinessRuleError(AppException):
     """Raised when an operation is not allowed in the current state."""

     def __init__(
          self,
          message: str,
          error_code: str = "ERR_BUSINESS_RULE_001",
          details: Optional[Dict[str, Any]] = None,
     ):
          super().__init__(
               message=message,
               error_code=error_code,
               status_code=status.HTTP_409_CONFLICT,
               details=details,
          )


class ContractOverlapError(BusinessRuleError):
     """Raised when a live contract already covers part of the requested period."""

     def __init__(self, flat_id: int, conflicting_ids: list):
          super().__init__(
               message="Contract dates overlap with existing contract",
               error_code="ERR_CONTRACT_OVERLAP",
               details={"flat_id": flat_id, "conflicting_contract_ids": conflicting_ids},
          )


class ConcurrencyConflictError(AppException):
     """Raised when a row changed underneath an optimistic-lock update."""

     def __init__(self, resource: str, resource_id: Any):
          super().__init__(
               message=f"{resource} {resource_id} was modified by another request",
               error_code="ERR_CONCURRENCY_001",
               status_code=status.HTTP_409_CONFLICT,
               details={"resource": resource, "id": resource_id},
          )


class AuthenticationError(AppException):
     """Raised for missing or invalid bearer tokens."""

     def __init__(self, message: str = "Authentication failed"):
          super().__init__(
               message=message,
               error_code="ERR_AUTH_001",
               status_code=status.HTTP_401_UNAUTHORIZED,
          )


class InsufficientPermissionsError(AppException):
     """Raised when the caller's role may not perform an action."""

     def __init__(self, message: str = "Insufficient permissions"):
          super().__init__(
               message=message,
               error_code="ERR_PERM_001",
               status_code=status.HTTP_403_FORBIDDEN,
          )


# ---------------------------------------------------------------------------
# Global exception handlers
# ---------------------------------------------------------------------------

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
     """Handler for custom application exceptions."""
     if exc.status_code >= 500:
          logger.error("Application error on %s: %s", request.url.path, exc.message)
     return JSONResponse(
          status_code=exc.status_code,
          content={
               "error_code": exc.error_code,
               "message": exc.message,
               "details": exc.details,
          },
     )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
     """Handler for FastAPI HTTPException with standardized format."""
     error_code_map = {
          400: "ERR_BAD_REQUEST",
          401: "ERR_UNAUTHORIZED",
          403: "ERR_FORBIDDEN",
          404: "ERR_NOT_FOUND",
          409: "ERR_CONFLICT",
     }
     return JSONResponse(
          status_code=exc.status_code,
          content={
               "error_code": error_code_map.get(exc.status_code, "ERR_UNKNOWN"),
               "message": exc.detail,
               "details": {},
          },
     )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
     """Handler for request body/query validation errors."""
     return JSONResponse(
          status_code=422,
          content={
               "error_code": "ERR_VALIDATION",
               "message": "Validation error",
               "details": {"errors": jsonable_encoder(exc.errors())},
          },
     )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
     """Handler for unhandled exceptions."""
     logger.exception("Unhandled exception on %s", request.url.path)
     return JSONResponse(
          status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
          content={
               "error_code": "ERR_INTERNAL_SERVER",
               "message": "An internal server error occurred",
               "details": {},
          },
     )
