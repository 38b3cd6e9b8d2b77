"""Service errors following RFC 9457 Problem Details for HTTP APIs."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://stayledger.dev/problems"


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    Every problem carries a machine-readable ``code`` and a ``retryable`` flag
    so callers can act on the error kind without parsing text.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        code: str,
        detail: Optional[str] = None,
        retryable: bool = False,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            code: Machine-readable error kind
            detail: Human-readable explanation specific to this occurrence
            retryable: Whether repeating the whole operation may succeed
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.code = code
        self.detail = detail
        self.retryable = retryable
        self.type_uri = f"{PROBLEM_BASE_URI}/{code.lower().replace('_', '-')}"
        self.instance = instance
        self.extensions = extensions or {}

        self.problem_details: Dict[str, Any] = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
            "code": self.code,
            "retryable": self.retryable,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )


class ValidationError(ProblemDetailsException):
    """Malformed or missing input; never retried, fixed by the caller."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[Dict[str, Any]] = None,
    ):
        extensions = {}
        if errors:
            extensions["errors"] = errors

        super().__init__(
            status_code=400,
            title="Validation Error",
            code="VALIDATION_ERROR",
            detail=detail,
            extensions=extensions,
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            code="NOT_FOUND",
            detail=detail,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """The request conflicts with the current state of a booking or payment."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        code: str = "CONFLICT",
        conflicting_resource: Optional[Dict[str, Any]] = None,
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title="Resource Conflict",
            code=code,
            detail=detail,
            extensions=extensions,
        )


class RoomUnavailableError(ProblemDetailsException):
    """The requested stay collides with existing bookings on the room."""

    def __init__(
        self,
        room_number: str,
        check_in: str,
        check_out: str,
        conflicts: list[Dict[str, Any]],
        detail: Optional[str] = None,
    ):
        if not detail:
            detail = (
                f"Room {room_number} is not available from {check_in} to {check_out}; "
                f"{len(conflicts)} conflicting booking(s)"
            )

        self.room_number = room_number
        self.conflicts = conflicts

        super().__init__(
            status_code=409,
            title="Room Unavailable",
            code="ROOM_UNAVAILABLE",
            detail=detail,
            extensions={
                "room_number": room_number,
                "check_in": check_in,
                "check_out": check_out,
                "conflicts": conflicts,
            },
        )


class AmountMismatchError(ProblemDetailsException):
    """A payment amount exceeds what is owed or disagrees with the booking total."""

    def __init__(
        self,
        requested_amount: str,
        allowed_amount: str,
        booking_id: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        if not detail:
            detail = f"Amount {requested_amount} exceeds the allowed amount {allowed_amount}"
            if booking_id:
                detail += f" for booking {booking_id}"

        extensions = {
            "requested_amount": requested_amount,
            "allowed_amount": allowed_amount,
        }
        if booking_id:
            extensions["booking_id"] = booking_id

        super().__init__(
            status_code=422,
            title="Amount Mismatch",
            code="AMOUNT_MISMATCH",
            detail=detail,
            extensions=extensions,
        )


class SignatureVerificationFailedError(ProblemDetailsException):
    """The payment gateway signature did not verify; the payment is rejected."""

    def __init__(self, gateway_payment_id: Optional[str], gateway_order_id: Optional[str]):
        super().__init__(
            status_code=402,
            title="Signature Verification Failed",
            code="SIGNATURE_VERIFICATION_FAILED",
            detail="The gateway signature for this payment could not be verified",
            extensions={
                "gateway_payment_id": gateway_payment_id,
                "gateway_order_id": gateway_order_id,
            },
        )


class ConcurrencyConflictError(ProblemDetailsException):
    """The transaction was aborted due to contention; retrying once is safe."""

    def __init__(
        self,
        detail: str = "The operation was aborted due to a concurrent update",
        operation: Optional[str] = None,
        resource: Optional[str] = None,
    ):
        extensions = {}
        if operation:
            extensions["operation"] = operation
        if resource:
            extensions["resource"] = resource

        super().__init__(
            status_code=409,
            title="Concurrency Conflict",
            code="CONCURRENCY_CONFLICT",
            detail=detail,
            retryable=True,
            extensions=extensions,
            headers={"Retry-After": "1"},
        )


class PersistenceFailureError(ProblemDetailsException):
    """Unexpected storage error; the enclosing transaction has been rolled back."""

    def __init__(
        self,
        detail: str = "An unexpected storage error occurred",
        operation: Optional[str] = None,
        error_id: Optional[str] = None,
    ):
        extensions = {
            "error_id": error_id or str(uuid.uuid4()),
            "timestamp": _timestamp(),
        }
        if operation:
            extensions["operation"] = operation

        super().__init__(
            status_code=500,
            title="Persistence Failure",
            code="PERSISTENCE_FAILURE",
            detail=detail,
            extensions=extensions,
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    content = dict(exc.problem_details)
    content.setdefault("instance", request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request schema errors as a Problem Details document with violations."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "invalid value"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "type": f"{PROBLEM_BASE_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "code": "VALIDATION_ERROR",
            "retryable": False,
            "detail": "The request body failed schema validation",
            "instance": request.url.path,
            "violations": violations,
        },
        media_type="application/problem+json",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    error_id = str(uuid.uuid4())

    logger.error(
        "Unhandled exception",
        extra={"error_id": error_id, "path": request.url.path, "error": str(exc)},
        exc_info=exc,
    )

    problem_details = {
        "type": f"{PROBLEM_BASE_URI}/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "code": "INTERNAL_ERROR",
        "retryable": False,
        "detail": "An unexpected error occurred while processing the request",
        "instance": str(request.url),
        "error_id": error_id,
        "timestamp": _timestamp(),
    }

    return JSONResponse(
        status_code=500,
        content=problem_details,
        media_type="application/problem+json",
    )
