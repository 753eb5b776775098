"""
Error taxonomy and the project-wide DRF exception handler.

Every error leaves the API as ``{"success": false, "error": ..., "code": ...}``;
validation errors also carry ``details`` with the per-field messages.
"""
import logging

from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)

VALIDATION_ERROR = "VALIDATION_ERROR"
AUTH_ERROR = "AUTH_ERROR"
FORBIDDEN = "FORBIDDEN"
NOT_FOUND = "NOT_FOUND"
CONFLICT = "CONFLICT"
INVALID_STATE = "INVALID_STATE"
INTERNAL = "INTERNAL"


class BookingError(exceptions.APIException):
    """Base class for booking engine failures; ``default_code`` is the taxonomy code."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Booking operation failed."
    default_code = VALIDATION_ERROR


class InvalidInput(BookingError):
    default_detail = "Invalid data."
    default_code = VALIDATION_ERROR


class RentalForbidden(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not allowed to manage this rental."
    default_code = FORBIDDEN


class RentalNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = NOT_FOUND


class BookingConflict(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The equipment is already booked for this period."
    default_code = CONFLICT


class InvalidState(BookingError):
    default_detail = "Operation not allowed in the current state."
    default_code = INVALID_STATE


def _code_for(exc, response):
    if isinstance(exc, BookingError):
        return exc.default_code
    if isinstance(exc, exceptions.ValidationError):
        return VALIDATION_ERROR
    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        return AUTH_ERROR
    if response.status_code == status.HTTP_403_FORBIDDEN:
        return FORBIDDEN
    if response.status_code == status.HTTP_404_NOT_FOUND:
        return NOT_FOUND
    if isinstance(exc, exceptions.MethodNotAllowed):
        return "METHOD_NOT_ALLOWED"
    if isinstance(exc, exceptions.Throttled):
        return "THROTTLED"
    return "ERROR"


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.exception("Unhandled error in %s", type(view).__name__ if view else "unknown view")
        return Response(
            {"success": False, "error": "Internal server error", "code": INTERNAL},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    data = response.data
    payload = {"success": False, "code": _code_for(exc, response)}
    if isinstance(data, dict) and set(data) <= {"detail", "code", "messages"} and "detail" in data:
        payload["error"] = str(data["detail"])
    else:
        payload["error"] = "Invalid data."
        payload["details"] = data
    response.data = payload
    return response
