from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

__all__ = [
    "BackendError",
    "ConcurrentUpdateError",
    "DuplicateApplicationError",
    "InvalidStateError",
    "NotAuthorizedError",
    "ProviderConnectionError",
    "ValidationError",
    "exception_handler",
]


class NotAuthorizedError(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not allowed to perform this action."
    default_code = "not_authorized"


class InvalidStateError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This action is not allowed in the record's current status."
    default_code = "invalid_state"


class ConcurrentUpdateError(InvalidStateError):
    default_detail = "This record was changed by someone else. Reload it and try again."
    default_code = "concurrent_update"


class ProviderConnectionError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Could not connect to the payment provider."
    default_code = "provider_connection"


class BackendError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "The request could not be completed."
    default_code = "backend_error"


class DuplicateApplicationError(BackendError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "An application for this mosque already exists."
    default_code = "duplicate_application"


def exception_handler(exc, context):
    response = drf_exception_handler(exc, context)
    view = context.get("view")
    view_name = type(view).__name__ if view is not None else "-"
    if response is None:
        logger.exception("Unhandled error in %s", view_name)
    else:
        logger.warning("%s in %s: %s", type(exc).__name__, view_name, response.data)
    return response
