# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error taxonomy for the case lifecycle engine.

Every error carries the HTTP status code and problem type used by the
centralized error handler when it reaches the request layer.
"""

from typing import List, Optional


class PQRSError(Exception):
    """Base class for case tracker errors."""

    status_code = 500
    error_type = "application-error"
    title = "Application Error"

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class InvalidInputError(PQRSError):
    """Missing or malformed input, or an illegal state transition."""

    status_code = 400
    error_type = "invalid-input"
    title = "Invalid Input"


class NotFoundError(PQRSError):
    """Case or history lookup miss."""

    status_code = 404
    error_type = "resource-not-found"
    title = "Resource Not Found"


class ConflictError(PQRSError):
    """Business key uniqueness violation."""

    status_code = 409
    error_type = "resource-conflict"
    title = "Resource Conflict"


class PersistenceError(PQRSError):
    """Storage layer failure."""

    status_code = 503
    error_type = "persistence-error"
    title = "Persistence Error"


class NotificationError(PQRSError):
    """Notification delivery request failed."""

    status_code = 502
    error_type = "notification-error"
    title = "Notification Error"
