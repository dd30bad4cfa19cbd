"""
Custom exceptions and error handling utilities for the SchoolData application.
"""

import re
from typing import Any, Dict, Optional


class SchoolDataException(Exception):
    """Base exception class for all SchoolData application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.error_code = error_code or self.__class__.__name__
        super().__init__(message)


class ValidationError(SchoolDataException):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message, status_code=400, details=details, error_code="VALIDATION_ERROR"
        )


class AuthenticationError(SchoolDataException):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, status_code=401, error_code="AUTHENTICATION_ERROR")


class AuthorizationError(SchoolDataException):
    """Raised when authorization fails."""

    def __init__(
        self, message: str = "Access denied", error_code: str = "AUTHORIZATION_ERROR"
    ):
        super().__init__(message, status_code=403, error_code=error_code)


class NotFoundError(SchoolDataException):
    """Raised when a resource is not found."""

    def __init__(
        self, message: str = "Resource not found", resource_type: Optional[str] = None
    ):
        details = {"resource_type": resource_type} if resource_type else {}
        super().__init__(
            message, status_code=404, details=details, error_code="NOT_FOUND_ERROR"
        )


class SchoolContextError(SchoolDataException):
    """Raised when a scoped operation runs without a resolved school and academic year.

    These are usage errors: they are surfaced immediately and never retried.
    """

    def __init__(
        self,
        message: str = "School and academic year must be selected",
        error_code: str = "SCHOOL_CONTEXT_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message, status_code=409, details=details, error_code=error_code
        )


class ReadOnlyYearError(SchoolContextError):
    """Raised when a mutation targets an archived or non-current academic year."""

    def __init__(
        self,
        message: str = "The selected academic year is read-only",
        academic_year_id: Optional[str] = None,
    ):
        details = {"academic_year_id": academic_year_id} if academic_year_id else {}
        super().__init__(message, error_code="YEAR_READ_ONLY", details=details)


class SQLError(SchoolDataException):
    """Raised when SQL query execution fails."""

    def __init__(
        self,
        message: str = "SQL query failed",
        query: Optional[str] = None,
        original_error: Optional[str] = None,
    ):
        details = {}
        if query:
            details["query"] = query
        if original_error:
            details["original_error"] = original_error
        super().__init__(
            message, status_code=500, details=details, error_code="SQL_ERROR"
        )


class ExternalServiceError(SchoolDataException):
    """Raised when external service calls fail."""

    def __init__(
        self,
        message: str = "External service error",
        service: Optional[str] = None,
        status_code: int = 502,
        error_code: str = "EXTERNAL_SERVICE_ERROR",
    ):
        details = {"service": service} if service else {}
        super().__init__(
            message,
            status_code=status_code,
            details=details,
            error_code=error_code,
        )


class TransportError(ExternalServiceError):
    """Raised when a data backend request fails or answers with a non-2xx status."""

    def __init__(
        self,
        message: str = "Request to data backend failed",
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            service="data_backend",
            status_code=status_code or 502,
            error_code="TRANSPORT_ERROR",
        )
        self.details.update(details or {})


def extract_sql_error_message(exception: Exception) -> tuple[str, str]:
    """
    Extract meaningful error message from SQLAlchemy exceptions.

    Returns:
        tuple: (user_friendly_message, technical_details)
    """
    error_str = str(exception)
    lowered = error_str.lower()

    if "column" in lowered and "does not exist" in lowered:
        match = re.search(r'column "([^"]*)" does not exist', error_str)
        if match:
            return f"Database column '{match.group(1)}' does not exist", error_str
        return "Database column does not exist", error_str

    elif "relation" in lowered and "does not exist" in lowered:
        match = re.search(r'relation "([^"]*)" does not exist', error_str)
        if match:
            return f"Database table '{match.group(1)}' does not exist", error_str
        return "Database table does not exist", error_str

    elif "syntax error" in lowered:
        return "SQL syntax error in query", error_str

    elif "duplicate key" in lowered:
        return "Duplicate record - this data already exists", error_str

    elif "foreign key constraint" in lowered:
        return "Invalid reference - related record not found", error_str

    elif "not null constraint" in lowered:
        return "Required field is missing", error_str

    return "Database query failed", error_str
