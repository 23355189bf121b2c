"""
Custom exception hierarchy for type-safe error handling

Provides a structured exception hierarchy that maps to HTTP status codes
and enables consistent error responses across the application.

Usage:
    from guardforce.error_handlers.exceptions import ConflictException

    if existing.status in ('pending', 'confirmed'):
        raise ConflictException('Agent already assigned to this event')

Exception Hierarchy:
    AppException (base)
    ├── ValidationException (400)
    ├── AuthenticationException (401)
    ├── AuthorizationException (403)
    ├── ResourceNotFoundException (404)
    ├── ConflictException (409)
    ├── TransientStoreException (503)
    └── ConfigurationException (500)
"""
from typing import Dict, Any, Optional


class AppException(Exception):
    """
    Base exception for all application errors

    All custom exceptions should inherit from this class to enable
    consistent error handling and response formatting.

    Attributes:
        status_code: HTTP status code for the error
        error_type: String identifier for the error type
        message: Human-readable error message
        details: Additional context about the error
    """
    status_code = 500
    error_type = 'ApplicationError'

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to JSON-serializable dictionary

        Returns:
            Dictionary suitable for JSON response
        """
        result = {
            'success': False,
            'error': self.error_type,
            'message': self.message,
            'status_code': self.status_code
        }

        if self.details:
            result.update(self.details)

        return result

    def __str__(self) -> str:
        return f"{self.error_type}: {self.message}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}('{self.message}', status_code={self.status_code})>"


class ValidationException(AppException):
    """
    Validation errors (HTTP 400)

    Raised for role/account mismatches, inactive accounts and malformed
    request data.
    """
    status_code = 400
    error_type = 'ValidationError'


class AuthenticationException(AppException):
    """Caller identity missing or unknown (HTTP 401)"""
    status_code = 401
    error_type = 'AuthenticationError'


class AuthorizationException(AppException):
    """Caller is known but lacks the required role (HTTP 403)"""
    status_code = 403
    error_type = 'AuthorizationError'


class ResourceNotFoundException(AppException):
    """
    Resource not found (HTTP 404)

    Example:
        >>> zone = Zone.query.filter_by(id=zone_id, event_id=event_id).first()
        >>> if not zone:
        ...     raise ResourceNotFoundException(f'Zone {zone_id} not found for this event')
    """
    status_code = 404
    error_type = 'NotFound'


class ConflictException(AppException):
    """
    Business-rule conflict (HTTP 409)

    Raised when an active assignment already occupies an
    (agent, event, zone) slot, or when a state transition is no longer
    allowed (e.g. responding to an assignment that is not pending).
    """
    status_code = 409
    error_type = 'Conflict'


class TransientStoreException(AppException):
    """
    Persistence failure (HTTP 503)

    Raised when the database rejects an operation for reasons that are not
    business rules: lost optimistic-concurrency races after all retries,
    connection problems, unrecognised constraint violations. Callers may
    retry.
    """
    status_code = 503
    error_type = 'TransientStoreError'

    def __init__(self, message: str = 'Temporary storage failure, please try again',
                 status_code: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code, details)


class ConfigurationException(AppException):
    """Application is misconfigured (HTTP 500)"""
    status_code = 500
    error_type = 'ConfigurationError'
