"""
Unified Error Handling System

Provides centralized, consistent error handling across the entire application.

Usage:
    from guardforce.error_handlers import handle_errors
    from guardforce.error_handlers.exceptions import ValidationException

    @bp.route('/endpoint')
    @handle_errors
    def my_endpoint():
        if not valid:
            raise ValidationException('Invalid data')
        return jsonify({'success': True})
"""
from .exceptions import (
    AppException,
    ValidationException,
    AuthenticationException,
    AuthorizationException,
    ResourceNotFoundException,
    ConflictException,
    TransientStoreException,
    ConfigurationException
)
from .decorators import handle_errors
from .logging import setup_logging, register_error_handlers, operation_logger


__all__ = [
    # Exceptions
    'AppException',
    'ValidationException',
    'AuthenticationException',
    'AuthorizationException',
    'ResourceNotFoundException',
    'ConflictException',
    'TransientStoreException',
    'ConfigurationException',
    # Decorators
    'handle_errors',
    # Logging
    'setup_logging',
    'register_error_handlers',
    'operation_logger',
]
