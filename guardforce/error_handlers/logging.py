"""
Error handling and logging utilities for the Guardforce staffing backend
Provides centralized error handling, logging, and debugging capabilities
"""
import logging
import traceback
from datetime import datetime
from flask import jsonify, request
import os

from .exceptions import AppException


def setup_logging(app):
    """Configure application logging"""
    log_level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO').upper())
    log_file = app.config.get('LOG_FILE', 'guardforce.log')

    # Make log file path absolute if it's not
    if not os.path.isabs(log_file):
        basedir = os.path.abspath(os.path.dirname(os.path.dirname(os.path.dirname(__file__))))
        log_file = os.path.join(basedir, log_file)

    log_dir = os.path.dirname(log_file)
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
    )

    # app.logger is shared by every app built in the same process
    for handler in list(app.logger.handlers):
        if getattr(handler, '_guardforce_handler', False):
            app.logger.removeHandler(handler)
            handler.close()

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    file_handler._guardforce_handler = True

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler._guardforce_handler = True

    app.logger.setLevel(log_level)
    app.logger.addHandler(file_handler)
    app.logger.addHandler(console_handler)

    # Service modules log under the 'guardforce.*' namespace
    logging.getLogger('guardforce').setLevel(log_level)

    werkzeug_logger = logging.getLogger('werkzeug')
    werkzeug_logger.setLevel(log_level)

    return app.logger


def register_error_handlers(app):
    """Register global JSON error handlers for the Flask app"""

    @app.errorhandler(AppException)
    def app_exception_error(error):
        """Handle domain errors raised outside @handle_errors"""
        app.logger.warning(f"{error.error_type} on {request.method} {request.path}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(400)
    def bad_request_error(error):
        """Handle 400 Bad Request errors"""
        app.logger.warning(f"Bad request from {request.remote_addr}: {request.url}")
        return jsonify({
            'success': False,
            'error': 'Bad Request',
            'message': 'The request could not be understood by the server',
            'status_code': 400
        }), 400

    @app.errorhandler(401)
    def unauthorized_error(error):
        """Handle 401 Unauthorized errors"""
        app.logger.warning(f"Unauthorized access attempt from {request.remote_addr}: {request.url}")
        return jsonify({
            'success': False,
            'error': 'Unauthorized',
            'message': 'Authentication required',
            'status_code': 401
        }), 401

    @app.errorhandler(403)
    def forbidden_error(error):
        """Handle 403 Forbidden errors"""
        app.logger.warning(f"Forbidden access attempt from {request.remote_addr}: {request.url}")
        return jsonify({
            'success': False,
            'error': 'Forbidden',
            'message': 'You do not have permission to access this resource',
            'status_code': 403
        }), 403

    @app.errorhandler(404)
    def not_found_error(error):
        """Handle 404 Not Found errors"""
        app.logger.info(f"404 Not Found: {request.url} from {request.remote_addr}")
        return jsonify({
            'success': False,
            'error': 'Not Found',
            'message': 'The requested resource was not found',
            'status_code': 404
        }), 404

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        """Handle 405 Method Not Allowed errors"""
        app.logger.warning(f"Method not allowed: {request.method} {request.url} from {request.remote_addr}")
        return jsonify({
            'success': False,
            'error': 'Method Not Allowed',
            'message': f'The {request.method} method is not allowed for this endpoint',
            'status_code': 405
        }), 405

    @app.errorhandler(429)
    def rate_limited_error(error):
        """Handle 429 Too Many Requests errors"""
        app.logger.warning(f"Rate limit hit by {request.remote_addr}: {request.url}")
        return jsonify({
            'success': False,
            'error': 'Too Many Requests',
            'message': str(getattr(error, 'description', 'Rate limit exceeded')),
            'status_code': 429
        }), 429

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 Internal Server Error"""
        from guardforce.utils.validators import sanitize_request_data

        error_id = datetime.utcnow().strftime('%Y%m%d_%H%M%S_%f')
        app.logger.error(f"Internal Server Error [{error_id}]: {str(error)}")
        app.logger.error(f"Traceback [{error_id}]: {traceback.format_exc()}")

        # Request bodies are sanitized before logging
        app.logger.error(f"Request details [{error_id}]: {request.method} {request.url}")
        request_data = sanitize_request_data(request.get_data(as_text=True)[:1000])
        app.logger.error(f"Request data [{error_id}]: {request_data}")

        return jsonify({
            'success': False,
            'error': 'Internal Server Error',
            'message': 'An unexpected error occurred',
            'error_id': error_id,
            'status_code': 500
        }), 500


class OperationLogger:
    """Structured logger for staffing operations (assignments, zone membership)"""

    def __init__(self, name='guardforce.operations'):
        self.logger = logging.getLogger(name)

    def succeeded(self, operation, details=None):
        message = f"{operation} succeeded"
        if details:
            message += f" | {details}"
        self.logger.info(message)

    def rejected(self, operation, reason, context=None):
        message = f"{operation} rejected: {reason}"
        if context:
            message += f" | Context: {context}"
        self.logger.warning(message)

    def failed(self, operation, error, context=None):
        """Log an operation failure and return its error id"""
        error_id = datetime.utcnow().strftime('%Y%m%d_%H%M%S_%f')
        message = f"{operation} FAILED [{error_id}]: {str(error)}"
        if context:
            message += f" | Context: {context}"
        self.logger.error(message)
        self.logger.debug(f"{operation} TRACEBACK [{error_id}]: {traceback.format_exc()}")
        return error_id


operation_logger = OperationLogger()
