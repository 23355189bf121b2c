"""
Health Check and Monitoring Endpoints
Provides endpoints for application health monitoring and readiness checks.
"""
from flask import Blueprint, jsonify, current_app
from datetime import datetime
from sqlalchemy import text
import sys
import psutil
import os

from guardforce.extensions import db

health_bp = Blueprint('health', __name__, url_prefix='/health')


@health_bp.route('/ping', methods=['GET'])
def ping():
    """
    Simple ping endpoint for basic connectivity checks.
    Returns: 200 OK with pong message
    """
    return jsonify({
        'status': 'ok',
        'message': 'pong',
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@health_bp.route('/ready', methods=['GET'])
def readiness():
    """
    Readiness probe - checks that the database answers.

    Returns:
        200: Application is ready
        503: Application is not ready
    """
    checks = {'database': False}
    errors = []

    try:
        db.session.execute(text('SELECT 1'))
        checks['database'] = True
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Readiness check failed: {e}")
        errors.append(f"Database: {str(e)}")

    all_checks_passed = all(checks.values())
    response = {
        'status': 'ready' if all_checks_passed else 'not_ready',
        'checks': checks,
        'timestamp': datetime.utcnow().isoformat()
    }
    if errors:
        response['errors'] = errors

    return jsonify(response), 200 if all_checks_passed else 503


@health_bp.route('/status', methods=['GET'])
def status():
    """
    Application status and process resources.

    Returns:
        200: Status information
    """
    process = psutil.Process()
    memory_info = process.memory_info()

    return jsonify({
        'status': 'operational',
        'timestamp': datetime.utcnow().isoformat(),
        'application': {
            'name': 'Guardforce Staffing API',
            'environment': current_app.config.get('FLASK_ENV', 'unknown'),
            'debug': current_app.debug,
            'supervisor_release_policy': current_app.config.get('SUPERVISOR_ZONE_RELEASE_POLICY'),
        },
        'system': {
            'python_version': sys.version,
            'platform': sys.platform,
            'process_id': os.getpid(),
        },
        'resources': {
            'memory_mb': round(memory_info.rss / 1024 / 1024, 2),
            'memory_percent': round(process.memory_percent(), 2),
        },
        'database': {
            'type': 'sqlite' if 'sqlite' in current_app.config.get('SQLALCHEMY_DATABASE_URI', '') else 'postgresql',
        }
    }), 200
