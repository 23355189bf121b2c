"""
Flask application factory.

This module implements the application factory pattern for creating
Flask application instances with different configurations.
"""

from flask import Flask
import os

from .extensions import db, migrate, limiter
from .config import get_config


def create_app(config_name=None):
    """
    Application factory function.

    Args:
        config_name: Configuration name (development, testing, production)
                    If None, determined from environment

    Returns:
        Flask application instance
    """
    app = Flask(__name__)

    # Correct client IP and scheme behind the reverse proxy
    from werkzeug.middleware.proxy_fix import ProxyFix
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    config_class = get_config(config_name, validate=True)
    app.config.from_object(config_class)

    # Ensure instance directory exists
    basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    os.makedirs(os.path.join(basedir, "instance"), exist_ok=True)

    # Relative sqlite paths live in the project's instance directory
    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///instance/'):
        db_file = app.config['SQLALCHEMY_DATABASE_URI'][len('sqlite:///instance/'):]
        app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{os.path.join(basedir, "instance", db_file)}'

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Flask-Limiter reads RATELIMIT_ENABLED / RATELIMIT_DEFAULT from app.config
    limiter.init_app(app)

    # Enable foreign key constraints for SQLite
    from sqlalchemy import event
    from sqlalchemy.engine import Engine

    @event.listens_for(Engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable foreign key constraints for SQLite connections"""
        if 'sqlite' in type(dbapi_conn).__module__:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    # Configure logging and error handling
    from guardforce.error_handlers import setup_logging, register_error_handlers
    setup_logging(app)
    register_error_handlers(app)

    # Models are declared once per process on the shared db instance
    from guardforce.models import init_models, model_registry
    models = model_registry.models or init_models(db)

    model_registry.init_app(app)
    model_registry.register(models)

    register_blueprints(app, db, models)

    app.logger.info(
        f"Guardforce app created (config={config_class.__name__}, "
        f"release_policy={app.config['SUPERVISOR_ZONE_RELEASE_POLICY']})"
    )
    return app


def register_blueprints(app, db, models):
    """Register all Flask blueprints."""
    from guardforce.routes import (
        health_bp,
        init_assignment_routes,
        init_zone_routes,
        init_event_routes,
        init_notification_routes,
    )

    app.register_blueprint(health_bp)
    limiter.exempt(health_bp)

    app.register_blueprint(init_assignment_routes(db, models))
    app.register_blueprint(init_zone_routes(db, models))
    app.register_blueprint(init_event_routes(db, models))
    app.register_blueprint(init_notification_routes(db, models))
