"""
Configuration management for the Guardforce staffing backend
Handles environment-based settings for staffing rules and infrastructure

Values come from the environment (or a .env file) through python-decouple.
create_app() validates the selected class; only production requires
secrets to be set.
"""
import secrets
from decouple import config, Choices, UndefinedValueError
from typing import Optional

from guardforce.error_handlers.exceptions import ConfigurationException


RELEASE_POLICIES = ('retain', 'release')


class Config:
    """Base configuration class"""
    SECRET_KEY = config('SECRET_KEY', default=secrets.token_hex(32))
    SQLALCHEMY_DATABASE_URI = config('DATABASE_URL', default='sqlite:///instance/guardforce.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging settings
    LOG_LEVEL = config('LOG_LEVEL', default='INFO')
    LOG_FILE = config('LOG_FILE', default='logs/guardforce.log')

    # Event clock: check-in/check-out times are wall-clock times in this zone
    EVENT_TIMEZONE = config('EVENT_TIMEZONE', default='Africa/Casablanca')

    # Minutes before check-in during which staffing and check-in are open
    DEFAULT_AGENT_CREATION_BUFFER = config('DEFAULT_AGENT_CREATION_BUFFER', default=120, cast=int)

    # Minutes after check-out during which an event is still shown as active
    EVENT_COMPLETION_GRACE_MINUTES = config('EVENT_COMPLETION_GRACE_MINUTES', default=120, cast=int)

    # What happens to zone.supervisors when a supervisor assignment is deleted:
    # 'retain' keeps the id (historical behaviour), 'release' removes it
    SUPERVISOR_ZONE_RELEASE_POLICY = config(
        'SUPERVISOR_ZONE_RELEASE_POLICY',
        default='retain',
        cast=Choices(RELEASE_POLICIES)
    )

    # Optimistic concurrency retries
    ASSIGNMENT_MAX_RETRIES = config('ASSIGNMENT_MAX_RETRIES', default=3, cast=int)
    ZONE_UPDATE_MAX_RETRIES = config('ZONE_UPDATE_MAX_RETRIES', default=3, cast=int)

    # In-app notifications for assignment changes
    NOTIFICATIONS_ENABLED = config('NOTIFICATIONS_ENABLED', default=True, cast=bool)

    # Rate limiting
    RATELIMIT_ENABLED = config('RATELIMIT_ENABLED', default=True, cast=bool)
    RATELIMIT_DEFAULT = config('RATELIMIT_DEFAULT', default='300 per hour')

    @classmethod
    def validate(cls) -> None:
        """
        Validate configuration - can be called explicitly or on-demand

        Raises:
            ConfigurationException: If required configuration is missing or inconsistent
        """
        if cls.ASSIGNMENT_MAX_RETRIES < 1 or cls.ZONE_UPDATE_MAX_RETRIES < 1:
            raise ConfigurationException("ASSIGNMENT_MAX_RETRIES and ZONE_UPDATE_MAX_RETRIES must be at least 1")
        if cls.EVENT_COMPLETION_GRACE_MINUTES < 0 or cls.DEFAULT_AGENT_CREATION_BUFFER < 0:
            raise ConfigurationException("Event time buffers cannot be negative")


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    LOG_LEVEL = 'WARNING'
    RATELIMIT_ENABLED = False
    SUPERVISOR_ZONE_RELEASE_POLICY = 'retain'


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': config('DB_POOL_SIZE', default=10, cast=int),
        'pool_recycle': config('DB_POOL_RECYCLE', default=3600, cast=int),
        'pool_pre_ping': True,
        'max_overflow': config('DB_MAX_OVERFLOW', default=20, cast=int),
    }

    LOG_LEVEL = config('LOG_LEVEL', default='WARNING')

    @classmethod
    def validate(cls) -> None:
        """
        Production mode: validate all required settings

        Raises:
            ConfigurationException: If any required configuration is missing
        """
        super().validate()
        try:
            secret_key = config('SECRET_KEY')
        except UndefinedValueError:
            raise ConfigurationException(
                "SECRET_KEY environment variable must be set in production. "
                "Generate a secure key with: python -c 'import secrets; print(secrets.token_hex(32))'"
            )

        if len(secret_key) < 32:
            raise ConfigurationException(
                f"SECRET_KEY must be at least 32 characters in production (current: {len(secret_key)})."
            )

        if cls.SQLALCHEMY_DATABASE_URI.startswith('sqlite'):
            raise ConfigurationException("DATABASE_URL must point to a server database in production")


config_mapping = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name: Optional[str] = None, validate: bool = False) -> type:
    """
    Get configuration class based on environment.

    Args:
        config_name: Environment name ('development', 'testing', 'production')
        validate: Whether to validate configuration immediately (default: False)

    Returns:
        Config class for the specified environment

    Raises:
        ConfigurationException: If validation is enabled and required settings are missing
    """
    if config_name is None:
        config_name = config('FLASK_ENV', default='development')

    config_class = config_mapping.get(config_name, DevelopmentConfig)

    if validate:
        config_class.validate()

    return config_class
