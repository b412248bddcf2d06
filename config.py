import os
from dotenv import load_dotenv
from typing import Optional

# Find the absolute path of the root directory
basedir = os.path.abspath(os.path.dirname(__file__))

# Load the .env file from the root directory
load_dotenv(os.path.join(basedir, '.env'))


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid"""
    pass


def _env_int(key: str, default: int) -> int:
    value = os.environ.get(key)
    return int(value) if value else default


def _env_float(key: str, default: float) -> float:
    value = os.environ.get(key)
    return float(value) if value else default


class Config:
    """
    Base configuration class. Contains default configuration settings
    and settings applicable to all environments.
    """
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-only-secret'
    FLASK_ENV = os.environ.get('FLASK_ENV')

    # Database settings
    SQLALCHEMY_DATABASE_URI = os.environ.get('POSTGRES_URI') or \
        'sqlite:///' + os.path.join(basedir, 'listings.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # RentCast listings API
    RENTCAST_API_KEY = os.environ.get('RENTCAST_API_KEY')
    RENTCAST_BASE_URL = os.environ.get('RENTCAST_BASE_URL', 'https://api.rentcast.io/v1')
    RENTCAST_PAGE_LIMIT = _env_int('RENTCAST_PAGE_LIMIT', 500)  # API max page size
    RENTCAST_SAFETY_CAP = _env_int('RENTCAST_SAFETY_CAP', 2000)
    RENTCAST_DEFAULT_CITY = os.environ.get('RENTCAST_DEFAULT_CITY', 'San Antonio')
    RENTCAST_DEFAULT_STATE = os.environ.get('RENTCAST_DEFAULT_STATE', 'TX')
    RENTCAST_DEFAULT_PROPERTY_TYPE = os.environ.get('RENTCAST_DEFAULT_PROPERTY_TYPE', 'Apartment')

    # Mapbox geocoding
    MAPBOX_ACCESS_TOKEN = os.environ.get('MAPBOX_ACCESS_TOKEN')
    GEOCODE_DELAY_SECONDS = _env_float('GEOCODE_DELAY_SECONDS', 0.15)

    # Outbound HTTP timeouts (seconds)
    HTTP_CONNECT_TIMEOUT = _env_float('HTTP_CONNECT_TIMEOUT', 5.0)
    HTTP_READ_TIMEOUT = _env_float('HTTP_READ_TIMEOUT', 30.0)

    # Celery. Flask loads these and Celery maps them to its lowercase settings.
    CELERY_BROKER_URL = os.environ.get('REDIS_URL') or 'redis://redis:6379/0'
    CELERY_RESULT_BACKEND = os.environ.get('REDIS_URL') or 'redis://redis:6379/0'

    # Application settings
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max CSV upload
    JSON_SORT_KEYS = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    @classmethod
    def validate_required_config(cls) -> None:
        """Validate that all required configuration is present"""
        # Skip validation in testing environment or during migrations
        if os.environ.get('FLASK_ENV') == 'testing' or os.environ.get('SKIP_ENV_VALIDATION'):
            return

        required_vars = ['RENTCAST_API_KEY']
        if not (os.environ.get('DATABASE_URL') or os.environ.get('POSTGRES_URI')):
            required_vars.append('POSTGRES_URI')

        missing_vars = [var for var in required_vars if not os.environ.get(var)]
        if missing_vars:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing_vars)}"
            )

    @staticmethod
    def get_required_env(key: str) -> str:
        """Get required environment variable or raise error"""
        value = os.environ.get(key)
        if not value:
            raise ConfigurationError(f"Required environment variable {key} is not set")
        return value

    @classmethod
    def init_app(cls, app):
        """Initialize application with this config"""
        pass


class DevelopmentConfig(Config):
    """Development environment configuration"""
    DEBUG = True
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or \
        Config.SQLALCHEMY_DATABASE_URI
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class TestingConfig(Config):
    """Testing environment configuration"""
    TESTING = True
    DEBUG = True

    # Use in-memory SQLite for tests
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'

    # Never talk to real third parties from tests
    RENTCAST_API_KEY = 'test-rentcast-key'
    MAPBOX_ACCESS_TOKEN = None
    GEOCODE_DELAY_SECONDS = 0.0

    # Run Celery tasks inline
    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'
    CELERY_TASK_ALWAYS_EAGER = True


class ProductionConfig(Config):
    """Production environment configuration"""
    DEBUG = False
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', '')

    REDIS_URL = os.environ.get('REDIS_URL', '')
    CELERY_BROKER_URL = os.environ.get('REDIS_URL', '')
    CELERY_RESULT_BACKEND = os.environ.get('REDIS_URL', '')

    @classmethod
    def init_app(cls, app):
        """Production-specific initialization"""
        if not cls.SQLALCHEMY_DATABASE_URI:
            app.config['SQLALCHEMY_DATABASE_URI'] = cls.get_required_env('POSTGRES_URI')

        # Validate all required config
        cls.validate_required_config()


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name: Optional[str] = None) -> type[Config]:
    """Get configuration class based on environment"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    return config.get(config_name, DevelopmentConfig)
