# QR Meeting Attendance Configuration

import os
import logging
from datetime import timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent.parent.absolute()


class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'qr-meeting-attendance-secret-key'

    # Token Configuration
    JWT_SECRET = os.environ.get('JWT_SECRET') or SECRET_KEY
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRY = timedelta(days=7)

    # Database Configuration
    DATABASE_PATH = Path(os.environ.get('DATABASE_PATH') or BASE_DIR / 'database' / 'attendance.db')

    # Security Configuration
    PASSWORD_HASH_METHOD = 'pbkdf2:sha256:600000'
    PASSWORD_MIN_LENGTH = 6

    # Bootstrap admin, seeded only when no admin exists
    ADMIN_NAME = os.environ.get('ADMIN_NAME') or 'Administrator'
    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL')
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD')

    # Meeting Configuration
    DEFAULT_ALLOWED_RADIUS = 500  # meters
    SCAN_CODE_LENGTH = 6
    SCAN_CODE_MAX_ATTEMPTS = 50

    # Location Lookup Configuration
    LOCATION_LOOKUP_ENABLED = os.environ.get('LOCATION_LOOKUP_ENABLED', 'True').lower() in ['true', 'on', '1']
    LOCATION_LOOKUP_URL = 'http://ip-api.com/json/{ip}?fields=city,regionName,country'
    LOCATION_LOOKUP_TIMEOUT = 3  # seconds
    LOCAL_NETWORK_LABEL = 'Local Network'

    # CORS settings
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = BASE_DIR / 'logs' / 'attendance.log'
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5

    # Development Configuration
    DEBUG = os.environ.get('DEBUG', 'False').lower() in ['true', 'on', '1']
    TESTING = False

    @classmethod
    def init_app(cls, app):
        """Initialize application configuration"""
        # Create the database directory
        database_path = str(app.config.get('DATABASE_PATH') or cls.DATABASE_PATH)
        if database_path != ':memory:':
            Path(database_path).parent.mkdir(parents=True, exist_ok=True)


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    DATABASE_PATH = BASE_DIR / 'database' / 'attendance_dev.db'

    # Faster hashing for development
    PASSWORD_HASH_METHOD = 'pbkdf2:sha256:1000'

    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True

    SECRET_KEY = 'testing-secret-key'
    JWT_SECRET = 'testing-jwt-secret-with-enough-bytes'

    PASSWORD_HASH_METHOD = 'pbkdf2:sha256:1000'

    # Never leave the machine during tests
    LOCATION_LOOKUP_ENABLED = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    DATABASE_PATH = Path(os.environ.get('DATABASE_PATH') or BASE_DIR / 'database' / 'attendance_prod.db')

    LOG_LEVEL = 'WARNING'

    @classmethod
    def init_app(cls, app):
        super().init_app(app)

        if not app.debug:
            cls.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                cls.LOG_FILE,
                maxBytes=cls.LOG_MAX_BYTES,
                backupCount=cls.LOG_BACKUP_COUNT
            )
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
            ))
            file_handler.setLevel(logging.INFO)
            app.logger.addHandler(file_handler)

            app.logger.setLevel(logging.INFO)
            app.logger.info('QR Meeting Attendance startup')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name=None):
    """Get configuration based on name or environment variable"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')
    return config.get(config_name, DevelopmentConfig)
