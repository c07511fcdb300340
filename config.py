# HackScan Attendance Tracker Configuration

import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent.absolute()


class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'hackscan-secret-key-change-me'

    # Database Configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'hackscan.db')
    DATABASE_JOURNAL_MODE = 'WAL'
    DATABASE_TIMEOUT = 30.0

    # Badge Configuration
    QR_CODE_BOX_SIZE = 10
    QR_CODE_BORDER = 4

    # Scanner Configuration
    SCANNER_ID_HEADER = os.environ.get('SCANNER_ID_HEADER') or 'X-Scanner-Id'
    DEFAULT_SCANNER_ID = 'unknown'
    RECENT_SCANS_DEFAULT_LIMIT = int(os.environ.get('RECENT_SCANS_DEFAULT_LIMIT') or 10)
    RECENT_SCANS_MAX_LIMIT = 100

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = os.environ.get('LOG_FILE') or str(BASE_DIR / 'logs' / 'hackscan.log')
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5

    # Development Configuration
    DEBUG = os.environ.get('DEBUG', 'False').lower() in ['true', 'on', '1']
    TESTING = False

    @classmethod
    def init_app(cls, app):
        """Initialize application configuration"""
        app.config.from_object(cls)

        # Create necessary directories
        database_path = app.config['DATABASE_PATH']
        if database_path != ':memory:':
            Path(database_path).parent.mkdir(parents=True, exist_ok=True)


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False

    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'hackscan_dev.db')

    # More verbose logging
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True

    # Tests point this at a temporary file; scanners need a shared file database
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'hackscan_test.db')

    LOG_LEVEL = 'DEBUG'


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'hackscan_prod.db')

    # Production logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'WARNING'

    @classmethod
    def init_app(cls, app):
        super().init_app(app)

        # Production-specific initialization
        import logging
        from logging.handlers import RotatingFileHandler

        # Setup file logging
        if not app.debug:
            Path(cls.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                cls.LOG_FILE,
                maxBytes=cls.LOG_MAX_BYTES,
                backupCount=cls.LOG_BACKUP_COUNT
            )
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
            ))
            file_handler.setLevel(logging.INFO)
            logging.getLogger('hackscan').addHandler(file_handler)
            app.logger.addHandler(file_handler)

            app.logger.setLevel(logging.INFO)
            app.logger.info('HackScan Attendance Tracker startup')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


# Environment-specific configurations
def get_config(config_name=None):
    """Get configuration based on environment variable"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')
    return config.get(config_name, DevelopmentConfig)


# Validation functions
def validate_config(app_config):
    """Validate configuration settings"""
    errors = []

    database_path = app_config.get('DATABASE_PATH')
    if not database_path:
        errors.append("DATABASE_PATH is required")
    elif database_path != ':memory:' and not Path(database_path).parent.exists():
        errors.append(f"Database directory does not exist: {Path(database_path).parent}")

    if not app_config.get('SCANNER_ID_HEADER'):
        errors.append("SCANNER_ID_HEADER must not be empty")

    if app_config.get('RECENT_SCANS_DEFAULT_LIMIT', 0) <= 0:
        errors.append("RECENT_SCANS_DEFAULT_LIMIT must be positive")

    return errors


# Initialize configuration
def init_config(app, config_name=None, overrides=None):
    """Initialize application with configuration"""
    config_class = get_config(config_name)

    if overrides:
        # Overrides have to be visible before directories are created
        config_class = type(config_class.__name__, (config_class,), dict(overrides))
    config_class.init_app(app)

    # Validate configuration
    errors = validate_config(app.config)
    if errors:
        for error in errors:
            app.logger.error(f"Configuration error: {error}")
        raise RuntimeError("Configuration validation failed")

    return config_class
