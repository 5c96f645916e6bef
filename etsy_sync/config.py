"""
Application configuration

All settings can be overridden through environment variables.
"""
import os
import secrets
import tempfile

from dotenv import load_dotenv

load_dotenv()

# Project root directory
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration"""

    # ==================== Security ====================
    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_hex(32)

    # API key protecting the sync trigger (unset = open in development)
    API_KEY = os.environ.get('API_KEY')

    # ==================== Database ====================
    DATABASE_URL = os.environ.get('DATABASE_URL')
    if DATABASE_URL:
        SQLALCHEMY_DATABASE_URI = DATABASE_URL
    else:
        SQLALCHEMY_DATABASE_URI = f'sqlite:///{os.path.join(BASE_DIR, "etsy_sync.db")}'

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # ==================== CORS ====================
    CORS_ORIGINS = os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:5173,http://127.0.0.1:5173'
    ).split(',')

    # ==================== Storage ====================
    MEDIA_PATH = os.environ.get('MEDIA_PATH') or os.path.join(BASE_DIR, 'datas', 'media')

    # ==================== Logging ====================
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FILE = os.environ.get('LOG_FILE')  # optional log file path

    # ==================== Etsy API ====================
    ETSY_API_KEY = os.environ.get('ETSY_API_KEY')
    ETSY_SHOP_ID = os.environ.get('ETSY_SHOP_ID')
    ETSY_BASE_URL = os.environ.get('ETSY_BASE_URL', 'https://openapi.etsy.com/v2')
    ETSY_LANGUAGE = os.environ.get('ETSY_LANGUAGE') or None
    ETSY_LIMIT = int(os.environ.get('ETSY_LIMIT', '25'))
    ETSY_MAX_PAGES = int(os.environ.get('ETSY_MAX_PAGES', '1'))

    # ==================== Request scheduling ====================
    # 0.15s between request starts = 6.7 requests per second
    REQUEST_MIN_INTERVAL = float(os.environ.get('REQUEST_MIN_INTERVAL', '0.15'))
    REQUEST_MAX_CONCURRENT = int(os.environ.get('REQUEST_MAX_CONCURRENT', '6'))
    REQUEST_TIMEOUT = float(os.environ.get('REQUEST_TIMEOUT', '30'))

    # ==================== Sync ====================
    SYNC_MAX_WORKERS = int(os.environ.get('SYNC_MAX_WORKERS', '8'))
    # Reused listings keep only the listing and image nodes alive by default
    SYNC_TOUCH_PRODUCT_NODES = _env_bool('SYNC_TOUCH_PRODUCT_NODES', 'false')
    SYNC_COLLECT_GARBAGE = _env_bool('SYNC_COLLECT_GARBAGE', 'true')
    MEDIA_DOWNLOAD_CONCURRENCY = int(os.environ.get('MEDIA_DOWNLOAD_CONCURRENCY', '4'))

    @classmethod
    def get_cors_config(cls):
        return {
            "origins": cls.CORS_ORIGINS,
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type", "X-API-Key", "Authorization"],
            "supports_credentials": True,
        }


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    LOG_LEVEL = 'DEBUG'


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    LOG_LEVEL = 'WARNING'

    @classmethod
    def validate(cls):
        """Return a list of configuration problems"""
        errors = []

        if not os.environ.get('SECRET_KEY'):
            errors.append('SECRET_KEY is not set')
        if not os.environ.get('API_KEY'):
            errors.append('API_KEY is not set (sync trigger is unprotected)')
        if not cls.ETSY_API_KEY or not cls.ETSY_SHOP_ID:
            errors.append('ETSY_API_KEY and ETSY_SHOP_ID are required to sync')

        return errors


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    API_KEY = None
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    ETSY_API_KEY = 'test-api-key'
    ETSY_SHOP_ID = 'TestShop'
    MEDIA_PATH = os.path.join(tempfile.gettempdir(), 'etsy_sync_test_media')
    REQUEST_MIN_INTERVAL = 0.0
    SYNC_COLLECT_GARBAGE = True


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config():
    """Pick the configuration class from FLASK_ENV"""
    env = os.environ.get('FLASK_ENV', 'development')
    return config.get(env, config['default'])
