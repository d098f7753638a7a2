"""
Configuration settings for the Flask application.
This module contains all configuration classes for different environments.
"""
import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() in {"1", "true", "yes", "on"}


class Config:
    """
    Base configuration class containing common settings.

    This class defines the default configuration that other
    environment-specific classes will inherit from.
    """

    # Security Configuration
    SECRET_KEY = (
        os.environ.get("SECRET_KEY") or "your-super-secret-key-change-in-production"
    )
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = 3600  # 1 hour
    WTF_CSRF_SSL_STRICT = False  # Allow CSRF tokens over HTTP in development

    # Flask Configuration
    DEBUG = os.environ.get("FLASK_DEBUG", "False").lower() == "true"
    HOST = os.environ.get("FLASK_HOST", "0.0.0.0")
    PORT = int(os.environ.get("FLASK_PORT", 5000))

    # Session Configuration
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    # Identity provider (Cognito user pool)
    AWS_REGION = os.environ.get("AWS_REGION", "us-east-1")
    COGNITO_USER_POOL_ID = os.environ.get("COGNITO_USER_POOL_ID", "")
    COGNITO_CLIENT_ID = os.environ.get("COGNITO_CLIENT_ID", "")
    # Only for app clients created with a secret
    COGNITO_CLIENT_SECRET = os.environ.get("COGNITO_CLIENT_SECRET") or None
    # Group membership claim carried in the access token
    COGNITO_GROUPS_CLAIM = os.environ.get("COGNITO_GROUPS_CLAIM", "cognito:groups")
    ADMIN_GROUP = os.environ.get("ADMIN_GROUP", "Admin")

    # Remote gallery API
    API_ENDPOINT = (os.environ.get("API_ENDPOINT") or "http://localhost:8000").rstrip(
        "/"
    )
    # Unset means the transport default (no explicit timeout)
    API_TIMEOUT = (
        float(os.environ["API_TIMEOUT"]) if os.environ.get("API_TIMEOUT") else None
    )

    # Route guard / auth cookie
    ADMIN_PREFIX = os.environ.get("ADMIN_PREFIX", "/admin")
    AUTH_COOKIE_NAME = os.environ.get("AUTH_COOKIE_NAME", "authToken")
    AUTH_COOKIE_DOMAIN = os.environ.get("AUTH_COOKIE_DOMAIN") or None
    AUTH_COOKIE_SECURE = True
    AUTH_COOKIE_MAX_AGE = int(os.environ.get("AUTH_COOKIE_MAX_AGE", 365 * 24 * 3600))

    # Upload admission
    UPLOAD_MAX_FILE_SIZE = int(os.environ.get("UPLOAD_MAX_FILE_SIZE", 10 * 1024 * 1024))
    UPLOAD_ACCEPTED_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})
    # A drop may carry several files; cap the whole request body
    MAX_CONTENT_LENGTH = int(
        os.environ.get("MAX_CONTENT_LENGTH", 200 * 1024 * 1024)
    )  # Default 200MB
    PREVIEW_FOLDER = os.environ.get("PREVIEW_FOLDER") or "previews"
    # Seconds before an untouched upload batch and its previews are released
    UPLOAD_BATCH_MAX_IDLE = int(os.environ.get("UPLOAD_BATCH_MAX_IDLE", 2 * 3600))

    # Server-side token store (Flask-Caching)
    REDIS_URL = os.environ.get("REDIS_URL")

    # Rate Limiting Configuration
    RATELIMIT_STORAGE_URI = REDIS_URL or "memory://"
    RATELIMIT_DEFAULT = "200 per hour"
    LOGIN_RATE_LIMIT = os.environ.get("LOGIN_RATE_LIMIT", "10 per minute")

    # Security Headers (Talisman)
    FORCE_HTTPS = False  # Set to True in production
    STRICT_TRANSPORT_SECURITY = True
    CONTENT_SECURITY_POLICY = {
        "default-src": "'self'",
        "script-src": "'self' 'unsafe-inline' cdn.jsdelivr.net",
        "style-src": "'self' 'unsafe-inline' cdn.jsdelivr.net",
        "img-src": "'self' data: blob:",
        "font-src": "'self' cdn.jsdelivr.net",
    }

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    """
    Development environment configuration.

    This configuration is used during local development.
    It includes debug mode and relaxed security settings.
    """

    DEBUG = True
    # Use form-level CSRF checks only in development to avoid global 400s
    WTF_CSRF_CHECK_DEFAULT = False
    SESSION_COOKIE_SECURE = False  # Allow HTTP in development
    AUTH_COOKIE_SECURE = False
    FORCE_HTTPS = False
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    """
    Production environment configuration.

    This configuration is used in production with enhanced security.
    """

    DEBUG = False

    # Enhanced security for production
    FORCE_HTTPS = _env_flag("FORCE_HTTPS", "true")
    SESSION_COOKIE_SECURE = True
    AUTH_COOKIE_SECURE = True

    RATELIMIT_DEFAULT = "100 per hour"


class TestingConfig(Config):
    """
    Testing environment configuration.

    This configuration is used during automated testing.
    The identity provider and remote API are replaced by fakes in tests.
    """

    TESTING = True
    DEBUG = True
    WTF_CSRF_ENABLED = False  # Disable CSRF for testing

    COGNITO_USER_POOL_ID = "us-east-1_test"
    COGNITO_CLIENT_ID = "test-client"
    API_ENDPOINT = "http://api.test"

    SESSION_COOKIE_SECURE = False
    AUTH_COOKIE_SECURE = False
    REDIS_URL = None

    # Disable rate limiting for tests
    RATELIMIT_ENABLED = False
