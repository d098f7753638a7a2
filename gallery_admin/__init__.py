"""
Flask application factory and configuration.

This module contains the Flask application factory that initializes
and configures all extensions, blueprints, and application settings.
"""
import os

from flask import Flask, render_template
from flask_talisman import Talisman

from config.settings import DevelopmentConfig, ProductionConfig, TestingConfig
from gallery_admin.cache import cache, init_cache
from gallery_admin.extensions import (
    GATEWAY_KEY,
    csrf,
    get_gateway,
    limiter,
    login_manager,
)
from gallery_admin.identity import AuthGateway, CognitoIdentityProvider, TokenStore
from gallery_admin.route_guard import init_route_guard
from gallery_admin.services import init_services
from gallery_admin.uploads import init_uploads


def _config_from_env():
    env = os.environ.get("FLASK_ENV", "development")
    if env == "production":
        return ProductionConfig
    if env == "testing":
        return TestingConfig
    return DevelopmentConfig


def create_app(config_class=None, identity_provider=None, http_session=None):
    """
    Create and configure Flask application.

    This factory function creates a Flask application instance and configures
    all necessary extensions, blueprints, and security measures.

    Args:
        config_class: Configuration class to use. If None, will be determined
                     from FLASK_ENV environment variable.
        identity_provider: Object with ``authenticate``/``revoke`` replacing
                     the Cognito client (tests pass a fake).
        http_session: ``requests.Session`` used for the remote API (tests
                     pass a mock).

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)
    app.config.from_object(config_class or _config_from_env())

    # Configure structured logging early
    from gallery_admin.structured_logging import configure_structlog

    configure_structlog(app)

    init_extensions(app)

    gateway = AuthGateway(
        identity_provider or CognitoIdentityProvider.from_config(app.config),
        TokenStore(cache),
        groups_claim=app.config["COGNITO_GROUPS_CLAIM"],
        admin_group=app.config["ADMIN_GROUP"],
    )
    app.extensions[GATEWAY_KEY] = gateway
    init_services(app, gateway, http_session=http_session)
    init_uploads(app)
    init_route_guard(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Setup security headers (only in production or if explicitly enabled)
    if app.config.get("FORCE_HTTPS") or not app.debug:
        Talisman(
            app,
            force_https=app.config.get("FORCE_HTTPS", False),
            strict_transport_security=app.config.get("STRICT_TRANSPORT_SECURITY", True),
            content_security_policy=app.config.get("CONTENT_SECURITY_POLICY"),
            session_cookie_secure=app.config.get("SESSION_COOKIE_SECURE", True),
        )

    app.logger.info(
        "Gallery console ready (API endpoint %s)", app.config["API_ENDPOINT"]
    )
    return app


def init_extensions(app):
    """
    Initialize Flask extensions.

    Args:
        app: Flask application instance
    """
    csrf.init_app(app)

    # Server-side token store
    init_cache(app)

    # Rate limiting (disabled via RATELIMIT_ENABLED=False)
    limiter.init_app(app)

    # User session management
    login_manager.init_app(app)
    login_manager.login_view = "auth.login"
    login_manager.login_message = "Please log in to access this page."
    login_manager.login_message_category = "info"

    @login_manager.user_loader
    def load_user(user_id):
        """Rebuild the signed-in user from the stored session tokens."""
        result = get_gateway().get_current_user()
        if result.user is None or result.user.get_id() != user_id:
            return None
        return result.user


def register_blueprints(flask_app):
    """
    Register Flask blueprints.

    Args:
        flask_app: Flask application instance
    """
    # Authentication routes
    from gallery_admin.auth.routes import auth_bp

    flask_app.register_blueprint(auth_bp, url_prefix="/auth")

    # Landing page
    from gallery_admin.main.routes import main_bp

    flask_app.register_blueprint(main_bp)

    # Admin console routes
    from gallery_admin.admin.routes import admin_bp

    flask_app.register_blueprint(admin_bp, url_prefix=flask_app.config["ADMIN_PREFIX"])


def register_error_handlers(app):
    """
    Register error handlers for common HTTP errors.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(400)
    def bad_request(error):
        """Handle 400 Bad Request errors."""
        return render_template("errors/400.html"), 400

    @app.errorhandler(401)
    def unauthorized(error):
        """Handle 401 Unauthorized errors."""
        return render_template("errors/401.html"), 401

    @app.errorhandler(403)
    def forbidden(error):
        """Handle 403 Forbidden errors."""
        return render_template("errors/403.html"), 403

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 Not Found errors."""
        return render_template("errors/404.html"), 404

    @app.errorhandler(413)
    def request_entity_too_large(error):
        """Handle 413 Request Entity Too Large errors."""
        return render_template("errors/413.html"), 413

    @app.errorhandler(429)
    def ratelimit_handler(error):
        """Handle 429 Too Many Requests errors."""
        return render_template("errors/429.html"), 429

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 Internal Server Error."""
        return render_template("errors/500.html"), 500
