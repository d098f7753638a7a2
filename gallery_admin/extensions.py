"""Extension singletons and accessors for app-bound collaborators."""
from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect

# Make CSRFProtect available app-wide so routes can optionally exempt endpoints
csrf = CSRFProtect()
limiter = Limiter(key_func=get_remote_address)
login_manager = LoginManager()

GATEWAY_KEY = "gallery_admin.gateway"
UPLOADS_KEY = "gallery_admin.uploads"


def get_gateway():
    return current_app.extensions[GATEWAY_KEY]


def get_upload_registry():
    return current_app.extensions[UPLOADS_KEY]
