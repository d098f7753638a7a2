"""
Edge check for admin paths.

Any request under the admin prefix without the auth cookie is redirected to
the login page. Only presence is checked: the token is never decoded here.
The cookie's value is the opaque server-side session key, set on sign-in and
deleted on sign-out.
"""
from flask import current_app, redirect, request, url_for


def is_admin_path(path: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


def guard_admin_routes():
    """``before_request`` hook: redirect cookieless admin requests to login."""
    config = current_app.config
    if not is_admin_path(request.path, config["ADMIN_PREFIX"]):
        return None
    if request.cookies.get(config["AUTH_COOKIE_NAME"]):
        return None
    current_app.logger.debug("Route guard redirect for %s", request.path)
    return redirect(url_for("auth.login", next=request.full_path.rstrip("?")))


def set_auth_cookie(response, value: str):
    config = current_app.config
    response.set_cookie(
        config["AUTH_COOKIE_NAME"],
        value,
        max_age=config["AUTH_COOKIE_MAX_AGE"],
        domain=config.get("AUTH_COOKIE_DOMAIN"),
        path="/",
        secure=config.get("AUTH_COOKIE_SECURE", True),
        httponly=True,
        samesite="Strict",
    )
    return response


def clear_auth_cookie(response):
    config = current_app.config
    response.delete_cookie(
        config["AUTH_COOKIE_NAME"],
        domain=config.get("AUTH_COOKIE_DOMAIN"),
        path="/",
        secure=config.get("AUTH_COOKIE_SECURE", True),
        httponly=True,
        samesite="Strict",
    )
    return response


def init_route_guard(app) -> None:
    app.before_request(guard_admin_routes)
