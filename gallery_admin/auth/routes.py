"""
Authentication routes for sign-in and sign-out.

Credentials are exchanged with the identity provider through the auth
gateway. A successful sign-in stores the provider's tokens server-side and
sets the auth cookie that the route guard looks for; signing out removes
both.
"""
from urllib.parse import urlparse

from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_user, logout_user

from gallery_admin.admin.forms import ActionForm
from gallery_admin.auth.forms import LoginForm
from gallery_admin.extensions import get_gateway, get_upload_registry, limiter
from gallery_admin.route_guard import clear_auth_cookie, set_auth_cookie

# Create authentication blueprint
auth_bp = Blueprint("auth", __name__)


def _safe_next(target: str | None) -> str | None:
    """Only follow same-site relative redirects."""
    if not target or "\\" in target or target.startswith("//"):
        return None
    parsed = urlparse(target)
    if parsed.scheme or parsed.netloc or not target.startswith("/"):
        return None
    return target


@auth_bp.route("/login", methods=["GET", "POST"])
@limiter.limit(lambda: current_app.config.get("LOGIN_RATE_LIMIT", "10 per minute"))
def login():
    """Handle administrator sign-in.

    Methods:
        GET: Display the login form.
        POST: Validate the form, then exchange the credentials with the
            identity provider.

    Form Data (POST):
        email (str): account email
        password (str): account password (at least 6 characters)

    Returns:
        Response: login template on GET or failure; on success a redirect to
        the dashboard (or a safe ``next`` path) carrying the auth cookie.
    """
    if current_user.is_authenticated:
        if request.cookies.get(current_app.config["AUTH_COOKIE_NAME"]):
            return redirect(url_for("admin.dashboard"))
        # Losing the auth cookie counts as losing the session
        _end_session()
        flash("Your session has ended. Please sign in again.", "info")

    form = LoginForm()
    if not form.validate_on_submit():
        return render_template("auth/login.html", title="Sign In", form=form)

    gateway = get_gateway()
    result = gateway.sign_in(form.email.data, form.password.data)
    if not result.ok:
        flash("Invalid credentials", "danger")
        return render_template("auth/login.html", title="Sign In", form=form)

    login_user(result.user)
    current_app.logger.info("User login successful: %s", result.user.email)
    flash("Successfully logged in", "success")

    destination = _safe_next(request.args.get("next")) or url_for("admin.dashboard")
    response = redirect(destination)
    return set_auth_cookie(response, gateway.session_key)


def _end_session() -> None:
    """Drop server-side tokens, the pending upload batch and the login."""
    get_upload_registry().discard()
    error = get_gateway().sign_out()
    if error is not None:
        current_app.logger.warning("Sign-out revocation failed: %s", error)
    logout_user()


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """Sign out: drop server-side tokens, pending uploads, and the auth cookie."""
    form = ActionForm()
    if not form.validate_on_submit():
        abort(400)
    _end_session()
    flash("You have been signed out.", "info")
    response = redirect(url_for("auth.login"))
    return clear_auth_cookie(response)
