"""
Public routes for the gallery console.

Only the landing page lives here; everything else is under ``/admin``.
"""
from flask import Blueprint, render_template
from flask_login import current_user

# Create main blueprint
main_bp = Blueprint("main", __name__)


@main_bp.route("/")
def index():
    """
    Landing page for the gallery console.

    Offers a link to the login page, or straight to the dashboard for a
    signed-in user.

    Returns:
        Response: Rendered landing page template
    """
    return render_template(
        "main/index.html",
        title="Gallery Admin",
        signed_in=current_user.is_authenticated,
    )
