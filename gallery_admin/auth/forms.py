"""
Authentication forms.

Sign-in is delegated to the identity provider; the form only checks shape
(a valid email and a plausible password) before any call leaves the console.
"""
from flask_wtf import FlaskForm
from wtforms import EmailField, PasswordField, SubmitField
from wtforms.validators import DataRequired, Email, Length


class LoginForm(FlaskForm):
    """
    Form for administrator sign-in.

    Credentials are exchanged with the identity provider only after both
    fields validate.
    """

    email = EmailField(
        "Email",
        validators=[DataRequired(), Email(message="Invalid email address")],
        render_kw={"placeholder": "Email address", "autocomplete": "username"},
    )
    password = PasswordField(
        "Password",
        validators=[
            DataRequired(),
            Length(min=6, message="Password must be at least 6 characters"),
        ],
        render_kw={"placeholder": "Password", "autocomplete": "current-password"},
    )
    submit = SubmitField("Sign in")
