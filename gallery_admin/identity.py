"""
Auth gateway over the managed identity provider (Cognito user pool).

The gateway is the only place that talks to the identity provider. It exposes
sign-in, sign-out, current-user lookup and the ``is_admin`` predicate, and
hands a fresh bearer token to the resource services on every call.

Tokens are stored server-side (see ``gallery_admin.cache``) under an opaque
session key kept in the Flask session. No refresh-in-place is attempted: an
expired access token is treated as losing the session.
"""
import base64
import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from typing import Any

import boto3
import jwt
import structlog
from botocore import UNSIGNED
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from flask import session

from gallery_admin.errors import AuthenticationError
from gallery_admin.models import AuthUser

logger = structlog.get_logger(__name__)

SESSION_KEY = "auth_session"


@dataclass
class TokenSet:
    access_token: str
    id_token: str
    refresh_token: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "id_token": self.id_token,
            "refresh_token": self.refresh_token,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TokenSet":
        return cls(
            access_token=data["access_token"],
            id_token=data["id_token"],
            refresh_token=data.get("refresh_token"),
        )


@dataclass
class AuthResult:
    """Outcome of a gateway call; exactly one of ``user``/``error`` is set."""

    user: AuthUser | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.user is not None and self.error is None


class SignInError(Exception):
    """The identity provider refused the credentials or demanded a challenge."""


def decode_claims(token: str) -> dict[str, Any]:
    """Decode a JWT's claims without verifying its signature.

    Claims only drive what the console shows; the remote API verifies the
    token it receives. Expiry is still enforced.

    Raises:
        jwt.ExpiredSignatureError: token is past its ``exp``
        jwt.InvalidTokenError: token cannot be decoded
    """
    return jwt.decode(
        token,
        options={"verify_signature": False, "verify_exp": True},
        algorithms=["RS256"],
    )


class CognitoIdentityProvider:
    """Thin wrapper over the ``cognito-idp`` API used by the gateway."""

    def __init__(
        self,
        region: str,
        user_pool_id: str,
        client_id: str,
        client_secret: str | None = None,
        client=None,
    ):
        self.region = region
        self.user_pool_id = user_pool_id
        self.client_id = client_id
        self.client_secret = client_secret
        # InitiateAuth and RevokeToken are public operations: no AWS credentials
        self._client = client or boto3.client(
            "cognito-idp",
            region_name=region,
            config=BotoConfig(signature_version=UNSIGNED),
        )

    @classmethod
    def from_config(cls, config) -> "CognitoIdentityProvider":
        return cls(
            region=config["AWS_REGION"],
            user_pool_id=config["COGNITO_USER_POOL_ID"],
            client_id=config["COGNITO_CLIENT_ID"],
            client_secret=config.get("COGNITO_CLIENT_SECRET"),
        )

    def _secret_hash(self, username: str) -> str:
        digest = hmac.new(
            self.client_secret.encode("utf-8"),
            (username + self.client_id).encode("utf-8"),
            hashlib.sha256,
        ).digest()
        return base64.b64encode(digest).decode("ascii")

    def authenticate(self, email: str, password: str) -> TokenSet:
        params = {"USERNAME": email, "PASSWORD": password}
        if self.client_secret:
            params["SECRET_HASH"] = self._secret_hash(email)
        response = self._client.initiate_auth(
            AuthFlow="USER_PASSWORD_AUTH",
            ClientId=self.client_id,
            AuthParameters=params,
        )
        result = response.get("AuthenticationResult")
        if not result:
            challenge = response.get("ChallengeName", "unknown")
            raise SignInError(f"Additional sign-in challenge required: {challenge}")
        return TokenSet(
            access_token=result["AccessToken"],
            id_token=result["IdToken"],
            refresh_token=result.get("RefreshToken"),
        )

    def revoke(self, refresh_token: str) -> None:
        params = {"Token": refresh_token, "ClientId": self.client_id}
        if self.client_secret:
            params["ClientSecret"] = self.client_secret
        self._client.revoke_token(**params)


class TokenStore:
    """Server-side token storage keyed by an opaque session key."""

    def __init__(self, cache, prefix: str = "tokens:"):
        self._cache = cache
        self._prefix = prefix

    def save(self, tokens: TokenSet, timeout: int | None = None) -> str:
        key = secrets.token_urlsafe(32)
        self._cache.set(self._prefix + key, tokens.to_dict(), timeout=timeout)
        return key

    def load(self, key: str | None) -> TokenSet | None:
        if not key:
            return None
        data = self._cache.get(self._prefix + key)
        return TokenSet.from_dict(data) if data else None

    def delete(self, key: str | None) -> None:
        if key:
            self._cache.delete(self._prefix + key)


class AuthGateway:
    """Sign-in, sign-out, current user and admin predicate over one provider.

    Every call re-reads the stored tokens; nothing about the user is cached
    between calls.
    """

    def __init__(
        self,
        provider: CognitoIdentityProvider,
        store: TokenStore,
        groups_claim: str = "cognito:groups",
        admin_group: str = "Admin",
    ):
        self.provider = provider
        self.store = store
        self.groups_claim = groups_claim
        self.admin_group = admin_group

    def _user_from_tokens(self, tokens: TokenSet) -> AuthUser:
        access_claims = decode_claims(tokens.access_token)
        id_claims = decode_claims(tokens.id_token)
        groups = access_claims.get(self.groups_claim) or []
        email = id_claims.get("email") or access_claims.get("username", "")
        return AuthUser(email=email, groups=list(groups), admin_group=self.admin_group)

    def _drop_session(self) -> None:
        self.store.delete(session.pop(SESSION_KEY, None))

    @property
    def session_key(self) -> str | None:
        """Opaque key of the current session, mirrored into the auth cookie."""
        return session.get(SESSION_KEY)

    def sign_in(self, email: str, password: str) -> AuthResult:
        try:
            tokens = self.provider.authenticate(email, password)
            user = self._user_from_tokens(tokens)
        except (ClientError, BotoCoreError, SignInError, jwt.InvalidTokenError) as e:
            logger.warning(
                "sign_in_failed", email=email, error_type=type(e).__name__
            )
            return AuthResult(user=None, error=e)

        exp = decode_claims(tokens.access_token).get("exp")
        timeout = max(1, int(exp - time.time())) if exp else None
        # Replace any previous session rather than stacking keys
        self._drop_session()
        session[SESSION_KEY] = self.store.save(tokens, timeout=timeout)
        logger.info("sign_in_succeeded", email=user.email, admin=user.is_admin)
        return AuthResult(user=user)

    def sign_out(self) -> Exception | None:
        key = session.get(SESSION_KEY)
        tokens = self.store.load(key)
        error = None
        if tokens and tokens.refresh_token:
            try:
                self.provider.revoke(tokens.refresh_token)
            except (ClientError, BotoCoreError) as e:
                logger.warning("token_revoke_failed", error_type=type(e).__name__)
                error = e
        self._drop_session()
        logger.info("signed_out")
        return error

    def get_current_user(self) -> AuthResult:
        tokens = self.store.load(session.get(SESSION_KEY))
        if tokens is None:
            return AuthResult(user=None, error=AuthenticationError())
        try:
            return AuthResult(user=self._user_from_tokens(tokens))
        except jwt.ExpiredSignatureError:
            self._drop_session()
            return AuthResult(user=None, error=AuthenticationError("Session expired"))
        except jwt.InvalidTokenError as e:
            self._drop_session()
            return AuthResult(user=None, error=e)

    def is_admin(self) -> bool:
        try:
            result = self.get_current_user()
        except Exception:
            return False
        return bool(result.user and result.user.is_admin)

    def bearer_token(self) -> str:
        """Return the ID token of a live session.

        Raises:
            AuthenticationError: no session, or its tokens have expired
        """
        result = self.get_current_user()
        if result.user is None:
            raise AuthenticationError(str(result.error or "No current session"))
        tokens = self.store.load(session.get(SESSION_KEY))
        if tokens is None:
            raise AuthenticationError()
        return tokens.id_token
