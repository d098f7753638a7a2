import json
import re
import time
import uuid
from unittest.mock import MagicMock

import jwt
import pytest
import requests
from botocore.exceptions import ClientError

from config.settings import TestingConfig
from gallery_admin import create_app
from gallery_admin.extensions import UPLOADS_KEY
from gallery_admin.identity import TokenSet

SIGNING_KEY = "test-signing-key-0123456789abcdef"

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin1234"
VIEWER_EMAIL = "viewer@example.com"
VIEWER_PASSWORD = "viewer1234"


def make_token(claims: dict, expires_in: int = 3600) -> str:
    payload = dict(claims)
    payload["exp"] = int(time.time()) + expires_in
    return jwt.encode(payload, SIGNING_KEY, algorithm="HS256")


class FakeIdentityProvider:
    """Stands in for the Cognito user pool: issues unsigned-checked JWTs."""

    def __init__(self):
        self.users = {}
        self.revoked = []
        self.authenticate_calls = 0
        self.expires_in = 3600

    def add_user(self, email, password, groups=()):
        self.users[email] = (password, list(groups))

    def tokens_for(self, email, groups, expires_in=None):
        expires_in = self.expires_in if expires_in is None else expires_in
        access = make_token(
            {"username": email, "cognito:groups": groups, "token_use": "access"},
            expires_in,
        )
        id_token = make_token({"email": email, "token_use": "id"}, expires_in)
        return TokenSet(
            access_token=access,
            id_token=id_token,
            refresh_token=f"refresh-{uuid.uuid4().hex}",
        )

    def authenticate(self, email, password):
        self.authenticate_calls += 1
        known = self.users.get(email)
        if known is None or known[0] != password:
            raise ClientError(
                {
                    "Error": {
                        "Code": "NotAuthorizedException",
                        "Message": "Incorrect username or password.",
                    }
                },
                "InitiateAuth",
            )
        return self.tokens_for(email, known[1])

    def revoke(self, refresh_token):
        self.revoked.append(refresh_token)


def _response(url, status=200, payload=None):
    response = requests.Response()
    response.status_code = status
    response.url = url
    response._content = json.dumps(payload).encode() if payload is not None else b""
    response.headers["Content-Type"] = "application/json"
    return response


class FakeGalleryApi:
    """In-memory remote gallery API answering ``requests.Session.request``."""

    def __init__(self, base_url="http://api.test"):
        self.base_url = base_url
        self.categories = {}
        self.templates = {}
        self.media = []
        self.requests = []
        self.fail_uploads = set()
        self.fail_all = False

    def _collection(self, name):
        return {"categories": self.categories, "templates": self.templates}[name]

    def handle(self, method, url, headers=None, data=None, **kwargs):
        payload = kwargs.get("json")
        self.requests.append(
            {"method": method, "url": url, "headers": headers or {}, "json": payload}
        )
        if self.fail_all:
            raise requests.ConnectionError("API unreachable")
        path = url[len(self.base_url) :]

        if path == "/admin/media" and method == "POST":
            return self._upload(url, headers or {}, data)
        match = re.fullmatch(r"/admin/media/([^/]+)", path)
        if match and method == "GET":
            items = [m for m in self.media if m["categoryId"] == match.group(1)]
            return _response(url, payload=items)

        match = re.fullmatch(r"/admin/(categories|templates)(?:/([^/]+))?", path)
        if not match:
            return _response(url, 404, {"message": "Not found"})
        store = self._collection(match.group(1))
        item_id = match.group(2)

        if item_id is None and method == "GET":
            return _response(url, payload=list(store.values()))
        if item_id is None and method == "POST":
            item = dict(payload, id=uuid.uuid4().hex[:8])
            store[item["id"]] = item
            return _response(url, 201, item)
        if item_id not in store:
            return _response(url, 404, {"message": "Not found"})
        if method == "GET":
            return _response(url, payload=store[item_id])
        if method == "PUT":
            store[item_id] = dict(payload, id=item_id)
            return _response(url, payload=store[item_id])
        if method == "DELETE":
            del store[item_id]
            return _response(url, 204)
        return _response(url, 405, {"message": "Method not allowed"})

    def _upload(self, url, headers, body):
        raw = b""
        while True:
            chunk = body.read(8192)
            if not chunk:
                break
            raw += chunk
        filename = re.search(rb'filename="([^"]+)"', raw).group(1).decode()
        metadata = json_part(raw, headers["Content-Type"])
        if filename in self.fail_uploads:
            return _response(url, 500, {"message": "storage backend exploded"})
        self.media.append(dict(metadata, id=uuid.uuid4().hex[:8]))
        return _response(url, 201, {"id": self.media[-1]["id"]})

    def count(self, method=None):
        return len(
            [r for r in self.requests if method is None or r["method"] == method]
        )


def json_part(raw: bytes, content_type: str) -> dict:
    """Extract the ``metadata`` JSON part of a multipart body."""
    boundary = content_type.split("boundary=")[1].encode()
    for part in raw.split(b"--" + boundary):
        if b'name="metadata"' in part:
            body = part.split(b"\r\n\r\n", 1)[1].rsplit(b"\r\n", 1)[0]
            return json.loads(body)
    raise AssertionError("metadata part missing")


@pytest.fixture()
def provider():
    fake = FakeIdentityProvider()
    fake.add_user(ADMIN_EMAIL, ADMIN_PASSWORD, groups=["Admin"])
    fake.add_user(VIEWER_EMAIL, VIEWER_PASSWORD, groups=["Viewers"])
    return fake


@pytest.fixture()
def api():
    return FakeGalleryApi()


@pytest.fixture()
def http_session(api):
    session = MagicMock(spec=requests.Session)
    session.request.side_effect = api.handle
    return session


@pytest.fixture()
def app(tmp_path, provider, http_session):
    class Config(TestingConfig):
        PREVIEW_FOLDER = str(tmp_path / "previews")

    flask_app = create_app(
        Config, identity_provider=provider, http_session=http_session
    )
    yield flask_app
    flask_app.extensions[UPLOADS_KEY].close()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def auth(client):
    class AuthActions:
        def login(self, email=ADMIN_EMAIL, password=ADMIN_PASSWORD, **kwargs):
            return client.post(
                "/auth/login",
                data={"email": email, "password": password},
                **kwargs,
            )

        def login_viewer(self, **kwargs):
            return self.login(VIEWER_EMAIL, VIEWER_PASSWORD, **kwargs)

        def logout(self, **kwargs):
            return client.post("/auth/logout", **kwargs)

    return AuthActions()
