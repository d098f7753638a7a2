"""
HTTP client for the remote gallery API.

Every request carries ``Authorization: Bearer <token>`` with the token read
from the auth gateway at call time. Transport and HTTP errors are not caught
here; ``requests`` exceptions reach the caller unchanged and nothing is
retried.
"""
from collections.abc import Callable
from typing import Any

import requests
import structlog

logger = structlog.get_logger(__name__)


class ApiClient:
    """
    Bearer-authenticated wrapper around a ``requests.Session``.

    Args:
        base_url: API endpoint root, without a trailing slash
        token_source: zero-argument callable returning the bearer credential;
            called once per request and never cached
        session: optional ``requests.Session`` (tests pass a mock)
        timeout: optional request timeout in seconds; ``None`` keeps the
            transport default
    """

    def __init__(
        self,
        base_url: str,
        token_source: Callable[[], str],
        session: requests.Session | None = None,
        timeout: float | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._token_source = token_source
        self.session = session or requests.Session()
        self.timeout = timeout

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = f"Bearer {self._token_source()}"
        if self.timeout is not None:
            kwargs.setdefault("timeout", self.timeout)
        response = self.session.request(
            method, self.url(path), headers=headers, **kwargs
        )
        logger.debug(
            "api_request",
            http_method=method,
            api_path=path,
            status=response.status_code,
        )
        response.raise_for_status()
        return response

    def get_json(self, path: str) -> Any:
        return self.request("GET", path).json()

    def post_json(self, path: str, payload: dict[str, Any]) -> Any:
        return self.request("POST", path, json=payload).json()

    def put_json(self, path: str, payload: dict[str, Any]) -> Any:
        return self.request("PUT", path, json=payload).json()

    def delete(self, path: str) -> None:
        self.request("DELETE", path)
