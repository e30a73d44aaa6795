"""HTTP connection to the Proxmox VE REST API.

This module wraps a ``requests`` session with:
- API token or ticket (username/password) authentication
- TLS verification against the system store or a custom CA bundle
- Mapping of HTTP failures onto the pvectl exception hierarchy
- Retry with exponential backoff for transient failures
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import requests

from pvectl.core.exceptions import (
    ApiConnectionError,
    ApiError,
    AuthenticationError,
    ResourceNotFoundError,
    TransientApiError,
)
from pvectl.models.config import ResolvedConfig
from pvectl.utils.logging import get_logger
from pvectl.utils.retry import retry_with_backoff

logger = get_logger("connection")

API_PREFIX = "api2/json"

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

DEFAULT_REALM = "pam"


def _encode_params(params: dict[str, Any] | None) -> dict[str, Any] | None:
    """Drop unset values and send booleans as 0/1, as the API expects."""
    if params is None:
        return None
    encoded: dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        encoded[key] = int(value) if isinstance(value, bool) else value
    return encoded


class Connection:
    """Authenticated session against one Proxmox VE endpoint.

    Transient failures (HTTP 429/500/502/503/504, connection errors and
    timeouts) are retried ``retry_count`` times with exponential
    backoff. Reads are always retried; writes only when
    ``retry_writes`` is enabled.

    Args:
        config: Resolved connection settings.
        session: Optional pre-built requests session.

    Example:
        >>> connection = Connection(service.current_config)
        >>> connection.get("cluster/resources", params={"type": "vm"})
        [{'vmid': 100, 'node': 'pve1', 'type': 'qemu', ...}]
    """

    def __init__(self, config: ResolvedConfig, session: requests.Session | None = None) -> None:
        self.config = config
        self.base_url = f"{config.server.rstrip('/')}/{API_PREFIX}"
        self.session = session or requests.Session()
        self.session.verify = self._verify_setting()
        self._authenticated = False

        if config.token_auth:
            self.session.headers["Authorization"] = (
                f"PVEAPIToken={config.token_id}={config.token_secret}"
            )
            self._authenticated = True

        logger.debug(f"Initialized connection to {self.base_url}")

    def _verify_setting(self) -> bool | str:
        if self.config.verify_ssl and self.config.certificate_authority:
            return str(Path(self.config.certificate_authority).expanduser())
        return self.config.verify_ssl

    @property
    def username(self) -> str | None:
        """Username with realm, defaulting to ``@pam``."""
        username = self.config.username
        if username and "@" not in username:
            return f"{username}@{DEFAULT_REALM}"
        return username

    def login(self) -> None:
        """Obtain an authentication ticket for password authentication.

        Raises:
            AuthenticationError: If the credentials are rejected.
            ApiConnectionError: If the server cannot be reached.
        """
        logger.debug(f"Requesting ticket for {self.username}")
        try:
            data = self._send(
                "POST",
                "access/ticket",
                {"username": self.username, "password": self.config.password},
            )
        except AuthenticationError as e:
            raise AuthenticationError(
                f"Login failed for user '{self.username}'", status_code=e.status_code
            ) from e

        if not isinstance(data, dict) or "ticket" not in data:
            raise AuthenticationError(f"Login failed for user '{self.username}'")

        self.session.cookies.set("PVEAuthCookie", data["ticket"])
        csrf_token = data.get("CSRFPreventionToken")
        if csrf_token:
            self.session.headers["CSRFPreventionToken"] = csrf_token
        self._authenticated = True

    def _ensure_authenticated(self) -> None:
        if not self._authenticated:
            self.login()

    def _retries_allowed(self, method: str) -> bool:
        return method in IDEMPOTENT_METHODS or self.config.retry_writes

    def request(self, method: str, path: str, params: dict[str, Any] | None = None) -> Any:
        """Send a request and return the response's ``data`` member.

        Args:
            method: HTTP method.
            path: API path relative to ``/api2/json``.
            params: Query parameters (GET/DELETE) or form fields (POST/PUT).

        Raises:
            AuthenticationError: On 401/403.
            ResourceNotFoundError: On 404.
            TransientApiError: On a retryable status after the last attempt.
            ApiError: On any other error status.
            ApiConnectionError: If the server cannot be reached.
        """
        method = method.upper()
        self._ensure_authenticated()

        attempts = 1
        if self._retries_allowed(method):
            attempts = self.config.retry_count + 1

        send = retry_with_backoff(
            max_attempts=attempts,
            base_delay=self.config.retry_delay,
            max_delay=self.config.max_retry_delay,
            jitter=False,
            exceptions=(TransientApiError, ApiConnectionError),
        )(self._send)
        return send(method, path, params)

    def _send(self, method: str, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        payload = _encode_params(params)
        kwargs: dict[str, Any] = {}
        if method in ("POST", "PUT"):
            kwargs["data"] = payload
        else:
            kwargs["params"] = payload

        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, timeout=self.config.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise ApiConnectionError(
                self.config.server, f"Request timed out after {self.config.timeout}s"
            ) from e
        except requests.exceptions.RequestException as e:
            raise ApiConnectionError(self.config.server, str(e)) from e

        self._raise_for_status(response)

        try:
            body = response.json()
        except ValueError as e:
            raise ApiError(
                f"Invalid JSON response from {method} {path}", status_code=response.status_code
            ) from e

        if isinstance(body, dict):
            return body.get("data")
        return body

    def _raise_for_status(self, response: requests.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        message = f"HTTP {status}: {response.reason or 'error'}"
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("errors"):
            errors = body["errors"]
            if isinstance(errors, dict):
                details = "; ".join(f"{k}: {v}" for k, v in errors.items())
            else:
                details = str(errors)
            message = f"{message} ({details})"

        logger.debug(f"API error: {message}")

        if status in (401, 403):
            raise AuthenticationError(message, status_code=status)
        if status == 404:
            raise ResourceNotFoundError(message, status_code=status)
        if status in RETRYABLE_STATUS_CODES:
            raise TransientApiError(message, status_code=status)
        raise ApiError(message, status_code=status)

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a resource."""
        return self.request("GET", path, params)

    def post(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """POST to a resource."""
        return self.request("POST", path, params)

    def put(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """PUT to a resource."""
        return self.request("PUT", path, params)

    def delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """DELETE a resource."""
        return self.request("DELETE", path, params)

    def version(self) -> dict[str, Any]:
        """Return the server's version information."""
        return self.get("version") or {}

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
