"""Configuration models for pvectl.

This module defines the kubeconfig-style value objects stored in the
configuration file (clusters, users, contexts) and the flattened
ResolvedConfig produced by merging them with environment and CLI
overrides.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from pvectl.core.exceptions import InvalidConfigError

SECRET_MASK = "********"


def _validation_message(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "value"
        parts.append(f"{loc.replace('_', '-')}: {err['msg']}")
    return "; ".join(parts)


class Cluster(BaseModel):
    """A Proxmox server and its connection settings.

    Args:
        name: Unique name identifying this cluster.
        server: Proxmox server URL (e.g. https://pve.example.com:8006).
        verify_ssl: Whether to verify TLS certificates.
        certificate_authority: Path to a CA bundle.
        timeout: Request timeout in seconds.
        retry_count: Maximum retry attempts (zero disables retries).
        retry_delay: Base delay between retries in seconds.
        max_retry_delay: Cap for the exponential backoff delay.
        retry_writes: Whether non-idempotent requests may be retried.

    Example:
        >>> cluster = Cluster.from_dict({
        ...     "name": "production",
        ...     "cluster": {"server": "https://pve.example.com:8006"},
        ... })
        >>> cluster.verify_ssl
        True
    """

    model_config = ConfigDict(frozen=True)

    name: str
    server: str | None = None
    verify_ssl: bool = True
    certificate_authority: str | None = None
    timeout: int | float | None = None
    retry_count: int | None = None
    retry_delay: int | float | None = None
    max_retry_delay: int | float | None = None
    retry_writes: bool | None = None

    @model_validator(mode="after")
    def validate_retry_settings(self) -> Cluster:
        """Check timeout and retry settings.

        Raises:
            InvalidConfigError: If a value is out of range.
        """
        for field_name in ("timeout", "retry_delay", "max_retry_delay"):
            value = getattr(self, field_name)
            if value is not None and value <= 0:
                raise InvalidConfigError(
                    f"{field_name.replace('_', '-')} must be a positive number, got: {value!r}"
                )

        if self.retry_count is not None and self.retry_count < 0:
            raise InvalidConfigError(
                f"retry-count must be a non-negative integer, got: {self.retry_count!r}"
            )

        if (
            self.retry_delay is not None
            and self.max_retry_delay is not None
            and self.max_retry_delay < self.retry_delay
        ):
            raise InvalidConfigError(
                f"max-retry-delay ({self.max_retry_delay}) must be >= "
                f"retry-delay ({self.retry_delay})"
            )
        return self

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Cluster:
        """Create a Cluster from a ``clusters`` list entry.

        Args:
            data: Mapping with ``name`` and ``cluster`` keys.

        Returns:
            The cluster.

        Raises:
            InvalidConfigError: If a value has the wrong type or range.
        """
        stanza = data.get("cluster") or {}
        try:
            return cls(
                name=data.get("name"),
                server=stanza.get("server"),
                verify_ssl=not stanza.get("insecure-skip-tls-verify", False),
                certificate_authority=stanza.get("certificate-authority"),
                timeout=stanza.get("timeout"),
                retry_count=stanza.get("retry-count"),
                retry_delay=stanza.get("retry-delay"),
                max_retry_delay=stanza.get("max-retry-delay"),
                retry_writes=stanza.get("retry-writes"),
            )
        except ValidationError as e:
            raise InvalidConfigError(
                f"Invalid cluster '{data.get('name')}': {_validation_message(e)}"
            ) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to a ``clusters`` list entry for the config file."""
        stanza: dict[str, Any] = {
            "server": self.server,
            "insecure-skip-tls-verify": not self.verify_ssl,
        }
        optional = {
            "certificate-authority": self.certificate_authority,
            "timeout": self.timeout,
            "retry-count": self.retry_count,
            "retry-delay": self.retry_delay,
            "max-retry-delay": self.max_retry_delay,
            "retry-writes": self.retry_writes,
        }
        stanza.update({k: v for k, v in optional.items() if v is not None})
        return {"name": self.name, "cluster": stanza}


class User(BaseModel):
    """Credentials for the Proxmox API.

    Either an API token pair (``token_id`` + ``token_secret``) or a
    username/password pair. Token auth is preferred when both are set.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    token_id: str | None = None
    token_secret: str | None = None
    username: str | None = None
    password: str | None = None

    @property
    def token_auth(self) -> bool:
        """True if both token fields are non-empty."""
        return bool(self.token_id) and bool(self.token_secret)

    @property
    def password_auth(self) -> bool:
        """True if both username and password are non-empty."""
        return bool(self.username) and bool(self.password)

    @property
    def is_valid(self) -> bool:
        """True if any complete credential pair is present."""
        return self.token_auth or self.password_auth

    def masked(self) -> User:
        """Return a copy with secret fields replaced by the mask."""
        return self.model_copy(
            update={
                "token_secret": SECRET_MASK if self.token_secret else None,
                "password": SECRET_MASK if self.password else None,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        """Create a User from a ``users`` list entry."""
        stanza = data.get("user") or {}
        try:
            return cls(
                name=data.get("name"),
                token_id=stanza.get("token-id"),
                token_secret=stanza.get("token-secret"),
                username=stanza.get("username"),
                password=stanza.get("password"),
            )
        except ValidationError as e:
            raise InvalidConfigError(
                f"Invalid user '{data.get('name')}': {_validation_message(e)}"
            ) from e

    def to_dict(self, mask_secrets: bool = False) -> dict[str, Any]:
        """Convert to a ``users`` list entry.

        Args:
            mask_secrets: Replace secrets with the mask string.
        """
        stanza: dict[str, Any] = {}
        if self.token_auth:
            stanza["token-id"] = self.token_id
            stanza["token-secret"] = SECRET_MASK if mask_secrets else self.token_secret
        if self.password_auth:
            stanza["username"] = self.username
            stanza["password"] = SECRET_MASK if mask_secrets else self.password
        return {"name": self.name, "user": stanza}


class Context(BaseModel):
    """Binds a cluster to a user, optionally with a default node.

    References are not checked here; unknown names fail when the
    context is resolved.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    cluster_ref: str | None = None
    user_ref: str | None = None
    default_node: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Context:
        """Create a Context from a ``contexts`` list entry."""
        stanza = data.get("context") or {}
        try:
            return cls(
                name=data.get("name"),
                cluster_ref=stanza.get("cluster"),
                user_ref=stanza.get("user"),
                default_node=stanza.get("default-node"),
            )
        except ValidationError as e:
            raise InvalidConfigError(
                f"Invalid context '{data.get('name')}': {_validation_message(e)}"
            ) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to a ``contexts`` list entry."""
        stanza: dict[str, Any] = {"cluster": self.cluster_ref, "user": self.user_ref}
        if self.default_node:
            stanza["default-node"] = self.default_node
        return {"name": self.name, "context": stanza}


class AuthType(str, Enum):
    """Authentication methods supported by the Proxmox API."""

    TOKEN = "token"
    PASSWORD = "password"


DEFAULT_TIMEOUT = 30
DEFAULT_RETRY_COUNT = 3
DEFAULT_RETRY_DELAY = 1
DEFAULT_MAX_RETRY_DELAY = 30
DEFAULT_RETRY_WRITES = False


class ResolvedConfig(BaseModel):
    """Fully merged connection settings for one invocation.

    Built only by ``ConfigProvider.resolve``. Retry and timeout fields
    that are ``None`` fall back to the module defaults.

    Example:
        >>> config = ResolvedConfig(
        ...     context_name="prod",
        ...     server="https://pve.example.com:8006",
        ...     auth_type=AuthType.TOKEN,
        ...     token_id="root@pam!automation",
        ...     token_secret="secret",
        ... )
        >>> config.timeout
        30
    """

    model_config = ConfigDict(frozen=True)

    context_name: str
    server: str
    auth_type: AuthType
    verify_ssl: bool = True
    certificate_authority: str | None = None
    token_id: str | None = None
    token_secret: str | None = None
    username: str | None = None
    password: str | None = None
    default_node: str | None = None
    timeout: int | float = Field(default=DEFAULT_TIMEOUT)
    retry_count: int = Field(default=DEFAULT_RETRY_COUNT)
    retry_delay: int | float = Field(default=DEFAULT_RETRY_DELAY)
    max_retry_delay: int | float = Field(default=DEFAULT_MAX_RETRY_DELAY)
    retry_writes: bool = Field(default=DEFAULT_RETRY_WRITES)

    @model_validator(mode="before")
    @classmethod
    def apply_defaults(cls, data: Any) -> Any:
        """Treat explicit ``None`` retry/timeout values as unset.

        An unset max-retry-delay never falls below the base delay.
        """
        if isinstance(data, dict):
            defaults = {
                "timeout": DEFAULT_TIMEOUT,
                "retry_count": DEFAULT_RETRY_COUNT,
                "retry_delay": DEFAULT_RETRY_DELAY,
                "retry_writes": DEFAULT_RETRY_WRITES,
            }
            for key, default in defaults.items():
                if data.get(key) is None:
                    data = {**data, key: default}
            if data.get("max_retry_delay") is None:
                base = data["retry_delay"]
                cap = DEFAULT_MAX_RETRY_DELAY
                if isinstance(base, (int, float)) and base > cap:
                    cap = base
                data = {**data, "max_retry_delay": cap}
        return data

    @model_validator(mode="after")
    def check_delays(self) -> ResolvedConfig:
        """Reject a backoff cap below the base delay.

        Raises:
            InvalidConfigError: If max-retry-delay < retry-delay.
        """
        if self.max_retry_delay < self.retry_delay:
            raise InvalidConfigError(
                f"max-retry-delay ({self.max_retry_delay}) must be >= "
                f"retry-delay ({self.retry_delay})"
            )
        return self

    @property
    def token_auth(self) -> bool:
        """True when authenticating with an API token."""
        return self.auth_type == AuthType.TOKEN

    @property
    def password_auth(self) -> bool:
        """True when authenticating with username and password."""
        return self.auth_type == AuthType.PASSWORD

    def to_connection_options(self) -> dict[str, Any]:
        """Options consumed by ``Connection``."""
        options: dict[str, Any] = {
            "server": self.server,
            "verify_ssl": self.verify_ssl,
        }
        if self.token_auth:
            options["token"] = self.token_id
            options["secret"] = self.token_secret
        else:
            options["username"] = self.username
            options["password"] = self.password
        return options
