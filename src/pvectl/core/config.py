"""Configuration management for pvectl.

The configuration file follows the kubeconfig layout: named ``clusters``,
``users`` and ``contexts`` plus a ``current-context``. Three classes
cooperate on it:

- ConfigProvider reads the file and environment and resolves the active
  context into a ResolvedConfig (priority CLI > ENV > file).
- ConfigStore writes changes back with owner-only permissions.
- ConfigService is the facade used by the CLI for one invocation.

The default config location is ~/.pvectl/config, which can be
overridden with ``--config`` or the PVECTL_CONFIG environment variable.
"""

from __future__ import annotations

import copy
import os
import re
import stat
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from pvectl.core.exceptions import (
    ClusterNotFoundError,
    ConfigNotFoundError,
    ConfigurationError,
    ContextNotFoundError,
    InvalidConfigError,
    MissingCredentialsError,
    UserNotFoundError,
)
from pvectl.models.config import (
    SECRET_MASK,
    AuthType,
    Cluster,
    Context,
    ResolvedConfig,
    User,
)
from pvectl.utils.logging import get_logger
from pvectl.utils.output import print_warning

logger = get_logger("config")

CONFIG_ENV_VAR = "PVECTL_CONFIG"
CONTEXT_ENV_VAR = "PVECTL_CONTEXT"

# Fields that may be overridden from the CLI and the environment
OVERRIDABLE_FIELDS = (
    "server",
    "verify_ssl",
    "timeout",
    "retry_count",
    "retry_delay",
    "max_retry_delay",
    "retry_writes",
)

_INTEGER_PATTERN = re.compile(r"\d+")


def get_default_config_path() -> Path:
    """Get the default configuration file path.

    Returns:
        ``~/.pvectl/config``.
    """
    return Path.home() / ".pvectl" / "config"


def empty_config() -> dict[str, Any]:
    """Skeleton written when a configuration file is first created."""
    return {
        "apiVersion": "pvectl/v1",
        "kind": "Config",
        "clusters": [],
        "users": [],
        "contexts": [],
        "current-context": None,
    }


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open("r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidConfigError(
            f"Invalid YAML in {path}: {e}",
            details={"path": str(path)},
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigError(
            f"Invalid configuration in {path}: top level must be a mapping",
            details={"path": str(path)},
        )
    return data


class ConfigProvider:
    """Loads configuration sources and resolves them into a ResolvedConfig.

    The provider never mutates its inputs. Priority for every
    overridable field is CLI option, then environment variable, then
    configuration file.

    Example:
        >>> provider = ConfigProvider()
        >>> config = provider.resolve("~/.pvectl/config", {"context": "prod"})
        >>> config.server
        'https://pve1.example.com:8006'
    """

    ENV_VARS: dict[str, str] = {
        "PROXMOX_HOST": "server",
        "PROXMOX_TOKEN_ID": "token_id",
        "PROXMOX_TOKEN_SECRET": "token_secret",
        "PROXMOX_USER": "username",
        "PROXMOX_PASSWORD": "password",
        "PROXMOX_VERIFY_SSL": "verify_ssl",
        CONTEXT_ENV_VAR: "context",
        CONFIG_ENV_VAR: "config_path",
        "PROXMOX_TIMEOUT": "timeout",
        "PROXMOX_RETRY_COUNT": "retry_count",
        "PROXMOX_RETRY_DELAY": "retry_delay",
        "PROXMOX_MAX_RETRY_DELAY": "max_retry_delay",
        "PROXMOX_RETRY_WRITES": "retry_writes",
    }

    INTEGER_VARS = frozenset({"timeout", "retry_count", "retry_delay", "max_retry_delay"})
    BOOLEAN_VARS = frozenset({"verify_ssl", "retry_writes"})

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        """Environment mapping in use (``os.environ`` unless injected)."""
        return os.environ if self._environ is None else self._environ

    def file_exists(self, path: str | Path) -> bool:
        """Check whether a configuration file exists."""
        return Path(path).expanduser().is_file()

    def insecure_permissions(self, path: str | Path) -> bool:
        """Check whether a file is readable or writable by group or others.

        Returns:
            False for a missing file.
        """
        path = Path(path).expanduser()
        if not path.exists():
            return False
        mode = stat.S_IMODE(path.stat().st_mode)
        return bool(mode & 0o077)

    def load_file(self, path: str | Path) -> dict[str, Any]:
        """Load a YAML configuration file.

        Args:
            path: Path to the configuration file.

        Returns:
            The parsed mapping (empty for an empty file).

        Raises:
            ConfigNotFoundError: If the file does not exist.
            InvalidConfigError: If the YAML is malformed.
        """
        path = Path(path).expanduser()
        if not path.is_file():
            raise ConfigNotFoundError(str(path))
        return _read_yaml(path)

    def load_env(self, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
        """Read recognised settings from environment variables.

        Empty values are ignored. Integer settings must be non-negative
        integers; boolean settings accept ``true``, ``1`` or ``yes`` in
        any case and treat everything else as false.

        Args:
            environ: Environment mapping. Defaults to the provider's.

        Returns:
            Mapping of config key to parsed value.

        Raises:
            InvalidConfigError: If an integer setting is malformed.
        """
        env = self.environ if environ is None else environ
        result: dict[str, Any] = {}

        for env_var, key in self.ENV_VARS.items():
            value = env.get(env_var)
            if not value:
                continue
            result[key] = self._parse_env_value(key, value)

        return result

    def _parse_env_value(self, key: str, value: str) -> Any:
        if key in self.BOOLEAN_VARS:
            return value.strip().lower() in ("true", "1", "yes")
        if key in self.INTEGER_VARS:
            if not _INTEGER_PATTERN.fullmatch(value):
                raise InvalidConfigError(
                    f"Invalid integer for {key.replace('_', '-')}: '{value}' "
                    "(must be a non-negative integer)",
                    details={"key": key, "value": value},
                )
            return int(value)
        return value

    def resolve_context_name(
        self,
        cli_options: Mapping[str, Any],
        file_config: Mapping[str, Any] | None = None,
    ) -> str | None:
        """Determine the active context name.

        Priority: CLI ``context`` option, PVECTL_CONTEXT, then the file's
        ``current-context``.
        """
        file_config = file_config or {}
        return (
            cli_options.get("context")
            or self.environ.get(CONTEXT_ENV_VAR)
            or file_config.get("current-context")
        )

    def resolve(
        self,
        config_path: str | Path,
        cli_options: Mapping[str, Any] | None = None,
        cluster_override: str | None = None,
    ) -> ResolvedConfig:
        """Resolve the active context into connection settings.

        Args:
            config_path: Path to the configuration file.
            cli_options: CLI options. ``context`` selects the context; any
                of ``server``, ``verify_ssl``, ``timeout``,
                ``retry_count``, ``retry_delay``, ``max_retry_delay`` and
                ``retry_writes`` override the other layers when not None.
            cluster_override: Use this cluster instead of the context's.

        Returns:
            The merged configuration.

        Raises:
            ConfigNotFoundError: If the file does not exist.
            InvalidConfigError: If the file, environment or merged values
                are invalid.
            ContextNotFoundError: If the context does not exist.
            ClusterNotFoundError: If the cluster does not exist.
            UserNotFoundError: If the user does not exist.
            MissingCredentialsError: If no complete credential pair exists.
        """
        cli_options = cli_options or {}
        file_config = self.load_file(config_path)
        env_config = self.load_env()

        context_name = self.resolve_context_name(cli_options, file_config)
        context = self._find_context(file_config, context_name)

        cluster = self._find_cluster(file_config, cluster_override or context.cluster_ref)
        user = self._find_user(file_config, context.user_ref)

        return self._build_resolved_config(context, cluster, user, env_config, cli_options)

    def _find_context(self, config: Mapping[str, Any], name: str | None) -> Context:
        entries = config.get("contexts") or []
        for entry in entries:
            if name is not None and entry.get("name") == name:
                return Context.from_dict(entry)
        raise ContextNotFoundError(name, [e.get("name") for e in entries])

    def _find_cluster(self, config: Mapping[str, Any], name: str | None) -> Cluster:
        entries = config.get("clusters") or []
        for entry in entries:
            if entry.get("name") == name:
                return Cluster.from_dict(entry)
        raise ClusterNotFoundError(name, [e.get("name") for e in entries])

    def _find_user(self, config: Mapping[str, Any], name: str | None) -> User:
        entries = config.get("users") or []
        for entry in entries:
            if entry.get("name") == name:
                return User.from_dict(entry)
        raise UserNotFoundError(name, [e.get("name") for e in entries])

    def _build_resolved_config(
        self,
        context: Context,
        cluster: Cluster,
        user: User,
        env_config: Mapping[str, Any],
        cli_options: Mapping[str, Any],
    ) -> ResolvedConfig:
        merged: dict[str, Any] = {}
        for field in OVERRIDABLE_FIELDS:
            if cli_options.get(field) is not None:
                merged[field] = cli_options[field]
            elif env_config.get(field) is not None:
                merged[field] = env_config[field]
            else:
                merged[field] = getattr(cluster, field)

        if not merged["server"]:
            raise InvalidConfigError(
                f"No server configured for cluster '{cluster.name}'",
                details={"cluster": cluster.name},
            )

        # Overrides may break the delay ordering the cluster enforced
        try:
            Cluster.model_validate({"name": cluster.name, **merged})
        except ValidationError as e:
            raise InvalidConfigError(f"Invalid override for cluster '{cluster.name}': {e}") from e

        auth = self._resolve_auth(user, env_config)
        logger.debug(
            f"Resolved context '{context.name}': server={merged['server']} "
            f"auth={auth['auth_type'].value}"
        )

        return ResolvedConfig(
            context_name=context.name,
            certificate_authority=cluster.certificate_authority,
            default_node=context.default_node,
            **merged,
            **auth,
        )

    def _resolve_auth(self, user: User, env_config: Mapping[str, Any]) -> dict[str, Any]:
        """Pick credentials: env token, env password, user token, user password."""
        if env_config.get("token_id") and env_config.get("token_secret"):
            return {
                "auth_type": AuthType.TOKEN,
                "token_id": env_config["token_id"],
                "token_secret": env_config["token_secret"],
            }
        if env_config.get("username") and env_config.get("password"):
            return {
                "auth_type": AuthType.PASSWORD,
                "username": env_config["username"],
                "password": env_config["password"],
            }
        if user.token_auth:
            return {
                "auth_type": AuthType.TOKEN,
                "token_id": user.token_id,
                "token_secret": user.token_secret,
            }
        if user.password_auth:
            return {
                "auth_type": AuthType.PASSWORD,
                "username": user.username,
                "password": user.password,
            }
        raise MissingCredentialsError(
            f"User '{user.name}' has no complete credentials "
            "(need token-id and token-secret, or username and password)",
            details={"user": user.name},
        )


class ConfigStore:
    """Persists configuration changes with restrictive permissions.

    Every targeted update re-reads the file, touches only the targeted
    entry and keeps the file's existing permission bits.
    """

    SECURE_MODE = 0o600
    SECURE_DIR_MODE = 0o700

    def save(self, path: str | Path, config: Mapping[str, Any]) -> None:
        """Write a full configuration file with owner-only permissions.

        Args:
            path: Destination path.
            config: Configuration mapping to write.
        """
        path = Path(path).expanduser()
        if not path.parent.is_dir():
            path.parent.mkdir(parents=True)
            path.parent.chmod(self.SECURE_DIR_MODE)

        self._write(path, config)
        path.chmod(self.SECURE_MODE)
        logger.debug(f"Saved configuration to {path}")

    def update_current_context(self, path: str | Path, name: str) -> None:
        """Set ``current-context`` in an existing file.

        Raises:
            ConfigNotFoundError: If the file does not exist.
        """
        path, config = self._read_existing(path)
        config["current-context"] = name
        self._rewrite(path, config)

    def upsert_context(self, path: str | Path, context: Context) -> None:
        """Add or replace a context entry."""
        self._upsert(path, "contexts", context.name, context.to_dict())

    def upsert_cluster(self, path: str | Path, cluster: Cluster) -> None:
        """Add or replace a cluster entry."""
        self._upsert(path, "clusters", cluster.name, cluster.to_dict())

    def upsert_user(self, path: str | Path, user: User) -> None:
        """Add or replace a user entry."""
        self._upsert(path, "users", user.name, user.to_dict())

    def _upsert(self, path: str | Path, section: str, name: str, entry: dict[str, Any]) -> None:
        path, config = self._read_existing(path)
        entries = config.get(section) or []

        for i, existing in enumerate(entries):
            if existing.get("name") == name:
                entries[i] = entry
                break
        else:
            entries.append(entry)

        config[section] = entries
        self._rewrite(path, config)
        logger.debug(f"Updated {section} entry '{name}' in {path}")

    def _read_existing(self, path: str | Path) -> tuple[Path, dict[str, Any]]:
        path = Path(path).expanduser()
        if not path.is_file():
            raise ConfigNotFoundError(str(path))
        return path, _read_yaml(path)

    def _rewrite(self, path: Path, config: Mapping[str, Any]) -> None:
        mode = stat.S_IMODE(path.stat().st_mode)
        self._write(path, config)
        path.chmod(mode)

    def _write(self, path: Path, config: Mapping[str, Any]) -> None:
        with path.open("w") as f:
            yaml.safe_dump(dict(config), f, default_flow_style=False, sort_keys=False)


class ConfigService:
    """Facade over ConfigProvider and ConfigStore for one CLI invocation.

    The service starts unloaded. ``load`` reads the file and determines
    the active context; the resolved connection settings are computed on
    first access of ``current_config`` and cached until a mutation.

    Args:
        provider: Configuration provider. A default one is created if omitted.
        store: Configuration store. A default one is created if omitted.

    Example:
        >>> service = ConfigService()
        >>> service.load({"context": "prod"})
        >>> service.current_config.server
        'https://pve1.example.com:8006'
        >>> service.use_context("dev")
    """

    def __init__(
        self,
        provider: ConfigProvider | None = None,
        store: ConfigStore | None = None,
    ) -> None:
        self.provider = provider or ConfigProvider()
        self.store = store or ConfigStore()
        self._loaded = False
        self._config_path: Path | None = None
        self._raw_config: dict[str, Any] = {}
        self._current_context_name: str | None = None
        self._overrides: dict[str, Any] = {}
        self._resolved: ResolvedConfig | None = None

    @property
    def is_loaded(self) -> bool:
        """True after a successful ``load``."""
        return self._loaded

    @property
    def config_path(self) -> Path | None:
        """Path of the loaded configuration file."""
        return self._config_path

    @property
    def raw_config(self) -> dict[str, Any]:
        """Parsed configuration file contents."""
        return self._raw_config

    @property
    def current_context_name(self) -> str | None:
        """Name of the active context."""
        return self._current_context_name

    def resolve_config_path(self, cli_options: Mapping[str, Any]) -> Path:
        """Determine the file to load: CLI ``config``, PVECTL_CONFIG, default."""
        path = (
            cli_options.get("config")
            or self.provider.environ.get(CONFIG_ENV_VAR)
            or get_default_config_path()
        )
        return Path(path).expanduser()

    def load(
        self,
        cli_options: Mapping[str, Any] | None = None,
        create_missing: bool = False,
    ) -> ConfigService:
        """Load the configuration file.

        Args:
            cli_options: CLI options (``config``, ``context`` and the
                overridable connection fields).
            create_missing: Write an empty configuration file instead of
                failing when none exists.

        Returns:
            self, for chaining.

        Raises:
            ConfigNotFoundError: If the file does not exist.
            InvalidConfigError: If the YAML is malformed.
        """
        cli_options = dict(cli_options or {})
        path = self.resolve_config_path(cli_options)

        if not self.provider.file_exists(path):
            if not create_missing:
                raise ConfigNotFoundError(str(path))
            logger.info(f"Creating empty configuration at {path}")
            self.store.save(path, empty_config())

        if self.provider.insecure_permissions(path):
            logger.debug(f"Configuration file {path} is readable by other users")
            print_warning(
                "Configuration file has insecure permissions. "
                f"Consider running: chmod 600 {path}"
            )

        self._raw_config = self.provider.load_file(path)
        self._config_path = path
        self._current_context_name = self.provider.resolve_context_name(
            cli_options, self._raw_config
        )
        self._overrides = {
            k: cli_options[k] for k in OVERRIDABLE_FIELDS if cli_options.get(k) is not None
        }
        self._resolved = None
        self._loaded = True

        logger.debug(f"Loaded configuration from {path} (context: {self._current_context_name})")
        return self

    def _require_loaded(self) -> Path:
        if not self._loaded or self._config_path is None:
            raise ConfigurationError("Configuration not loaded. Call load() first.")
        return self._config_path

    @property
    def current_config(self) -> ResolvedConfig:
        """Resolved connection settings for the active context.

        Raises:
            ConfigurationError: If the configuration is not loaded.
        """
        path = self._require_loaded()
        if self._resolved is None:
            self._resolved = self.provider.resolve(
                path,
                {**self._overrides, "context": self._current_context_name},
            )
        return self._resolved

    def _invalidate(self) -> None:
        self._raw_config = self.provider.load_file(self._require_loaded())
        self._resolved = None

    def contexts(self) -> list[Context]:
        """All contexts in the configuration file."""
        return [Context.from_dict(c) for c in self._raw_config.get("contexts") or []]

    def context(self, name: str) -> Context | None:
        """Find a context by name."""
        return next((c for c in self.contexts() if c.name == name), None)

    def clusters(self) -> list[Cluster]:
        """All clusters in the configuration file."""
        return [Cluster.from_dict(c) for c in self._raw_config.get("clusters") or []]

    def cluster(self, name: str) -> Cluster | None:
        """Find a cluster by name."""
        return next((c for c in self.clusters() if c.name == name), None)

    def users(self) -> list[User]:
        """All users in the configuration file."""
        return [User.from_dict(u) for u in self._raw_config.get("users") or []]

    def user(self, name: str) -> User | None:
        """Find a user by name."""
        return next((u for u in self.users() if u.name == name), None)

    def use_context(self, name: str) -> None:
        """Switch the active context and persist it as ``current-context``.

        Raises:
            ContextNotFoundError: If the context does not exist.
        """
        path = self._require_loaded()
        if self.context(name) is None:
            raise ContextNotFoundError(name, [c.name for c in self.contexts()])

        self.store.update_current_context(path, name)

        raw_config = {**self._raw_config, "current-context": name}
        self._raw_config = raw_config
        self._current_context_name = name
        self._resolved = None
        logger.info(f"Switched to context '{name}'")

    def set_context(
        self,
        name: str,
        cluster: str,
        user: str,
        default_node: str | None = None,
    ) -> Context:
        """Create or replace a context.

        Returns:
            The stored context.
        """
        path = self._require_loaded()
        new_context = Context(
            name=name, cluster_ref=cluster, user_ref=user, default_node=default_node
        )
        self.store.upsert_context(path, new_context)
        self._invalidate()
        return new_context

    def set_cluster(
        self,
        name: str,
        server: str,
        verify_ssl: bool = True,
        certificate_authority: str | None = None,
        timeout: float | None = None,
        retry_count: int | None = None,
        retry_delay: float | None = None,
        max_retry_delay: float | None = None,
        retry_writes: bool | None = None,
    ) -> Cluster:
        """Create or replace a cluster.

        Returns:
            The stored cluster.

        Raises:
            InvalidConfigError: If the retry or timeout values are invalid.
        """
        path = self._require_loaded()
        new_cluster = Cluster(
            name=name,
            server=server,
            verify_ssl=verify_ssl,
            certificate_authority=certificate_authority,
            timeout=timeout,
            retry_count=retry_count,
            retry_delay=retry_delay,
            max_retry_delay=max_retry_delay,
            retry_writes=retry_writes,
        )
        self.store.upsert_cluster(path, new_cluster)
        self._invalidate()
        return new_cluster

    def set_credentials(
        self,
        name: str,
        token_id: str | None = None,
        token_secret: str | None = None,
        username: str | None = None,
        password: str | None = None,
    ) -> User:
        """Create or replace a user's credentials.

        Returns:
            The stored user.

        Raises:
            MissingCredentialsError: If neither pair is complete.
        """
        path = self._require_loaded()
        new_user = User(
            name=name,
            token_id=token_id,
            token_secret=token_secret,
            username=username,
            password=password,
        )
        if not new_user.is_valid:
            raise MissingCredentialsError(
                "Provide --token-id and --token-secret, or --username and --password",
                details={"user": name},
            )
        self.store.upsert_user(path, new_user)
        self._invalidate()
        return new_user

    def masked_config(self) -> dict[str, Any]:
        """Deep copy of the raw configuration with user secrets masked."""
        config = copy.deepcopy(self._raw_config)
        for entry in config.get("users") or []:
            user_data = entry.get("user") or {}
            for secret in ("token-secret", "password"):
                if user_data.get(secret):
                    user_data[secret] = SECRET_MASK
        return config

    def save(self) -> None:
        """Write the in-memory configuration back to disk."""
        self.store.save(self._require_loaded(), self._raw_config)

    @classmethod
    def create_example_config(
        cls,
        path: str | Path | None = None,
        store: ConfigStore | None = None,
    ) -> Path:
        """Create an example configuration file.

        Args:
            path: Destination. Uses the default location if not specified.
            store: Store used for writing.

        Returns:
            Path to the created file.
        """
        path = get_default_config_path() if path is None else Path(path).expanduser()

        example_config = {
            "apiVersion": "pvectl/v1",
            "kind": "Config",
            "clusters": [
                Cluster(
                    name="production",
                    server="https://pve1.example.com:8006",
                    certificate_authority="/etc/pvectl/ca.pem",
                ).to_dict(),
                Cluster(
                    name="lab",
                    server="https://192.168.1.10:8006",
                    verify_ssl=False,
                    timeout=60,
                ).to_dict(),
            ],
            "users": [
                User(
                    name="automation",
                    token_id="root@pam!pvectl",
                    token_secret="xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx",
                ).to_dict(),
                User(name="lab-admin", username="root@pam", password="changeme").to_dict(),
            ],
            "contexts": [
                Context(
                    name="prod", cluster_ref="production", user_ref="automation"
                ).to_dict(),
                Context(
                    name="lab", cluster_ref="lab", user_ref="lab-admin", default_node="pve"
                ).to_dict(),
            ],
            "current-context": "prod",
        }

        (store or ConfigStore()).save(path, example_config)
        return path
