"""Configuration management commands for pvectl.

This module provides kubectl-style ``config`` subcommands for viewing
and editing contexts, clusters and credentials.
"""

from __future__ import annotations

import click

from pvectl.cli.context import Context, exit_with_error, pass_context
from pvectl.cli.exit_codes import ExitCode
from pvectl.core.config import ConfigService
from pvectl.core.exceptions import PvectlError
from pvectl.utils.output import console, print_error, print_info, print_success


@click.group()
def config() -> None:
    """Manage pvectl configuration.

    Commands for viewing the configuration file and managing its
    clusters, users and contexts.
    """


@config.command("view")
@pass_context
def config_view(ctx: Context) -> None:
    """Show the configuration with secrets masked.

    Examples:

        $ pvectl config view

        $ pvectl config view -o json
    """
    try:
        service = ctx.init_config()
    except PvectlError as e:
        exit_with_error(e)

    ctx.formatter.print_dict(service.masked_config())
    if ctx.formatter.is_table:
        console.print(f"[dim]Config file: {service.config_path}[/dim]")


@config.command("get-contexts")
@pass_context
def config_get_contexts(ctx: Context) -> None:
    """List all contexts. The current one is marked with '*'.

    Examples:

        $ pvectl config get-contexts
    """
    try:
        service = ctx.init_config()
        contexts = service.contexts()
    except PvectlError as e:
        exit_with_error(e)

    if not contexts:
        print_info("No contexts configured")
        return

    ctx.formatter.print_contexts(contexts, service.current_context_name)


@config.command("current-context")
@pass_context
def config_current_context(ctx: Context) -> None:
    """Show the name of the active context.

    Examples:

        $ pvectl config current-context
    """
    try:
        service = ctx.init_config()
    except PvectlError as e:
        exit_with_error(e)

    if not service.current_context_name:
        print_error("current-context is not set")
        raise SystemExit(ExitCode.CONFIG_ERROR)

    console.print(service.current_context_name, highlight=False)


@config.command("use-context")
@click.argument("name")
@pass_context
def config_use_context(ctx: Context, name: str) -> None:
    """Switch the current context.

    NAME is the context to make current.

    Examples:

        $ pvectl config use-context prod
    """
    try:
        ctx.init_config().use_context(name)
    except PvectlError as e:
        exit_with_error(e)

    print_success(f"Switched to context '{name}'")


@config.command("set-cluster")
@click.argument("name")
@click.option("--server", required=True, help="Proxmox server URL, e.g. https://pve:8006.")
@click.option(
    "--insecure-skip-tls-verify",
    is_flag=True,
    default=False,
    help="Do not verify the server's TLS certificate.",
)
@click.option(
    "--certificate-authority",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to a CA bundle for TLS verification.",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Request timeout in seconds.",
)
@click.option(
    "--retry-count",
    type=click.IntRange(min=0),
    default=None,
    help="Retries for transient API failures.",
)
@click.option(
    "--retry-delay",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Base delay between retries in seconds.",
)
@click.option(
    "--max-retry-delay",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Maximum delay between retries in seconds.",
)
@click.option(
    "--retry-writes/--no-retry-writes",
    default=None,
    help="Also retry POST/PUT/DELETE requests.",
)
@pass_context
def config_set_cluster(
    ctx: Context,
    name: str,
    server: str,
    insecure_skip_tls_verify: bool,
    certificate_authority: str | None,
    timeout: float | None,
    retry_count: int | None,
    retry_delay: float | None,
    max_retry_delay: float | None,
    retry_writes: bool | None,
) -> None:
    """Create or replace a cluster entry.

    NAME is the cluster name referenced by contexts.

    Examples:

        $ pvectl config set-cluster production --server https://pve1:8006

        $ pvectl config set-cluster lab --server https://10.0.0.5:8006 \\
            --insecure-skip-tls-verify --retry-count 5
    """
    try:
        ctx.init_config(create_missing=True).set_cluster(
            name,
            server,
            verify_ssl=not insecure_skip_tls_verify,
            certificate_authority=certificate_authority,
            timeout=timeout,
            retry_count=retry_count,
            retry_delay=retry_delay,
            max_retry_delay=max_retry_delay,
            retry_writes=retry_writes,
        )
    except PvectlError as e:
        exit_with_error(e)

    print_success(f"Cluster '{name}' set")


@config.command("set-context")
@click.argument("name")
@click.option("--cluster", "cluster_ref", default=None, help="Cluster name.")
@click.option("--user", "user_ref", default=None, help="User name.")
@click.option("--default-node", default=None, help="Node used when none is given.")
@pass_context
def config_set_context(
    ctx: Context,
    name: str,
    cluster_ref: str | None,
    user_ref: str | None,
    default_node: str | None,
) -> None:
    """Create or update a context.

    NAME is the context name. Omitted options keep the values of an
    existing context with the same name.

    Examples:

        $ pvectl config set-context prod --cluster production --user automation
    """
    try:
        service = ctx.init_config(create_missing=True)
        existing = service.context(name)
        if existing is not None:
            cluster_ref = cluster_ref or existing.cluster_ref
            user_ref = user_ref or existing.user_ref
            default_node = default_node or existing.default_node

        if not cluster_ref or not user_ref:
            raise click.UsageError("--cluster and --user are required for a new context")

        service.set_context(name, cluster_ref, user_ref, default_node=default_node)
    except PvectlError as e:
        exit_with_error(e)

    print_success(f"Context '{name}' set")


@config.command("set-credentials")
@click.argument("name")
@click.option("--token-id", default=None, help="API token ID, e.g. root@pam!pvectl.")
@click.option("--token-secret", default=None, help="API token secret.")
@click.option("--username", default=None, help="Username, e.g. root@pam.")
@click.option("--password", default=None, help="Password.")
@pass_context
def config_set_credentials(
    ctx: Context,
    name: str,
    token_id: str | None,
    token_secret: str | None,
    username: str | None,
    password: str | None,
) -> None:
    """Create or replace a user's credentials.

    NAME is the user name referenced by contexts. Provide a token pair
    or a username/password pair.

    Examples:

        $ pvectl config set-credentials automation \\
            --token-id 'root@pam!pvectl' --token-secret xxxxxxxx
    """
    try:
        ctx.init_config(create_missing=True).set_credentials(
            name,
            token_id=token_id,
            token_secret=token_secret,
            username=username,
            password=password,
        )
    except PvectlError as e:
        exit_with_error(e)

    print_success(f"User '{name}' set")


@config.command("init")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration.",
)
@pass_context
def config_init(ctx: Context, force: bool) -> None:
    """Create an example configuration file.

    Examples:

        $ pvectl config init

        $ pvectl --config ./pvectl.yaml config init --force
    """
    path = ctx.config.resolve_config_path(ctx.cli_options)

    if path.exists() and not force:
        print_error(f"Configuration already exists: {path}")
        print_info("Use --force to overwrite.")
        raise SystemExit(ExitCode.GENERAL_ERROR)

    try:
        created = ConfigService.create_example_config(path, store=ctx.config.store)
    except OSError as e:
        print_error(f"Failed to create configuration: {e}")
        raise SystemExit(ExitCode.GENERAL_ERROR) from e

    print_success(f"Created configuration at: {created}")
    print_info("Edit this file to add your clusters and credentials.")


@config.command("path")
@pass_context
def config_path(ctx: Context) -> None:
    """Show the configuration file path.

    Examples:

        $ pvectl config path
    """
    path = ctx.config.resolve_config_path(ctx.cli_options)
    console.print(str(path), highlight=False)

    if path.exists():
        console.print("[dim](file exists)[/dim]")
    else:
        console.print("[dim](file does not exist)[/dim]")
