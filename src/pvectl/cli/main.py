"""Main CLI entry point for pvectl.

This module defines the main CLI group and global options that are
shared across all commands.
"""

from __future__ import annotations

import os
import sys

import click
from rich.console import Console

from pvectl import __version__

# Importing the resource modules attaches their commands to the verb groups
from pvectl.cli import backup, inventory, snapshot  # noqa: F401
from pvectl.cli.config_cmd import config
from pvectl.cli.context import Context, exit_with_error, pass_context
from pvectl.cli.exit_codes import ExitCode, exit_code_for
from pvectl.cli.lifecycle import LIFECYCLE_GROUPS
from pvectl.cli.verbs import VERB_GROUPS
from pvectl.core.config import get_default_config_path
from pvectl.core.exceptions import PvectlError
from pvectl.utils.logging import configure_logging
from pvectl.utils.output import OutputFormat, error_console, print_error, print_success


def version_callback(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    console = Console()
    console.print(f"pvectl version [cyan]{__version__}[/cyan]")
    ctx.exit()


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    envvar="PVECTL_CONFIG",
    help=f"Path to config file (default: {get_default_config_path()}).",
)
@click.option(
    "--context",
    "context_name",
    default=None,
    help="Context to use instead of current-context.",
)
@click.option(
    "--server",
    default=None,
    help="Override the Proxmox server URL.",
)
@click.option(
    "--insecure-skip-tls-verify",
    is_flag=True,
    default=False,
    help="Do not verify the server's TLS certificate.",
)
@click.option(
    "--request-timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="API request timeout in seconds.",
)
@click.option(
    "--output",
    "-o",
    "output",
    type=click.Choice([f.value for f in OutputFormat]),
    default=OutputFormat.TABLE.value,
    help="Output format.",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase verbosity (-v, -vv, -vvv for more).",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Show full error tracebacks.",
)
@click.option(
    "--version",
    is_flag=True,
    callback=version_callback,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@pass_context
def cli(
    ctx: Context,
    config_path: str | None,
    context_name: str | None,
    server: str | None,
    insecure_skip_tls_verify: bool,
    request_timeout: float | None,
    output: str,
    verbose: int,
    debug: bool,
) -> None:
    """pvectl - Manage Proxmox VE clusters.

    A kubectl-style command-line tool for Proxmox VE. Connection
    settings come from kubeconfig-style contexts in ~/.pvectl/config.

    Use -v, -vv, or -vvv for increasing levels of verbosity.

    Examples:

        # Switch to the production cluster

        $ pvectl config use-context prod

        # List snapshots of two VMs

        $ pvectl get snapshots 100 101

        # Snapshot VMs before an upgrade

        $ pvectl create snapshot 100 101 --name before-upgrade

        # Start containers without waiting

        $ pvectl start ct 200 201 --async
    """
    ctx.verbose = verbose
    ctx.debug = debug
    ctx.output_format = OutputFormat(output)
    ctx.cli_options = {
        "config": config_path,
        "context": context_name,
        "server": server,
        "verify_ssl": False if insecure_skip_tls_verify else None,
        "timeout": request_timeout,
    }

    configure_logging(verbosity=verbose)

    click.get_current_context().call_on_close(ctx.cleanup)


@cli.command("ping")
@pass_context
def ping(ctx: Context) -> None:
    """Check connectivity and credentials for the active context.

    Examples:

        $ pvectl ping

        $ pvectl --context lab ping
    """
    try:
        connection = ctx.init_connection()
        info = connection.version()
    except PvectlError as e:
        exit_with_error(e)

    version = info.get("version", "unknown")
    print_success(
        f"Connected to {connection.config.server} "
        f"(context '{connection.config.context_name}', Proxmox VE {version})"
    )


# Register subcommand groups
cli.add_command(config)
for group in [*VERB_GROUPS, *LIFECYCLE_GROUPS]:
    cli.add_command(group)


def main() -> None:
    """Main entry point with error handling."""
    try:
        cli(standalone_mode=False)
    except click.exceptions.Abort:
        error_console.print("[dim]Aborted[/dim]")
        sys.exit(ExitCode.GENERAL_ERROR)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except PvectlError as e:
        print_error(str(e))
        sys.exit(exit_code_for(e))
    except KeyboardInterrupt:
        error_console.print("\n[dim]Interrupted[/dim]")
        sys.exit(ExitCode.INTERRUPTED)
    except Exception as e:
        if os.environ.get("PVECTL_DEBUG") or "--debug" in sys.argv:
            import traceback

            traceback.print_exc()
        else:
            print_error(f"Unexpected error: {e}")
            error_console.print("[dim]Use --debug for full traceback[/dim]")
        sys.exit(ExitCode.GENERAL_ERROR)


if __name__ == "__main__":
    main()
