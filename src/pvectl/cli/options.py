"""Option decorators shared by multi-resource commands."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import click

from pvectl.core.orchestration import OperationOptions

F = TypeVar("F", bound=Callable[..., Any])


def operation_options(func: F) -> F:
    """Add ``--timeout``, ``--async`` and ``--fail-fast`` to a command."""
    func = click.option(
        "--fail-fast",
        is_flag=True,
        default=False,
        help="Stop after the first failed resource.",
    )(func)
    func = click.option(
        "--async",
        "async_mode",
        is_flag=True,
        default=False,
        help="Do not wait for tasks to finish.",
    )(func)
    func = click.option(
        "--timeout",
        type=click.FloatRange(min=0, min_open=True),
        default=None,
        help="Seconds to wait for each task (default: 60).",
    )(func)
    return func


def build_operation_options(
    timeout: float | None,
    async_mode: bool,
    fail_fast: bool,
    wait: bool | None = None,
) -> OperationOptions:
    """Collect the shared flags into OperationOptions."""
    return OperationOptions(
        timeout=timeout,
        async_mode=async_mode,
        fail_fast=fail_fast,
        wait=wait,
    )


def vmid_list(values: tuple[int, ...]) -> list[int]:
    """Deduplicate VMIDs while keeping their order."""
    return list(dict.fromkeys(values))
