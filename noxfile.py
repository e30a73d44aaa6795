"""Nox sessions for pvectl.

    nox                    # lint, type_check, tests
    nox -s tests-3.12 -- -k backup
    nox -s format -- --write
"""

from __future__ import annotations

import shutil
from pathlib import Path

import nox

nox.options.default_venv_backend = "uv"
nox.options.reuse_existing_virtualenvs = True
nox.options.sessions = ["lint", "type_check", "tests"]

PYTHON_VERSIONS = ["3.11", "3.12"]
PYTHON_DEFAULT = "3.11"

PACKAGE = "pvectl"
PYTHON_PATHS = ["src", "tests", "noxfile.py"]

# Command groups registered on the root CLI
CLI_GROUPS = [
    "config", "get", "describe", "create", "delete", "rollback", "restore",
    "start", "stop", "shutdown", "reboot", "reset", "suspend", "resume",
]

ARTIFACTS = [
    "build",
    "dist",
    "src/*.egg-info",
    ".pytest_cache",
    ".mypy_cache",
    ".ruff_cache",
    "htmlcov",
    ".coverage",
    ".nox",
]


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run pytest with coverage, then check every command group loads.

    Extra arguments go to pytest, e.g. ``nox -s tests -- -x``.
    """
    session.install("-e", ".[test]")
    session.run(
        "pytest",
        f"--cov={PACKAGE}",
        "--cov-report=term-missing",
        *session.posargs,
    )
    # Proxmox access is never needed for --help
    session.run(PACKAGE, "--version", silent=True)
    for group in CLI_GROUPS:
        session.run(PACKAGE, group, "--help", silent=True)


@nox.session(python=PYTHON_DEFAULT)
def lint(session: nox.Session) -> None:
    """Run ruff; pass ``--fix`` to apply safe fixes."""
    session.install("ruff")
    session.run("ruff", "check", *PYTHON_PATHS, *session.posargs)


@nox.session(name="format", python=PYTHON_DEFAULT)
def format_(session: nox.Session) -> None:
    """Check import order and formatting; ``--write`` rewrites files."""
    session.install("ruff")
    write = "--write" in session.posargs
    if write:
        session.run("ruff", "check", "--select", "I", "--fix", *PYTHON_PATHS)
        session.run("ruff", "format", *PYTHON_PATHS)
    else:
        session.run("ruff", "check", "--select", "I", *PYTHON_PATHS)
        session.run("ruff", "format", "--check", *PYTHON_PATHS)


@nox.session(python=PYTHON_DEFAULT)
def type_check(session: nox.Session) -> None:
    """Run mypy in strict mode against the installed package."""
    session.install("mypy", "types-PyYAML", "types-requests")
    session.install("-e", ".")
    session.run("mypy", f"src/{PACKAGE}", *session.posargs)


@nox.session(python=PYTHON_DEFAULT)
def build(session: nox.Session) -> None:
    """Build the wheel and sdist into ``dist/``."""
    session.install("build")
    shutil.rmtree("dist", ignore_errors=True)
    session.run("python", "-m", "build")


@nox.session(python=False)
def clean(session: nox.Session) -> None:
    """Remove build, cache and coverage artifacts."""
    for pattern in ARTIFACTS:
        for path in Path().glob(pattern):
            session.log(f"Removing {path}")
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()
    for pycache in Path().rglob("__pycache__"):
        shutil.rmtree(pycache)
