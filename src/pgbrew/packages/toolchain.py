"""cargo-pgrx toolchain reconciliation.

pgrx extensions only build with the cargo-pgrx version matching the pgrx
crate they depend on, and cargo-pgrx must be initialized for the PostgreSQL
major version being targeted. Before a pgrx build the reconciler walks
through three checks, stopping early where possible:

1. Version match: is the installed cargo-pgrx compatible with the requirement?
2. Version install: if not, ``cargo install cargo-pgrx`` the required version
   (exact pin for X.Y.Z requirements, ``~X.Y`` range for partial ones)
3. Initialization: if ``~/.pgrx/config.toml`` knows nothing about the target
   major version, run ``cargo pgrx init --pgNN <pg_config>``
"""

import logging
import os
import re
from pathlib import Path
from typing import Optional

from ..command_runner import CommandRunner
from ..config.pg_config import PgConfig, PgConfigError
from ..errors import PgbrewError

PGRX_HOME_ENV = "PGRX_HOME"


class ToolchainError(PgbrewError):
    """Base exception for toolchain reconciliation errors."""

    pass


class ToolchainInstallFailed(ToolchainError):
    """Raised when the required cargo-pgrx version cannot be installed."""

    pass


class ToolchainInitFailed(ToolchainError):
    """Raised when cargo-pgrx cannot be initialized for the target PostgreSQL."""

    pass


def versions_match(required: str, installed: Optional[str]) -> bool:
    """Check whether an installed cargo-pgrx satisfies a requirement.

    Matches when any of these hold:
    - the strings are equal
    - ``required`` is a dot-delimited prefix of ``installed``
      ("0.12" matches "0.12.9", "1" matches "1.4.0" but not "10.0.0");
      a bare string prefix is not enough, the next character must be a dot
    - both have at least two components and major.minor are equal
      ("0.12.9" matches "0.12.3")

    Args:
        required: Version requirement from Cargo.toml (leading '=' allowed)
        installed: Installed cargo-pgrx version, or None when absent

    Returns:
        True if no reinstall is needed
    """
    if not installed or not required:
        return False

    required = required.lstrip("=").strip()
    installed = installed.strip()

    if installed == required:
        return True

    if installed.startswith(required + "."):
        return True

    required_parts = required.split(".")
    installed_parts = installed.split(".")
    if len(required_parts) >= 2 and len(installed_parts) >= 2:
        return required_parts[:2] == installed_parts[:2]

    return False


def install_version_spec(required: str) -> str:
    """Version argument for ``cargo install --version``.

    Full versions are pinned exactly. Partial versions ("0.12", "1") become
    a tilde range so cargo picks the newest matching patch release.
    """
    required = required.lstrip("=").strip()
    if len(required.split(".")) >= 3:
        return required
    return f"~{required}"


class ToolchainReconciler:
    """Makes sure the right cargo-pgrx is installed and initialized."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        pgrx_home: Optional[Path] = None,
    ):
        """Initialize reconciler.

        Args:
            runner: Command runner for cargo invocations
            pgrx_home: pgrx state directory. If None, uses $PGRX_HOME or ~/.pgrx.
        """
        self.runner = runner or CommandRunner()

        if pgrx_home is None:
            pgrx_home_env = os.environ.get(PGRX_HOME_ENV)
            pgrx_home = Path(pgrx_home_env) if pgrx_home_env else Path.home() / ".pgrx"
        self.pgrx_home = Path(pgrx_home)

    def installed_version(self) -> Optional[str]:
        """Version of the installed cargo-pgrx, or None if it is missing.

        ``cargo pgrx --version`` prints e.g. "cargo-pgrx 0.12.9".
        """
        result = self.runner.capture(["cargo", "pgrx", "--version"])
        if not result.success:
            return None

        parts = result.stdout.split()
        if len(parts) >= 2:
            return parts[1]
        return None

    def ensure_version(self, required: str) -> bool:
        """Install cargo-pgrx unless the installed one already matches.

        Args:
            required: Version requirement from the project manifest

        Returns:
            True if cargo-pgrx was (re)installed, False if it already matched

        Raises:
            ToolchainInstallFailed: If cargo install fails
        """
        installed = self.installed_version()
        if versions_match(required, installed):
            logging.info(f"cargo-pgrx {installed} satisfies requirement {required}")
            return False

        spec = install_version_spec(required)
        print(f"Installing cargo-pgrx {spec} (current: {installed or 'none'})...")

        cmd = ["cargo", "install", "cargo-pgrx", "--version", spec, "--locked"]
        result = self.runner.run(cmd)
        if not result.success:
            raise ToolchainInstallFailed(
                f"failed to install cargo-pgrx {spec} (exit code {result.returncode})\n"
                + result.output
            )
        return True

    @property
    def config_path(self) -> Path:
        return self.pgrx_home / "config.toml"

    def is_initialized(self, pg_major: str) -> bool:
        """Check whether ``cargo pgrx init`` already registered ``pg<major>``."""
        if not self.config_path.exists():
            return False
        try:
            text = self.config_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logging.warning(f"Could not read {self.config_path}: {e}")
            return False
        return re.search(rf"^\s*pg{re.escape(pg_major)}\s*=", text, re.MULTILINE) is not None

    def ensure_initialized(self, pg_config_path: str) -> bool:
        """Initialize cargo-pgrx for the PostgreSQL behind ``pg_config_path``.

        Args:
            pg_config_path: pg_config of the target installation

        Returns:
            True if initialization ran, False if it was already done

        Raises:
            ToolchainInitFailed: If the major version is unknown or init fails
        """
        try:
            pg_major = PgConfig(pg_config_path, runner=self.runner).major_version()
        except PgConfigError as e:
            raise ToolchainInitFailed(
                f"cannot determine PostgreSQL major version: {e}"
            ) from e

        if self.is_initialized(pg_major):
            logging.info(f"cargo-pgrx already initialized for pg{pg_major}")
            return False

        print(f"Initializing cargo-pgrx for PostgreSQL {pg_major}...")
        cmd = ["cargo", "pgrx", "init", f"--pg{pg_major}", pg_config_path]
        result = self.runner.run(cmd)
        if not result.success:
            raise ToolchainInitFailed(
                f"cargo pgrx init --pg{pg_major} failed (exit code {result.returncode})\n"
                + result.output
            )
        return True

    def reconcile(self, required: str, pg_config_path: str) -> None:
        """Align cargo-pgrx with ``required`` and the target PostgreSQL.

        Raises:
            ToolchainInstallFailed: If installing cargo-pgrx fails
            ToolchainInitFailed: If initializing cargo-pgrx fails
        """
        self.ensure_version(required)
        self.ensure_initialized(pg_config_path)
