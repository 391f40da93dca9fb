"""PostgreSQL installation layout.

This module answers questions about the target PostgreSQL installation by
asking its ``pg_config`` tool: the server version, where shared libraries
live (``--pkglibdir``), where extension control and SQL files live
(``--sharedir``/extension) and which ``psql`` belongs to it.

The ``PG_CONFIG`` environment variable overrides the default ``pg_config``
found on the search path.
"""

import os
import re
from pathlib import Path
from typing import Dict, Optional

from ..command_runner import CommandRunner
from ..errors import PgbrewError

PG_CONFIG_ENV = "PG_CONFIG"
DEFAULT_PG_CONFIG = "pg_config"

_MAJOR_BEFORE_DOT = re.compile(r"\b(\d+)\.")
_ANY_NUMBER = re.compile(r"\b(\d+)")


class PgConfigError(PgbrewError):
    """Raised when pg_config cannot be run or returns nothing useful."""

    pass


def parse_major_version(version_output: str) -> str:
    """Extract the major version from ``pg_config --version`` output.

    Examples:
        "PostgreSQL 16.2" -> "16"
        "PostgreSQL 9.6.24" -> "9"
        "PostgreSQL 17beta1" -> "17"

    Args:
        version_output: Raw output of ``pg_config --version``

    Returns:
        Major version string

    Raises:
        PgConfigError: If no version number is present
    """
    match = _MAJOR_BEFORE_DOT.search(version_output) or _ANY_NUMBER.search(
        version_output
    )
    if not match:
        raise PgConfigError(
            f"Could not parse PostgreSQL version from: {version_output.strip()!r}"
        )
    return match.group(1)


def resolve_pg_config_path(explicit: Optional[str] = None) -> str:
    """Pick the pg_config to use: explicit argument, $PG_CONFIG, then PATH."""
    if explicit:
        return explicit
    return os.environ.get(PG_CONFIG_ENV) or DEFAULT_PG_CONFIG


class PgConfig:
    """Queries a PostgreSQL installation through its pg_config tool."""

    def __init__(
        self,
        path: Optional[str] = None,
        runner: Optional[CommandRunner] = None,
    ):
        """Initialize pg_config wrapper.

        Args:
            path: Path to pg_config. If None, uses $PG_CONFIG or "pg_config".
            runner: Command runner used for queries
        """
        self.path = resolve_pg_config_path(path)
        self.runner = runner or CommandRunner()
        self._answers: Dict[str, str] = {}

    def query(self, flag: str) -> str:
        """Run ``pg_config <flag>`` and return its trimmed output.

        Args:
            flag: pg_config option (e.g., '--sharedir')

        Returns:
            The tool's answer

        Raises:
            PgConfigError: If pg_config fails or prints nothing
        """
        if flag in self._answers:
            return self._answers[flag]

        result = self.runner.capture([self.path, flag])
        answer = result.stdout.strip()
        if not result.success or not answer:
            raise PgConfigError(
                f"{self.path} {flag} failed (is PostgreSQL installed?): "
                + (result.stderr.strip() or f"exit code {result.returncode}")
            )

        self._answers[flag] = answer
        return answer

    def version_string(self) -> str:
        return self.query("--version")

    def major_version(self) -> str:
        """Major version of the target server (e.g., '16')."""
        return parse_major_version(self.version_string())

    @property
    def pkglibdir(self) -> Path:
        """Directory holding extension shared libraries."""
        return Path(self.query("--pkglibdir"))

    @property
    def sharedir(self) -> Path:
        return Path(self.query("--sharedir"))

    @property
    def extension_dir(self) -> Path:
        """Directory holding .control and SQL script files."""
        return self.sharedir / "extension"

    def psql_path(self) -> str:
        """Locate the psql belonging to this installation.

        When pg_config was given as a path, psql usually sits next to it.
        Otherwise the bare command name is used.
        """
        if self.path != DEFAULT_PG_CONFIG:
            candidate = Path(self.path).parent / "psql"
            if candidate.exists():
                return str(candidate)
        return "psql"
