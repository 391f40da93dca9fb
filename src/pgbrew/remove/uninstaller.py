"""
Safe extension removal.

This module removes an extension's files from a PostgreSQL installation:
    <pkglibdir>/<name>.so
    <sharedir>/extension/<name>.control
    <sharedir>/extension/<name>--*.sql
    <sharedir>/extension/<name>.sql

Deletion is refused while any database still has the extension created,
since dropping the library underneath a live extension breaks that database.
pgbrew never runs DROP EXTENSION itself; the operator gets the commands.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..command_runner import CommandRunner
from ..config.pg_config import PgConfig
from ..errors import PgbrewError
from ..packages.cellar import CellarEntry, CellarStore, NotFound
from .usage import ExtensionUsageQuery


def drop_commands(psql: str, name: str, databases: List[str]) -> List[str]:
    """psql commands an operator runs to deactivate ``name`` everywhere."""
    return [
        f'{psql} -d {db} -c "DROP EXTENSION IF EXISTS {name};"' for db in databases
    ]


class ActiveUsageConflict(PgbrewError):
    """Raised when an extension to uninstall is still active in databases."""

    def __init__(self, name: str, databases: List[str], commands: List[str]):
        self.name = name
        self.databases = list(databases)
        self.commands = list(commands)

        lines = [f"cannot uninstall {name}: extension is active in {len(databases)} database(s):"]
        lines.extend(f"  - {db}" for db in databases)
        lines.append("")
        lines.append("Run DROP EXTENSION in each database first:")
        lines.extend(f"  {command}" for command in commands)
        super().__init__("\n".join(lines))


@dataclass
class UninstallResult:
    """Result of an uninstall operation."""

    name: str
    files: List[Path] = field(default_factory=list)
    removed: List[Path] = field(default_factory=list)
    failed: List[Path] = field(default_factory=list)
    active_databases: List[str] = field(default_factory=list)
    entry: Optional[CellarEntry] = None
    dry_run: bool = False

    @property
    def tracked(self) -> bool:
        """Whether the extension has a cellar entry."""
        return self.entry is not None

    @property
    def nothing_to_do(self) -> bool:
        return not self.files


class UninstallCoordinator:
    """Finds, checks and deletes an extension's installed files."""

    def __init__(
        self,
        pg_config: PgConfig,
        cellar: CellarStore,
        usage_query: Optional[ExtensionUsageQuery] = None,
        runner: Optional[CommandRunner] = None,
    ):
        """Initialize uninstall coordinator.

        Args:
            pg_config: Target PostgreSQL installation
            cellar: Cellar holding the tracking entry
            usage_query: Active usage check (default: psql of pg_config's installation)
            runner: Command runner for sudo deletions
        """
        self.pg_config = pg_config
        self.cellar = cellar
        self.runner = runner or pg_config.runner
        self.usage_query = usage_query or ExtensionUsageQuery(
            psql=pg_config.psql_path(), runner=self.runner
        )

    def candidate_files(self, name: str) -> List[Path]:
        """Existing files belonging to extension ``name``.

        Raises:
            PgConfigError: If the installation directories cannot be determined
        """
        lib_dir = self.pg_config.pkglibdir
        ext_dir = self.pg_config.extension_dir

        candidates = [lib_dir / f"{name}.so", ext_dir / f"{name}.control"]
        candidates.extend(sorted(ext_dir.glob(f"{name}--*.sql")))
        candidates.append(ext_dir / f"{name}.sql")

        files: List[Path] = []
        for path in candidates:
            if path.is_file() and path not in files:
                files.append(path)
        return files

    def uninstall(
        self,
        name: str,
        dry_run: bool = False,
        use_sudo: bool = False,
    ) -> UninstallResult:
        """
        Remove an extension's files and its cellar entry.

        Args:
            name: Extension name
            dry_run: Only report what would happen
            use_sudo: Delete files through ``sudo rm -f``

        Returns:
            UninstallResult describing found, removed and failed files

        Raises:
            ActiveUsageConflict: If any database has the extension created
                (not raised in dry-run mode)
            PgConfigError: If the installation directories cannot be determined
        """
        try:
            entry: Optional[CellarEntry] = self.cellar.get(name)
        except NotFound:
            entry = None

        result = UninstallResult(name=name, entry=entry, dry_run=dry_run)
        result.files = self.candidate_files(name)
        if not result.files:
            return result

        result.active_databases = self.usage_query.active_databases(name)

        if dry_run:
            return result

        if result.active_databases:
            raise ActiveUsageConflict(
                name,
                result.active_databases,
                drop_commands(self.usage_query.psql, name, result.active_databases),
            )

        for path in result.files:
            if self._delete(path, use_sudo):
                result.removed.append(path)
            else:
                result.failed.append(path)

        if entry is not None:
            self.cellar.remove(name)

        return result

    def _delete(self, path: Path, use_sudo: bool) -> bool:
        if use_sudo:
            outcome = self.runner.capture(["sudo", "rm", "-f", str(path)])
            if not outcome.success:
                logging.warning(f"sudo rm -f {path} failed: {outcome.output.strip()}")
            return outcome.success

        try:
            os.remove(path)
        except FileNotFoundError:
            # Already gone counts as removed
            return True
        except OSError as e:
            logging.warning(f"Could not remove {path}: {e}")
            return False
        return True
