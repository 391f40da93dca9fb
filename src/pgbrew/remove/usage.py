"""Live usage queries against a PostgreSQL server.

Asks every non-template database, one psql round-trip each, whether it has
an extension created. Databases that cannot be queried are skipped.
"""

import logging
from typing import List, Optional

from ..command_runner import CommandRunner

LIST_DATABASES_SQL = "SELECT datname FROM pg_database WHERE datistemplate = false"


def quote_literal(value: str) -> str:
    """Quote a string as an SQL literal."""
    return "'" + value.replace("'", "''") + "'"


class ExtensionUsageQuery:
    """Finds databases in which an extension is active."""

    def __init__(
        self,
        psql: str = "psql",
        runner: Optional[CommandRunner] = None,
        maintenance_db: str = "postgres",
    ):
        """Initialize usage query.

        Args:
            psql: psql executable of the target installation
            runner: Command runner for psql invocations
            maintenance_db: Database used to list all databases
        """
        self.psql = psql
        self.runner = runner or CommandRunner()
        self.maintenance_db = maintenance_db

    def _query(self, database: str, sql: str) -> Optional[str]:
        result = self.runner.capture([self.psql, "-t", "-A", "-d", database, "-c", sql])
        if not result.success:
            logging.debug(f"psql query on {database} failed: {result.stderr.strip()}")
            return None
        return result.stdout

    def list_databases(self) -> List[str]:
        """Names of all non-template databases; empty if the server is unreachable."""
        output = self._query(self.maintenance_db, LIST_DATABASES_SQL)
        if output is None:
            logging.warning("Could not list databases; skipping active usage check")
            return []
        return [line.strip() for line in output.splitlines() if line.strip()]

    def is_active(self, database: str, extension: str) -> bool:
        sql = f"SELECT 1 FROM pg_extension WHERE extname = {quote_literal(extension)}"
        output = self._query(database, sql)
        return output is not None and output.strip() == "1"

    def active_databases(self, extension: str) -> List[str]:
        """Databases that currently have ``extension`` created."""
        return [db for db in self.list_databases() if self.is_active(db, extension)]
