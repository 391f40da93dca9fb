"""Unit tests for ExtensionUsageQuery."""

from unittest.mock import Mock

from pgbrew.command_runner import CommandResult, CommandRunner
from pgbrew.remove import ExtensionUsageQuery
from pgbrew.remove.usage import LIST_DATABASES_SQL, quote_literal


def fake_psql(databases, active, unreachable=()):
    """Runner pretending to be psql against a server with ``databases``."""
    runner = Mock(spec=CommandRunner)

    def capture(cmd, cwd=None):
        database, sql = cmd[4], cmd[6]
        if databases is None or database in unreachable:
            return CommandResult(returncode=2, stderr="psql: error: connection refused\n")
        if sql == LIST_DATABASES_SQL:
            return CommandResult(returncode=0, stdout="".join(f"{db}\n" for db in databases))
        return CommandResult(returncode=0, stdout="1\n" if database in active else "")

    runner.capture.side_effect = capture
    return runner


class TestExtensionUsageQuery:
    """Test cases for ExtensionUsageQuery."""

    def test_list_databases(self):
        runner = fake_psql(["postgres", "appdb"], active=[])
        query = ExtensionUsageQuery(psql="/opt/pg/bin/psql", runner=runner)

        assert query.list_databases() == ["postgres", "appdb"]
        assert runner.capture.call_args.args[0] == [
            "/opt/pg/bin/psql", "-t", "-A", "-d", "postgres", "-c", LIST_DATABASES_SQL,
        ]

    def test_active_databases(self):
        runner = fake_psql(["postgres", "appdb", "analytics"], active=["appdb"])
        query = ExtensionUsageQuery(runner=runner)
        assert query.active_databases("pg_kafka") == ["appdb"]

    def test_server_unreachable(self):
        """Test an unreachable server reports no active databases."""
        query = ExtensionUsageQuery(runner=fake_psql(None, active=[]))
        assert query.list_databases() == []
        assert query.active_databases("pg_kafka") == []

    def test_unqueryable_database_skipped(self):
        runner = fake_psql(["postgres", "locked", "appdb"], active=["locked", "appdb"], unreachable=["locked"])
        query = ExtensionUsageQuery(runner=runner)
        assert query.active_databases("pg_kafka") == ["appdb"]

    def test_extension_name_quoted(self):
        runner = fake_psql(["postgres"], active=[])
        ExtensionUsageQuery(runner=runner).is_active("postgres", "it's")
        sql = runner.capture.call_args.args[0][6]
        assert sql == "SELECT 1 FROM pg_extension WHERE extname = 'it''s'"


def test_quote_literal():
    assert quote_literal("pg_kafka") == "'pg_kafka'"
    assert quote_literal("a'b") == "'a''b'"
