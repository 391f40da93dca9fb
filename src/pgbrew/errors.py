"""Base exception for pgbrew."""


class PgbrewError(Exception):
    """Base class for all errors raised by pgbrew operations."""

    pass
