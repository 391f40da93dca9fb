"""
Pytest configuration for pgbrew test suite.

This configuration enables the --full flag to run integration tests and
keeps every test away from the real ~/.pgbrew and ~/.pgrx directories.
"""

import pytest


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--full",
        action="store_true",
        default=False,
        help="Run full test suite including integration tests (slow)",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: end-to-end tests using real child processes"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --full is given."""
    if config.getoption("--full"):
        return
    skip_integration = pytest.mark.skip(reason="integration test, use --full to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture(autouse=True)
def isolated_homes(tmp_path, monkeypatch):
    """Point cellar, pgrx state and pg_config lookups at temporary locations."""
    monkeypatch.setenv("PGBREW_HOME", str(tmp_path / "pgbrew-home"))
    monkeypatch.setenv("PGRX_HOME", str(tmp_path / "pgrx-home"))
    monkeypatch.delenv("PG_CONFIG", raising=False)
