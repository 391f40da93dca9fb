"""Unit tests for InstallOrchestrator."""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from pgbrew.build import (
    BuildFailure,
    BuilderRegistry,
    InstallOrchestrator,
    ManifestFieldMissing,
    NoCompatibleBuilder,
    PgxsBuilder,
    VersionFieldMissing,
)
from pgbrew.command_runner import CommandResult, CommandRunner
from pgbrew.config import PgConfig
from pgbrew.config.pg_config import PgConfigError
from pgbrew.packages import CellarStore, RemoteRepo, SourceFetcher


@pytest.fixture
def cellar(tmp_path):
    return CellarStore(root=tmp_path / "cellar")


@pytest.fixture
def pg_config():
    pg_config = Mock(spec=PgConfig)
    pg_config.path = "/usr/lib/postgresql/16/bin/pg_config"
    pg_config.runner = Mock(spec=CommandRunner)
    pg_config.major_version.return_value = "16"
    return pg_config


@pytest.fixture
def builder():
    builder = Mock()
    builder.name = "pgxs"
    builder.detect.return_value = True
    builder.extension_name.return_value = "my_ext"
    builder.version.return_value = "2.1.0"
    builder.needs_shared_preload.return_value = False
    return builder


@pytest.fixture
def registry(builder):
    registry = BuilderRegistry()
    registry.register(builder)
    return registry


@pytest.fixture
def local_project(tmp_path):
    project = tmp_path / "my_ext"
    project.mkdir()
    return project


class FakeFetcher(SourceFetcher):
    """Writes an empty checkout, optionally with a monorepo subdirectory."""

    def __init__(self, subdirs=()):
        self.subdirs = subdirs
        self.fetched = []
        self.checkouts = []

    def fetch(self, repo, dest):
        self.fetched.append(repo)
        dest.mkdir(parents=True)
        for subdir in self.subdirs:
            (dest / subdir).mkdir(parents=True)
        self.checkouts.append(dest)
        return dest


def make_orchestrator(registry, cellar, pg_config, fetcher=None):
    return InstallOrchestrator(
        registry=registry,
        cellar=cellar,
        pg_config=pg_config,
        fetcher=fetcher or FakeFetcher(),
    )


class TestLocalInstall:
    """Test installs from a local directory."""

    def test_records_entry(self, registry, cellar, pg_config, builder, local_project):
        """Test a successful install is recorded with all fields."""
        before = datetime.now(timezone.utc)
        orchestrator = make_orchestrator(registry, cellar, pg_config)

        result = orchestrator.install(str(local_project))

        entry = cellar.get("my_ext")
        assert entry.version == "2.1.0"
        assert entry.source == str(local_project.resolve())
        assert entry.pg_version == "16"
        assert entry.build_system == "pgxs"
        assert entry.installed_at >= before
        assert result.entry == entry
        assert result.builder_name == "pgxs"
        assert not result.needs_shared_preload
        assert result.install_time >= 0

    def test_install_options(self, registry, cellar, pg_config, builder, local_project):
        """Test the builder receives pg_config path and sudo flag."""
        orchestrator = make_orchestrator(registry, cellar, pg_config)
        orchestrator.install(str(local_project), use_sudo=True)

        directory, options = builder.install.call_args.args
        assert directory == local_project.resolve()
        assert options.pg_config == pg_config.path
        assert options.use_sudo

    def test_preload_hint(self, registry, cellar, pg_config, builder, local_project):
        builder.needs_shared_preload.return_value = True
        result = make_orchestrator(registry, cellar, pg_config).install(str(local_project))
        assert result.needs_shared_preload

    def test_unknown_version(self, registry, cellar, pg_config, builder, local_project):
        """Test a missing version is recorded as 'unknown'."""
        builder.version.side_effect = VersionFieldMissing("default_version not found")
        make_orchestrator(registry, cellar, pg_config).install(str(local_project))
        assert cellar.get("my_ext").version == "unknown"

    def test_unknown_manifest_version(self, registry, cellar, pg_config, builder, local_project):
        builder.version.side_effect = ManifestFieldMissing("could not find version")
        make_orchestrator(registry, cellar, pg_config).install(str(local_project))
        assert cellar.get("my_ext").version == "unknown"

    def test_unreadable_control_file_version(self, cellar, pg_config, tmp_path):
        """Test an unreadable descriptor records version 'unknown' instead of aborting."""
        project = tmp_path / "ext"
        project.mkdir()
        (project / "Makefile").write_text("PGXS := $(shell $(PG_CONFIG) --pgxs)\ninclude $(PGXS)\n")
        (project / "aaa.control").mkdir()
        (project / "zzz.control").write_text("default_version = '1.0'\n")
        runner = Mock(spec=CommandRunner)
        runner.run.return_value = CommandResult(returncode=0)
        runner.capture.return_value = CommandResult(returncode=0)
        registry = BuilderRegistry()
        registry.register(PgxsBuilder(runner=runner))

        result = make_orchestrator(registry, cellar, pg_config).install(str(project))

        assert result.entry.name == "aaa"
        assert cellar.get("aaa").version == "unknown"

    def test_missing_name_aborts(self, registry, cellar, pg_config, builder, local_project):
        """Test ManifestFieldMissing on the name aborts before building."""
        builder.extension_name.side_effect = ManifestFieldMissing("could not find package name")
        with pytest.raises(ManifestFieldMissing):
            make_orchestrator(registry, cellar, pg_config).install(str(local_project))
        builder.install.assert_not_called()
        assert cellar.load() == []

    def test_pg_version_best_effort(self, registry, cellar, pg_config, local_project):
        """Test an unreadable PostgreSQL version is recorded as empty."""
        pg_config.major_version.side_effect = PgConfigError("pg_config --version failed")
        make_orchestrator(registry, cellar, pg_config).install(str(local_project))
        assert cellar.get("my_ext").pg_version == ""

    def test_reinstall_replaces_entry(self, registry, cellar, pg_config, builder, local_project):
        orchestrator = make_orchestrator(registry, cellar, pg_config)
        orchestrator.install(str(local_project))
        builder.version.return_value = "2.2.0"
        orchestrator.install(str(local_project))

        entries = cellar.load()
        assert len(entries) == 1
        assert entries[0].version == "2.2.0"


class TestFailures:
    """Test that failed installs leave no cellar record."""

    def test_build_failure(self, registry, cellar, pg_config, builder, local_project):
        builder.install.side_effect = BuildFailure("make failed with exit code 2", "error")
        with pytest.raises(BuildFailure):
            make_orchestrator(registry, cellar, pg_config).install(str(local_project))
        assert cellar.load() == []
        assert not cellar.path.exists()

    def test_no_builder(self, cellar, pg_config, local_project):
        registry = BuilderRegistry()
        with pytest.raises(NoCompatibleBuilder):
            make_orchestrator(registry, cellar, pg_config).install(str(local_project))
        assert cellar.load() == []


class TestRemoteInstall:
    """Test installs from GitHub sources."""

    def test_remote_source(self, registry, cellar, pg_config, builder):
        """Test remote sources are fetched, built and cleaned up."""
        fetcher = FakeFetcher()
        orchestrator = make_orchestrator(registry, cellar, pg_config, fetcher)

        orchestrator.install("https://github.com/user/my_ext@v2.1.0")

        assert fetcher.fetched == [RemoteRepo("github.com/user/my_ext", ref="v2.1.0")]
        assert cellar.get("my_ext").source == "https://github.com/user/my_ext@v2.1.0"
        assert not fetcher.checkouts[0].exists()

    def test_monorepo_subpath(self, registry, cellar, pg_config, builder):
        """Test the builder runs in the requested subdirectory."""
        fetcher = FakeFetcher(subdirs=["extensions/pg_kafka"])
        orchestrator = make_orchestrator(registry, cellar, pg_config, fetcher)

        orchestrator.install("github.com/user/monorepo/extensions/pg_kafka")

        directory = builder.install.call_args.args[0]
        assert directory.parts[-2:] == ("extensions", "pg_kafka")

    def test_checkout_removed_on_failure(self, registry, cellar, pg_config, builder):
        builder.install.side_effect = BuildFailure("cargo pgrx install failed")
        fetcher = FakeFetcher()
        with pytest.raises(BuildFailure):
            make_orchestrator(registry, cellar, pg_config, fetcher).install(
                "github.com/user/my_ext"
            )
        assert not fetcher.checkouts[0].exists()
