"""
Integration tests for installing and uninstalling a local PGXS extension.

Real child processes are used throughout; ``make`` and ``pg_config`` are
replaced by small shell scripts that install into a temporary PostgreSQL
layout, so no PostgreSQL or compiler is required.
"""

import os
import stat
import subprocess
import sys
from pathlib import Path

import pytest

FAKE_PG_CONFIG = """#!/bin/sh
case "$1" in
  --version) echo "PostgreSQL 16.2" ;;
  --pkglibdir) echo "$FAKE_PG_ROOT/lib" ;;
  --sharedir) echo "$FAKE_PG_ROOT/share" ;;
  *) echo "pg_config: invalid argument: $1" >&2; exit 1 ;;
esac
"""

FAKE_MAKE = """#!/bin/sh
echo "make $*" >> "$FAKE_PG_ROOT/make.log"
if [ "$1" = "install" ]; then
  mkdir -p "$FAKE_PG_ROOT/lib" "$FAKE_PG_ROOT/share/extension"
  touch "$FAKE_PG_ROOT/lib/my_ext.so"
  cp my_ext.control my_ext--2.1.0.sql "$FAKE_PG_ROOT/share/extension/"
fi
"""


def write_script(path: Path, text: str) -> None:
    path.write_text(text)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


@pytest.mark.integration
class TestLocalInstall:
    """End-to-end install, list, info and uninstall of a local extension."""

    @pytest.fixture
    def env(self, tmp_path):
        """Environment with fake tools first on PATH."""
        bindir = tmp_path / "bin"
        bindir.mkdir()
        write_script(bindir / "pg_config", FAKE_PG_CONFIG)
        write_script(bindir / "make", FAKE_MAKE)

        pg_root = tmp_path / "pg"
        pg_root.mkdir()

        env = dict(os.environ)
        env["PATH"] = f"{bindir}{os.pathsep}{env.get('PATH', '')}"
        env["FAKE_PG_ROOT"] = str(pg_root)
        env["PGBREW_HOME"] = str(tmp_path / "pgbrew-home")
        env["PG_CONFIG"] = str(bindir / "pg_config")
        return env

    @pytest.fixture
    def project(self, tmp_path):
        project_dir = tmp_path / "my_ext"
        project_dir.mkdir()
        (project_dir / "Makefile").write_text(
            "EXTENSION = my_ext\nDATA = my_ext--2.1.0.sql\n"
            + "PGXS := $(shell $(PG_CONFIG) --pgxs)\ninclude $(PGXS)\n"
        )
        (project_dir / "my_ext.control").write_text(
            "comment = 'test ext'\ndefault_version = '2.1.0'\n"
        )
        (project_dir / "my_ext--2.1.0.sql").write_text("SELECT 1;\n")
        return project_dir

    def pgbrew(self, env, *args):
        return subprocess.run(
            [sys.executable, "-m", "pgbrew.cli"] + list(args),
            env=env,
            capture_output=True,
            text=True,
        )

    def test_install_list_uninstall(self, env, project):
        pg_root = Path(env["FAKE_PG_ROOT"])

        result = self.pgbrew(env, "install", str(project))
        assert result.returncode == 0, result.stdout + result.stderr
        assert "Successfully installed my_ext 2.1.0" in result.stdout
        assert (pg_root / "lib" / "my_ext.so").exists()

        make_log = (pg_root / "make.log").read_text().splitlines()
        assert [line.split()[1] for line in make_log] == ["clean", f"PG_CONFIG={env['PG_CONFIG']}", "install"]

        result = self.pgbrew(env, "list")
        assert "my_ext 2.1.0 (pg16)" in result.stdout

        result = self.pgbrew(env, "info", "my_ext")
        assert "Build system:  pgxs" in result.stdout

        result = self.pgbrew(env, "list", "--all")
        assert "* my_ext" in result.stdout
        assert "test ext" in result.stdout

        result = self.pgbrew(env, "uninstall", "my_ext", "--dry-run")
        assert result.returncode == 0
        assert "Would remove 3 files:" in result.stdout
        assert (pg_root / "lib" / "my_ext.so").exists()

        result = self.pgbrew(env, "uninstall", "my_ext")
        assert result.returncode == 0, result.stdout + result.stderr
        assert "Removed 3 files:" in result.stdout
        assert not (pg_root / "lib" / "my_ext.so").exists()
        assert not (pg_root / "share" / "extension" / "my_ext.control").exists()

        result = self.pgbrew(env, "info", "my_ext")
        assert result.returncode == 1

    def test_unknown_project_type(self, env, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()

        result = self.pgbrew(env, "install", str(empty))

        assert result.returncode == 1
        assert "no compatible build system" in result.stdout
        assert not Path(env["PGBREW_HOME"], "installed.json").exists()
