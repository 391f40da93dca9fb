"""Unit tests for control file parsing."""

from pgbrew.config import (
    ControlFile,
    find_control_files,
    parse_control_file,
    read_default_version,
)


class TestReadDefaultVersion:
    """Test cases for read_default_version()."""

    def test_single_quotes(self, tmp_path):
        path = tmp_path / "my_ext.control"
        path.write_text("comment = 'test ext'\ndefault_version = '2.1.0'\n")
        assert read_default_version(path) == "2.1.0"

    def test_double_quotes_and_spacing(self, tmp_path):
        path = tmp_path / "my_ext.control"
        path.write_text('default_version="1.0"\n')
        assert read_default_version(path) == "1.0"

    def test_missing(self, tmp_path):
        path = tmp_path / "my_ext.control"
        path.write_text("comment = 'test ext'\nrelocatable = true\n")
        assert read_default_version(path) is None

    def test_first_occurrence_wins(self, tmp_path):
        path = tmp_path / "my_ext.control"
        path.write_text("default_version = '1.0'\ndefault_version = '2.0'\n")
        assert read_default_version(path) == "1.0"


class TestParseControlFile:
    """Test cases for parse_control_file()."""

    def test_parse(self, tmp_path):
        path = tmp_path / "pg_trgm.control"
        path.write_text(
            "# pg_trgm extension\n"
            "comment = 'text similarity measurement and index searching based on trigrams'\n"
            "default_version = '1.6'\n"
            "module_pathname = '$libdir/pg_trgm'\n"
            "relocatable = true\n"
            "trusted = true\n"
        )
        assert parse_control_file(path) == ControlFile(
            name="pg_trgm",
            version="1.6",
            comment="text similarity measurement and index searching based on trigrams",
            path=path,
        )

    def test_commented_lines_ignored(self, tmp_path):
        path = tmp_path / "x.control"
        path.write_text("# default_version = '9.9'\ndefault_version = '1.0'\n")
        assert parse_control_file(path).version == "1.0"

    def test_minimal(self, tmp_path):
        path = tmp_path / "bare.control"
        path.write_text("\n")
        control = parse_control_file(path)
        assert control.name == "bare"
        assert control.version == ""
        assert control.comment == ""

    def test_unreadable(self, tmp_path):
        control = parse_control_file(tmp_path / "gone.control")
        assert control.name == "gone"
        assert control.version == ""


class TestFindControlFiles:
    """Test cases for find_control_files()."""

    def test_sorted(self, tmp_path):
        for name in ["zeta.control", "alpha.control", "alpha--1.0.sql", "Makefile"]:
            (tmp_path / name).write_text("")
        assert [p.name for p in find_control_files(tmp_path)] == [
            "alpha.control",
            "zeta.control",
        ]

    def test_missing_directory(self, tmp_path):
        assert find_control_files(tmp_path / "missing") == []
