"""Extension control file parsing.

A control file (``<name>.control``) is PostgreSQL's descriptor for an
extension. It is a line-oriented list of ``key = 'value'`` or
``key = "value"`` pairs. pgbrew only cares about two keys:

    default_version = '1.2.0'
    comment = 'fuzzy string matching'

Lines starting with ``#`` and unknown keys are ignored. Files are scanned as
text; they are never handed to a structural parser.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

CONTROL_SUFFIX = ".control"

DEFAULT_VERSION_PATTERN = re.compile(r"""default_version\s*=\s*['"]([^'"]+)['"]""")


@dataclass
class ControlFile:
    """Metadata read from an extension control file."""

    name: str
    version: str = ""
    comment: str = ""
    path: Optional[Path] = None


def find_control_files(directory: Path) -> List[Path]:
    """List control files directly inside ``directory``, sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(directory.glob(f"*{CONTROL_SUFFIX}"))


def read_default_version(path: Path) -> Optional[str]:
    """Scan a control file line by line for ``default_version``.

    Args:
        path: Path to the control file

    Returns:
        The first default_version value found, or None
    """
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        for line in f:
            match = DEFAULT_VERSION_PATTERN.search(line)
            if match:
                return match.group(1)
    return None


def parse_control_file(path: Path) -> ControlFile:
    """Read name, default_version and comment from a control file.

    Unreadable files yield a ControlFile carrying only the name derived
    from the file name.

    Args:
        path: Path to the control file

    Returns:
        Parsed ControlFile
    """
    path = Path(path)
    control = ControlFile(name=path.name[: -len(CONTROL_SUFFIX)], path=path)

    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return control

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        key, sep, value = line.partition("=")
        if not sep:
            continue

        key = key.strip()
        value = value.strip().strip("'\"")

        if key == "default_version":
            control.version = value
        elif key == "comment":
            control.comment = value

    return control
