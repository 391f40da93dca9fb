"""The cellar: durable record of extensions installed by pgbrew.

Cellar Structure:
    ~/.pgbrew/                    # or $PGBREW_HOME
    ├── installed.json            # {"entries": [...]} in install order
    └── installed.json.lock       # sidecar lock for load-mutate-save cycles

Each entry records what was installed, from where, for which PostgreSQL
major version and with which build system. Entries are unique by name.

Nothing is cached between calls: every operation reloads the file, and every
mutation saves the whole collection back atomically while holding the lock.
"""

import json
import logging
import os
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import PgbrewError
from .locking import DEFAULT_TIMEOUT, acquire_file_lock

PGBREW_HOME_ENV = "PGBREW_HOME"
CELLAR_FILENAME = "installed.json"


class CellarError(PgbrewError):
    """Raised when the cellar file cannot be read or written."""

    pass


class NotFound(CellarError):
    """Raised when no cellar entry has the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"extension not found: {name}")


@dataclass
class CellarEntry:
    """An installed extension."""

    name: str
    version: str
    source: str
    pg_version: str = ""
    build_system: str = ""
    installed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: Dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "source": self.source,
            "pg_version": self.pg_version,
        }
        if self.build_system:
            data["build_system"] = self.build_system
        data["installed_at"] = (
            self.installed_at.isoformat() if self.installed_at else None
        )
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CellarEntry":
        """Create CellarEntry from dictionary."""
        installed_at = data.get("installed_at")
        return cls(
            name=data["name"],
            version=data.get("version", ""),
            source=data.get("source", ""),
            pg_version=data.get("pg_version", ""),
            build_system=data.get("build_system", ""),
            installed_at=datetime.fromisoformat(installed_at) if installed_at else None,
        )


class CellarStore:
    """Load-mutate-save access to the cellar file."""

    def __init__(self, root: Optional[Path] = None, lock_timeout: float = DEFAULT_TIMEOUT):
        """Initialize cellar store.

        Args:
            root: Cellar directory. If None, uses $PGBREW_HOME or ~/.pgbrew.
            lock_timeout: Seconds to wait for the cellar lock
        """
        if root is None:
            home_env = os.environ.get(PGBREW_HOME_ENV)
            root = Path(home_env) if home_env else Path.home() / ".pgbrew"

        self.root = Path(root)
        self.lock_timeout = lock_timeout

    @property
    def path(self) -> Path:
        return self.root / CELLAR_FILENAME

    def load(self) -> List[CellarEntry]:
        """Read all entries; a missing cellar file is an empty cellar.

        Raises:
            CellarError: If the file exists but is not a valid cellar
        """
        if not self.path.exists():
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return [CellarEntry.from_dict(item) for item in data.get("entries") or []]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise CellarError(f"Failed to read cellar {self.path}: {e}") from e

    def _save(self, entries: List[CellarEntry]) -> None:
        """Write all entries atomically (temp file, then replace)."""
        self.root.mkdir(parents=True, exist_ok=True)
        temp_file = self.path.with_suffix(".tmp")
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump({"entries": [e.to_dict() for e in entries]}, f, indent=2)
            temp_file.replace(self.path)
        except OSError as e:
            raise CellarError(f"Failed to write cellar {self.path}: {e}") from e

    def get(self, name: str) -> CellarEntry:
        """Find an entry by exact name.

        Raises:
            NotFound: If no entry has this name
        """
        for entry in self.load():
            if entry.name == name:
                return entry
        raise NotFound(name)

    def add(self, entry: CellarEntry) -> CellarEntry:
        """Insert or replace an entry by name, stamping installed_at.

        A replaced entry keeps its position in the collection.

        Args:
            entry: Entry to record

        Returns:
            The stored entry with its installation time
        """
        stored = replace(entry, installed_at=datetime.now(timezone.utc))

        with acquire_file_lock(self.path, timeout=self.lock_timeout):
            entries = self.load()
            for index, existing in enumerate(entries):
                if existing.name == stored.name:
                    entries[index] = stored
                    break
            else:
                entries.append(stored)
            self._save(entries)

        logging.info(f"Recorded {stored.name} {stored.version} in {self.path}")
        return stored

    def remove(self, name: str) -> None:
        """Delete the entry with this name.

        Raises:
            NotFound: If no entry has this name; the file is left untouched
        """
        with acquire_file_lock(self.path, timeout=self.lock_timeout):
            entries = self.load()
            remaining = [entry for entry in entries if entry.name != name]
            if len(remaining) == len(entries):
                raise NotFound(name)
            self._save(remaining)

        logging.info(f"Removed {name} from {self.path}")
