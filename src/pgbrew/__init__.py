"""pgbrew - package manager for PostgreSQL extensions.

Installs pgrx (Rust) and PGXS (C/Makefile) extensions from local directories
or GitHub repositories, keeps track of them in the cellar, and removes them
safely once no database uses them anymore.
"""

__version__ = "0.1.0"
