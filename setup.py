"""
Setup file.
"""

import os
import re

from setuptools import find_packages, setup

URL = "https://github.com/matroidbe/pgbrew"
KEYWORDS = "postgresql postgres extension package-manager pgrx pgxs cargo make"
HERE = os.path.dirname(os.path.abspath(__file__))
VERSION_PATTERN = re.compile(r"^__version__\s*=\s*['\"]([^'\"]+)['\"]", re.MULTILINE)


def read_version() -> str:
    with open(os.path.join(HERE, "src", "pgbrew", "__init__.py"), encoding="utf-8") as f:
        match = VERSION_PATTERN.search(f.read())
    if not match:
        raise RuntimeError("__version__ not found in src/pgbrew/__init__.py")
    return match.group(1)


if __name__ == "__main__":
    setup(
        name="pgbrew",
        version=read_version(),
        description="Homebrew-inspired package manager for PostgreSQL extensions",
        maintainer="pgbrew developers",
        keywords=KEYWORDS,
        url=URL,
        python_requires=">=3.10",
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        install_requires=[
            "requests",
            "tqdm",
        ],
        extras_require={
            "test": [
                "pytest",
            ],
        },
        entry_points={
            "console_scripts": [
                "pgbrew = pgbrew.cli:main",
            ],
        },
        include_package_data=True)
