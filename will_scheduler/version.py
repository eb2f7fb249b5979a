"""Single source of truth for the application version.

Reads the version from pyproject.toml when running from a checkout, falling
back to the installed distribution metadata.
"""

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_version() -> str:
    """Return the version string from pyproject.toml or package metadata."""
    pyproject_path = _PROJECT_ROOT / "pyproject.toml"
    if pyproject_path.exists():
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
        return data["project"]["version"]
    try:
        return version("will-scheduler")
    except PackageNotFoundError:
        return "unknown"


__version__: str = get_version()
