"""Package version, from installed metadata or a source checkout's pyproject.toml."""

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

DIST_NAME = "shopforge"
UNKNOWN_VERSION = "0.0.0"


def _checkout_version(pyproject: Path) -> str | None:
    try:
        with pyproject.open("rb") as f:
            project = tomllib.load(f).get("project", {})
    except (OSError, tomllib.TOMLDecodeError):
        return None
    value = project.get("version")
    return value if isinstance(value, str) else None


def get_version(pyproject: Path | None = None) -> str:
    """Installed distribution version, else the checkout's declared one."""
    try:
        return version(DIST_NAME)
    except PackageNotFoundError:
        pass
    pyproject = pyproject or Path(__file__).resolve().parents[2] / "pyproject.toml"
    return _checkout_version(pyproject) or UNKNOWN_VERSION
