"""Package version, read from pyproject.toml in a source checkout."""

from __future__ import annotations

import re
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _metadata_version
from pathlib import Path

DIST_NAME = "openapi-mock"


def get_version() -> str:
    pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
    if pyproject.is_file():
        match = re.search(r'^version\s*=\s*"([^"]+)"', pyproject.read_text(), re.MULTILINE)
        if match:
            return match.group(1)
    try:
        return _metadata_version(DIST_NAME)
    except PackageNotFoundError:
        return "0.0.0"


__version__ = get_version()
