"""Scaffold a new API version from ``apis/cf/latest``.

Creating version ``3.195.0``:

1. Copy ``apis/cf/latest`` to ``apis/cf/3.195.0``.
2. Register ``cf@3.195.0`` in ``redocly.yaml`` under ``apis``.
3. Replace ``version: latest`` with ``version: 3.195.0`` in the copy's
   ``openapi.yaml``.
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path
from typing import Any

import yaml

from specops.config import ProjectPaths
from specops.errors import ConfigError
from specops.observability import get_logger

logger = get_logger(__name__)

VERSION_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
LATEST_VERSION_LINE = re.compile(r"version: latest")


def validate_version(version: str) -> None:
    if not VERSION_PATTERN.match(version or ""):
        raise ConfigError(f"Invalid version name: {version!r}")
    if version == "latest":
        raise ConfigError("'latest' is reserved for the working copy")


def register_version(redocly_config: Path, version: str) -> dict[str, Any]:
    """Add ``cf@<version>`` to ``redocly.yaml``, creating the file if absent.

    Returns:
        The updated configuration mapping.
    """
    config: dict[str, Any] = {}
    if redocly_config.exists():
        loaded = yaml.safe_load(redocly_config.read_text(encoding="utf-8"))
        if loaded is not None:
            if not isinstance(loaded, dict):
                raise ConfigError(f"{redocly_config} must contain a mapping")
            config = loaded

    apis = config.get("apis") or {}
    apis[f"cf@{version}"] = {"root": f"apis/cf/{version}/openapi.yaml"}
    config["apis"] = apis

    redocly_config.write_text(
        yaml.safe_dump(config, sort_keys=False), encoding="utf-8"
    )
    return config


def stamp_version(openapi_file: Path, version: str) -> int:
    """Replace ``version: latest`` occurrences; returns the count."""
    content = openapi_file.read_text(encoding="utf-8")
    updated, count = LATEST_VERSION_LINE.subn(f"version: {version}", content)
    openapi_file.write_text(updated, encoding="utf-8")
    return count


def create_version(version: str, paths: ProjectPaths) -> Path:
    """Create ``apis/cf/<version>`` from ``latest``.

    Returns:
        The new version directory.

    Raises:
        ConfigError: Invalid name, ``latest`` missing, or the version exists.
    """
    validate_version(version)
    target = paths.apis_dir / version
    if not paths.latest_dir.is_dir():
        raise ConfigError(f"Missing source directory: {paths.latest_dir}")
    if target.exists():
        raise ConfigError(f"Version already exists: {target}")

    logger.info(f"Creating version {version}...")
    shutil.copytree(paths.latest_dir, target)
    logger.info(f"Copied 'latest' to '{version}'")

    register_version(paths.redocly_config, version)
    logger.info(f"Updated redocly.yaml with version {version}")

    openapi_file = target / "openapi.yaml"
    if openapi_file.is_file():
        stamp_version(openapi_file, version)
        logger.info(f"Updated openapi.yaml in '{version}' directory with new version")

    logger.info("Version creation complete.")
    return target
