"""Build the static documentation site from versioned OpenAPI documents.

Layout::

    apis/cf/<version>/openapi.yaml   source documents (multi-file)
    dist/<version>/openapi.yaml      bundled by ``redocly bundle``
    dist/index.html                  Scalar API reference for all versions

Versions are bundled concurrently through ``run_bounded``. The build fails
if any bundle fails; ``index.html`` is only written after every version
bundled successfully.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from specops.config import ProjectPaths
from specops.errors import SpecOpsError
from specops.executor import Fulfilled, run_bounded
from specops.observability import get_logger
from specops.process import CommandError, CommandResult, ProcessRegistry, run_command

logger = get_logger(__name__)

DEFAULT_BUNDLE_CONCURRENCY = 4
LATEST_VERSION = "latest"
OPENAPI_FILE = "openapi.yaml"

# redocly leaves these relative refs in place for some versions.
UNRESOLVED_REF_FIXES: tuple[tuple[re.Pattern[str], str], ...] = (
    (
        re.compile(r"\$ref: \.\./components/schemas/Job\.yaml"),
        "#/components/schemas/Job",
    ),
    (
        re.compile(r"\$ref: \.\./components/schemas/Link\.yaml"),
        "#/components/schemas/Link",
    ),
)

INDEX_TEMPLATE = """<!doctype html>
<html>

<head>
    <title>Scalar API Reference</title>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
</head>

<body>
    <div id="app"></div>

    <!-- Load the Script -->
    <script src="https://cdn.jsdelivr.net/npm/@scalar/api-reference"></script>

    <!-- Initialize the Scalar API Reference -->
    <script>
        Scalar.createApiReference('#app', {configs})
    </script>
</body>

</html>
"""


class BuildError(SpecOpsError):
    """One or more versions failed to bundle."""

    def __init__(self, failed_versions: list[str]) -> None:
        super().__init__(f"Build failed for: {', '.join(failed_versions)}")
        self.failed_versions = failed_versions


@dataclass(frozen=True)
class BuildReport:
    versions: list[str]
    index_path: Path


def discover_versions(apis_dir: Path) -> list[str]:
    """Sorted names of sub-directories of ``apis_dir`` holding ``openapi.yaml``."""
    if not apis_dir.is_dir():
        return []
    return sorted(
        entry.name
        for entry in apis_dir.iterdir()
        if entry.is_dir() and (entry / OPENAPI_FILE).is_file()
    )


def scalar_config(version: str) -> dict[str, Any]:
    """Scalar reference entry for one version.

    Example:
        >>> scalar_config("latest")["default"]
        True
    """
    config: dict[str, Any] = {
        "title": f"Cloud Foundry V3 (CAPI {version})",
        "slug": f"cf-api-{version}",
        "url": f"{version}/{OPENAPI_FILE}",
    }
    if version == LATEST_VERSION:
        config["default"] = True
    return config


def render_index(versions: list[str]) -> str:
    configs = json.dumps([scalar_config(v) for v in versions], indent=12)
    return INDEX_TEMPLATE.replace("{configs}", configs)


def fix_unresolved_references(output_file: Path) -> bool:
    """Rewrite known leftover external refs to local component refs.

    Returns:
        True if the file was changed. Read/write problems are logged as
        warnings and reported as False.
    """
    try:
        content = output_file.read_text(encoding="utf-8")
        changed = False
        for pattern, target in UNRESOLVED_REF_FIXES:
            if pattern.search(content):
                logger.info(
                    "Fixing unresolved reference", pattern=pattern.pattern, target=target
                )
                content = pattern.sub(f"$ref: '{target}'", content)
                changed = True
        if changed:
            output_file.write_text(content, encoding="utf-8")
            logger.info("Fixed unresolved references", file=str(output_file))
        return changed
    except OSError as e:
        logger.warning(
            "Failed to fix unresolved references", file=str(output_file), error=str(e)
        )
        return False


async def bundle_version(
    version: str,
    paths: ProjectPaths,
    registry: ProcessRegistry | None = None,
) -> CommandResult:
    """Bundle one version with redocly, then post-process the output."""
    source_dir = paths.apis_dir / version
    output_file = paths.dist_dir / version / OPENAPI_FILE
    output_file.parent.mkdir(parents=True, exist_ok=True)

    result = await run_command(
        ["redocly", "bundle", OPENAPI_FILE, "-o", str(output_file.resolve())],
        cwd=source_dir,
        registry=registry,
    )
    fix_unresolved_references(output_file)
    return result


def _log_command_output(result: CommandResult) -> None:
    if result.stdout:
        logger.info("Command output", stdout=result.stdout.rstrip())
    if result.stderr:
        logger.warning("Command stderr", stderr=result.stderr.rstrip())


async def build_site(
    paths: ProjectPaths,
    *,
    registry: ProcessRegistry | None = None,
    concurrency: int = DEFAULT_BUNDLE_CONCURRENCY,
) -> BuildReport:
    """Bundle every version and write ``dist/index.html``.

    Raises:
        BuildError: Any version failed to bundle.
    """
    paths.dist_dir.mkdir(parents=True, exist_ok=True)
    versions = discover_versions(paths.apis_dir)
    logger.info("Bundling API versions", versions=versions)

    async def bundle(version: str) -> CommandResult:
        return await bundle_version(version, paths, registry)

    outcomes = await run_bounded(versions, bundle, concurrency)

    failed: list[str] = []
    for version, outcome in zip(versions, outcomes, strict=True):
        if isinstance(outcome, Fulfilled):
            logger.info("Command successful", command=outcome.value.command)
            _log_command_output(outcome.value)
            continue
        failed.append(version)
        error = outcome.error
        if isinstance(error, CommandError):
            logger.error(
                "Command failed", command=error.command, exit_code=error.exit_code
            )
            _log_command_output(error.result)
        else:
            logger.error("Bundling failed", version=version, error=str(error))

    if failed:
        raise BuildError(failed)

    index_path = paths.dist_dir / "index.html"
    index_path.write_text(render_index(versions), encoding="utf-8")
    logger.info("Successfully generated index", path=str(index_path))
    return BuildReport(versions=versions, index_path=index_path)
