"""OpenAPI documentation build, version scaffolding and contract testing."""

from specops.openapi.bundle import (
    BuildError,
    BuildReport,
    build_site,
    discover_versions,
    fix_unresolved_references,
    render_index,
    scalar_config,
)
from specops.openapi.contract import run_compliance, run_mockserver
from specops.openapi.versions import create_version

__all__ = [
    "BuildError",
    "BuildReport",
    "build_site",
    "create_version",
    "discover_versions",
    "fix_unresolved_references",
    "render_index",
    "run_compliance",
    "run_mockserver",
    "scalar_config",
]
