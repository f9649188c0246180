"""FastAPI preview server for the built documentation site.

Serves ``dist/`` exactly as a static host would, plus two small JSON
endpoints used by scripts and health checks.
"""

from __future__ import annotations

from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from specops.errors import ConfigError
from specops.observability import get_logger
from specops.openapi.bundle import OPENAPI_FILE

logger = get_logger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080


def bundled_versions(dist_dir: Path) -> list[str]:
    """Names of ``dist`` sub-directories that contain a bundled document."""
    return sorted(
        entry.name
        for entry in dist_dir.iterdir()
        if entry.is_dir() and (entry / OPENAPI_FILE).is_file()
    )


def create_app(dist_dir: Path) -> FastAPI:
    """Create the preview application for ``dist_dir``.

    Routes:
        GET /health        -> {"status": "ok"}
        GET /api/versions  -> {"versions": [...]}
        /                  -> static files, ``index.html`` as directory index

    Raises:
        ConfigError: ``dist_dir`` does not exist (run ``specops build``).

    Example:
        >>> app = create_app(Path("dist"))
        >>> uvicorn.run(app, host="127.0.0.1", port=8080)
    """
    if not dist_dir.is_dir():
        raise ConfigError(f"Site directory not found: {dist_dir}. Run 'specops build'.")

    app = FastAPI(
        title="OpenAPI Documentation Preview",
        description="Preview of the bundled API reference site",
        version="0.1.0",
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/versions")
    async def versions() -> dict[str, list[str]]:
        return {"versions": bundled_versions(dist_dir)}

    # Mounted last so the API routes above take precedence.
    app.mount("/", StaticFiles(directory=dist_dir, html=True), name="site")
    return app


def run_preview(
    dist_dir: Path,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    log_level: str = "info",
) -> None:
    """Serve ``dist_dir`` with uvicorn until interrupted."""
    app = create_app(dist_dir)
    logger.info("Serving documentation preview", url=f"http://{host}:{port}/")
    config = uvicorn.Config(app, host=host, port=port, log_level=log_level)
    uvicorn.Server(config).run()
