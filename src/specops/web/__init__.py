"""Documentation preview server."""

from specops.web.app import create_app, run_preview

__all__ = ["create_app", "run_preview"]
