"""CLI entry point for specops.

Provides the ``specops`` console script with subcommands:

- ``issues``: Create/update one audit issue per endpoint and aspect
- ``build``: Bundle every API version and generate ``dist/index.html``
- ``create-version``: Scaffold ``apis/cf/<version>`` from ``latest``
- ``test-compliance``: Validate live traffic with wiretap
- ``test-mockserver``: Run wiretap as a mock server
- ``serve``: Preview the built site

Usage::

    specops issues my-org/my-repo -v
    specops issues my-org/my-repo --recolor --workers 2
    SPECOPS_MAX_RETRIES=5 specops issues my-org/my-repo
    specops build
    specops create-version 3.195.0
    specops test-compliance https://api.example.com apis/cf/latest/openapi.yaml
    specops serve --port 8080

Exit codes: 0 success, 1 failure (configuration, command or any failed
task), 130 interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import TypeVar

from specops.config import DEFAULT_ENDPOINTS_FILE, ProjectPaths, SyncConfig
from specops.errors import SpecOpsError
from specops.github import GitHubCLI, IssueSynchronizer
from specops.observability import configure_logging, get_logger
from specops.openapi import build_site, create_version, run_compliance, run_mockserver
from specops.process import CommandError, ProcessRegistry
from specops.web import run_preview
from specops.web.app import DEFAULT_HOST, DEFAULT_PORT

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

T = TypeVar("T")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="specops",
        description="Build, version, test and audit the OpenAPI specification",
    )
    parser.add_argument(
        "--log-json", action="store_true", help="Emit logs as JSON lines"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    issues = subparsers.add_parser(
        "issues", help="Synchronise spec-check issues and labels on GitHub"
    )
    issues.add_argument("repo", help="GitHub repository, e.g. owner/repo")
    issues.add_argument(
        "-e",
        "--endpoints",
        type=Path,
        default=DEFAULT_ENDPOINTS_FILE,
        help="File of 'METHOD /path' lines (default: endpoints.txt)",
    )
    issues.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    issues.add_argument(
        "--recolor", action="store_true", help="Recolor existing labels"
    )
    issues.add_argument("--workers", type=int, help="Parallel workers (default 3)")
    issues.add_argument(
        "--retry-delay-ms",
        type=int,
        help="First backoff delay on rate limits (default 10000)",
    )
    issues.add_argument(
        "--max-retries", type=int, help="Attempts per GitHub call (default 10)"
    )

    build = subparsers.add_parser("build", help="Bundle API versions into dist/")
    build.add_argument("--root", type=Path, default=Path.cwd(), help="Project root")

    version = subparsers.add_parser(
        "create-version", help="Copy apis/cf/latest to a new version"
    )
    version.add_argument("version", help="Version name, e.g. 3.195.0")
    version.add_argument("--root", type=Path, default=Path.cwd(), help="Project root")

    compliance = subparsers.add_parser(
        "test-compliance", help="Validate live API traffic with wiretap"
    )
    compliance.add_argument("server_url")
    compliance.add_argument("spec_file")
    compliance.add_argument(
        "--root", type=Path, default=Path.cwd(), help="Project root"
    )

    mockserver = subparsers.add_parser(
        "test-mockserver", help="Run wiretap as a mock server"
    )
    mockserver.add_argument("spec_file")
    mockserver.add_argument(
        "--root", type=Path, default=Path.cwd(), help="Project root"
    )

    serve = subparsers.add_parser("serve", help="Preview the built site")
    serve.add_argument("--dist", type=Path, default=Path("dist"))
    serve.add_argument("--host", default=DEFAULT_HOST)
    serve.add_argument("--port", type=int, default=DEFAULT_PORT)

    return parser


async def _terminating_on_cancel(
    factory: Callable[[], Awaitable[T]], registry: ProcessRegistry
) -> T:
    try:
        return await factory()
    except asyncio.CancelledError:
        count = registry.terminate_all()
        if count:
            logger.warning("Interrupted, terminated child processes", count=count)
        raise


def _run(factory: Callable[[], Awaitable[T]], registry: ProcessRegistry) -> T:
    return asyncio.run(_terminating_on_cancel(factory, registry))


def run_issues(args: argparse.Namespace, registry: ProcessRegistry) -> int:
    config = SyncConfig.from_sources(
        args.repo,
        endpoints_file=args.endpoints,
        workers=args.workers,
        base_delay_ms=args.retry_delay_ms,
        max_retries=args.max_retries,
        verbose=args.verbose,
        recolor=args.recolor,
    )
    client = GitHubCLI(config.repo, config.retry_policy(), registry=registry)
    synchronizer = IssueSynchronizer(config, client)
    summary = _run(synchronizer.run, registry)
    return EXIT_OK if summary.failed == 0 else EXIT_FAILURE


def dispatch(args: argparse.Namespace, registry: ProcessRegistry) -> int:
    if args.command == "issues":
        return run_issues(args, registry)

    if args.command == "build":
        _run(lambda: build_site(ProjectPaths(args.root), registry=registry), registry)
        return EXIT_OK

    if args.command == "create-version":
        create_version(args.version, ProjectPaths(args.root))
        return EXIT_OK

    if args.command == "test-compliance":
        _run(
            lambda: run_compliance(
                args.server_url, args.spec_file, ProjectPaths(args.root), registry
            ),
            registry,
        )
        return EXIT_OK

    if args.command == "test-mockserver":
        _run(
            lambda: run_mockserver(args.spec_file, ProjectPaths(args.root), registry),
            registry,
        )
        return EXIT_OK

    if args.command == "serve":
        run_preview(args.dist, host=args.host, port=args.port)
        return EXIT_OK

    raise SpecOpsError(f"Unknown command: {args.command}")  # pragma: no cover


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, configure logging and run one subcommand.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    verbose = getattr(args, "verbose", False)
    configure_logging(
        level=logging.DEBUG if verbose else logging.INFO,
        json_format=args.log_json,
        force=True,
    )

    registry = ProcessRegistry()
    try:
        return dispatch(args, registry)
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_INTERRUPTED
    except CommandError as e:
        logger.error(str(e), exit_code=e.exit_code)
        return EXIT_FAILURE
    except SpecOpsError as e:
        logger.error(f"Fatal error: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
