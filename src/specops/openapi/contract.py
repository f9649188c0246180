"""Contract testing through the ``wiretap`` traffic-recording proxy.

Two modes:

- compliance: proxy a live API server and stream a report of every
  request/response that violates the specification.
- mockserver: serve mock responses generated from the specification on
  ``http://localhost:9090`` and record the traffic.

Both run until wiretap exits (normally Ctrl-C). The child is registered
in the caller's ``ProcessRegistry`` so the CLI can terminate it.
"""

from __future__ import annotations

from specops.config import ProjectPaths
from specops.process import ProcessRegistry, stream_command

MOCKSERVER_URL = "http://localhost:9090"
COMPLIANCE_REPORT = "out/reports/cf.json"
MOCKSERVER_REPORT = "out/wiretap-mockserver.json"


def compliance_command(server_url: str, spec_file: str) -> list[str]:
    return [
        "wiretap",
        "-u",
        server_url,
        "-s",
        spec_file,
        "--stream-report",
        "--report-filename",
        COMPLIANCE_REPORT,
    ]


def mockserver_command(spec_file: str) -> list[str]:
    return [
        "wiretap",
        "-s",
        spec_file,
        "-x",
        "-u",
        MOCKSERVER_URL,
        "--report-file",
        MOCKSERVER_REPORT,
    ]


async def run_compliance(
    server_url: str,
    spec_file: str,
    paths: ProjectPaths,
    registry: ProcessRegistry | None = None,
) -> int:
    """Proxy ``server_url`` and validate traffic against ``spec_file``.

    Raises:
        CommandError: wiretap exited non-zero or is not installed.
    """
    paths.reports_dir.mkdir(parents=True, exist_ok=True)
    return await stream_command(
        compliance_command(server_url, spec_file), cwd=paths.root, registry=registry
    )


async def run_mockserver(
    spec_file: str,
    paths: ProjectPaths,
    registry: ProcessRegistry | None = None,
) -> int:
    """Run wiretap as a mock server for ``spec_file``.

    Raises:
        CommandError: wiretap exited non-zero or is not installed.
    """
    paths.out_dir.mkdir(parents=True, exist_ok=True)
    return await stream_command(
        mockserver_command(spec_file), cwd=paths.root, registry=registry
    )
