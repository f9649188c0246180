"""Async external command invocation.

Each external call is a single awaitable that resolves to a
``CommandResult`` or raises ``CommandError`` carrying the same fields.
Commands are always argument lists executed without a shell, so label
names, titles and paths never need quoting.

Spawned processes are tracked in an explicit ``ProcessRegistry`` owned by
the caller (normally the CLI), which can terminate whatever is still
running on Ctrl-C.

Example:
    registry = ProcessRegistry()
    result = await run_command(["gh", "--version"], registry=registry)
    print(result.stdout)
"""

from __future__ import annotations

import asyncio
import contextlib
import os
from dataclasses import dataclass
from pathlib import Path

from specops.observability import get_logger

logger = get_logger(__name__)

#: Exit code reported when the executable could not be started.
EXIT_NOT_FOUND = 127

#: Exit code reported when a command exceeded its time limit.
EXIT_TIMEOUT = 124

#: Seconds a terminated child gets to exit before it is killed.
TERMINATE_GRACE_S = 5.0


@dataclass(frozen=True)
class CommandResult:
    """Completed external command.

    Attributes:
        command: Printable command line.
        exit_code: Process return code.
        stdout: Captured standard output (empty when streamed).
        stderr: Captured standard error (empty when streamed).
    """

    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandError(Exception):
    """External command failed or could not be started."""

    def __init__(self, result: CommandResult) -> None:
        detail = (result.stderr or result.stdout).strip()
        message = f"Command failed with exit code {result.exit_code}: {result.command}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)
        self.result = result

    @property
    def command(self) -> str:
        return self.result.command

    @property
    def exit_code(self) -> int:
        return self.result.exit_code

    @property
    def stdout(self) -> str:
        return self.result.stdout

    @property
    def stderr(self) -> str:
        return self.result.stderr


class CommandTimeoutError(CommandError):
    """External command did not finish within its time limit.

    The child has already been terminated and reaped when this is raised.
    """

    def __init__(self, result: CommandResult, timeout: float) -> None:
        super().__init__(result)
        self.timeout = timeout


class ProcessRegistry:
    """Set of live child processes started on behalf of one run.

    Owned by the orchestration layer and passed explicitly to the
    functions that spawn processes. ``run_command`` and ``stream_command``
    register a child for the duration of the call and always deregister it.
    """

    def __init__(self) -> None:
        self._processes: set[asyncio.subprocess.Process] = set()

    def __len__(self) -> int:
        return len(self._processes)

    def register(self, process: asyncio.subprocess.Process) -> None:
        self._processes.add(process)

    def unregister(self, process: asyncio.subprocess.Process) -> None:
        self._processes.discard(process)

    def terminate_all(self) -> int:
        """Send terminate to every registered process still running.

        Returns:
            Number of processes signalled.
        """
        signalled = 0
        for process in list(self._processes):
            if process.returncode is not None:
                continue
            try:
                process.terminate()
            except ProcessLookupError:
                continue
            signalled += 1
            logger.info("Terminated child process", pid=process.pid)
        return signalled


def format_command(argv: list[str]) -> str:
    """Printable form of ``argv``; arguments with spaces are quoted.

    Example:
        >>> format_command(["gh", "label", "create", "Method: GET"])
        'gh label create "Method: GET"'
    """
    return " ".join(f'"{arg}"' if " " in arg or not arg else arg for arg in argv)


async def _spawn(
    argv: list[str],
    cwd: Path | str | None,
    capture: bool,
    stdin: int | None,
) -> asyncio.subprocess.Process:
    pipe = asyncio.subprocess.PIPE if capture else None
    return await asyncio.create_subprocess_exec(
        *argv,
        cwd=os.fspath(cwd) if cwd is not None else None,
        stdin=stdin,
        stdout=pipe,
        stderr=pipe,
    )


async def _stop(process: asyncio.subprocess.Process) -> None:
    """Terminate ``process`` and wait for it, killing it after the grace period."""
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
    try:
        await asyncio.wait_for(process.wait(), TERMINATE_GRACE_S)
    except TimeoutError:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()


async def run_command(
    argv: list[str],
    *,
    cwd: Path | str | None = None,
    registry: ProcessRegistry | None = None,
    check: bool = True,
    input_text: str | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run ``argv`` to completion and capture its output.

    Args:
        argv: Executable and arguments.
        cwd: Working directory for the child.
        registry: Registry tracking the child while it runs.
        check: Raise ``CommandError`` on a non-zero exit code.
        input_text: Text written to the child's stdin.
        timeout: Seconds the child may run; None waits indefinitely.

    Returns:
        CommandResult with decoded stdout/stderr.

    Raises:
        CommandTimeoutError: ``timeout`` elapsed; the child was stopped.
        CommandError: Non-zero exit (when ``check``) or the executable
            could not be started (exit code 127, OS error in stderr).
        asyncio.CancelledError: Caller cancelled; the child is terminated
            and reaped before this propagates.
    """
    command = format_command(argv)
    logger.debug(
        "Running command", command=command, cwd=os.fspath(cwd) if cwd else None
    )

    try:
        process = await _spawn(
            argv,
            cwd,
            capture=True,
            stdin=asyncio.subprocess.PIPE if input_text is not None else None,
        )
    except OSError as e:
        raise CommandError(
            CommandResult(command=command, exit_code=EXIT_NOT_FOUND, stderr=str(e))
        ) from e

    if registry is not None:
        registry.register(process)
    try:
        async with asyncio.timeout(timeout):
            stdout, stderr = await process.communicate(
                input_text.encode() if input_text is not None else None
            )
    except TimeoutError:
        await _stop(process)
        logger.warning("Command timed out", command=command, timeout_s=timeout)
        raise CommandTimeoutError(
            CommandResult(
                command=command,
                exit_code=EXIT_TIMEOUT,
                stderr=f"timed out after {timeout}s",
            ),
            timeout=timeout,
        ) from None
    except asyncio.CancelledError:
        await _stop(process)
        raise
    finally:
        if registry is not None:
            registry.unregister(process)

    result = CommandResult(
        command=command,
        exit_code=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
    if check and not result.ok:
        raise CommandError(result)
    return result


async def stream_command(
    argv: list[str],
    *,
    cwd: Path | str | None = None,
    registry: ProcessRegistry | None = None,
) -> int:
    """Run ``argv`` with inherited stdio, for long-running tools.

    Returns:
        The exit code, which is always 0.

    Raises:
        CommandError: Non-zero exit or the executable could not be started.
    """
    command = format_command(argv)
    logger.info("Running command", command=command)

    try:
        process = await _spawn(argv, cwd, capture=False, stdin=None)
    except OSError as e:
        raise CommandError(
            CommandResult(command=command, exit_code=EXIT_NOT_FOUND, stderr=str(e))
        ) from e

    if registry is not None:
        registry.register(process)
    try:
        exit_code = await process.wait()
    except asyncio.CancelledError:
        await _stop(process)
        raise
    finally:
        if registry is not None:
            registry.unregister(process)

    if exit_code != 0:
        raise CommandError(CommandResult(command=command, exit_code=exit_code))
    return exit_code
