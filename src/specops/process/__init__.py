"""External command invocation and child-process tracking."""

from specops.process.runner import (
    EXIT_NOT_FOUND,
    EXIT_TIMEOUT,
    CommandError,
    CommandResult,
    CommandTimeoutError,
    ProcessRegistry,
    format_command,
    run_command,
    stream_command,
)

__all__ = [
    "EXIT_NOT_FOUND",
    "EXIT_TIMEOUT",
    "CommandError",
    "CommandResult",
    "CommandTimeoutError",
    "ProcessRegistry",
    "format_command",
    "run_command",
    "stream_command",
]
