"""Test doubles shared across specops tests.

Fakes for the two boundaries the code talks to: the command runner
(``gh``, ``redocly``, ``wiretap``) and asyncio's sleep.

Example:
    from tests.helpers import FakeRunner, gh_error

    runner = FakeRunner()
    runner.on(lambda argv: argv[1:3] == ["label", "list"], gh_error("rate limit"), "[]")
    client = GitHubCLI("owner/repo", RetryPolicy(3, 1), runner=runner)
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from specops.process import CommandError, CommandResult


class RecordingSleep:
    """Awaitable replacement for ``asyncio.sleep`` that records delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeRunner:
    """Scripted stand-in for ``run_command``.

    Rules registered with ``on`` are tried in order. A rule's responses are
    consumed one per matching call, the last one repeating. A response is
    either stdout text or an exception to raise. Unmatched commands succeed
    with empty output.

    Bodies passed with ``--body-file`` are read during the call, while the
    temporary file still exists. Keyword arguments of each call (registry,
    timeout) are kept in ``options``.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.options: list[dict[str, object]] = []
        self.body_files: list[Path] = []
        self.bodies: list[str] = []
        self._rules: list[tuple[Callable[[list[str]], bool], list[object]]] = []

    def on(self, predicate: Callable[[list[str]], bool], *responses: object) -> None:
        self._rules.append((predicate, list(responses)))

    async def __call__(self, argv: list[str], **kwargs: object) -> CommandResult:
        self.calls.append(list(argv))
        self.options.append(dict(kwargs))
        if "--body-file" in argv:
            body_file = Path(argv[argv.index("--body-file") + 1])
            self.body_files.append(body_file)
            self.bodies.append(body_file.read_text(encoding="utf-8"))

        command = " ".join(argv)
        for predicate, responses in self._rules:
            if not predicate(argv):
                continue
            response = responses.pop(0) if len(responses) > 1 else responses[0]
            if isinstance(response, BaseException):
                raise response
            return CommandResult(command=command, exit_code=0, stdout=str(response))
        return CommandResult(command=command, exit_code=0, stdout="")


def gh_error(stderr: str, exit_code: int = 1) -> CommandError:
    """A failed gh invocation with ``stderr`` as its output."""
    return CommandError(CommandResult(command="gh", exit_code=exit_code, stderr=stderr))


def subcommand(*words: str) -> Callable[[list[str]], bool]:
    """Predicate matching ``gh <words...> ...``."""
    return lambda argv: argv[1 : 1 + len(words)] == list(words)
