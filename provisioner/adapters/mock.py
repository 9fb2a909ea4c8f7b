"""
Mock executor — scripted test double for the command executor.

Answers commands by argv prefix instead of spawning processes. A
response is either a fixed CommandResult or a handler callable that
receives the argv (after the privilege prefix is stripped) and returns
one, which lets tests model a system whose state changes as commands
run.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from provisioner.adapters.shell.command import CommandExecutor, CommandResult, redact

Handler = Callable[[list[str]], CommandResult]


@dataclass(frozen=True)
class MockCall:
    argv: list[str]
    elevated: bool
    mutating: bool
    input_text: str | None = None


class MockExecutor(CommandExecutor):
    """CommandExecutor that never spawns a process.

    By default every command succeeds with empty output. Responses are
    matched on the longest registered argv prefix.
    """

    def __init__(self, dry_run: bool = False, default_exit_code: int = 0):
        super().__init__(dry_run=dry_run, privilege_command=())
        self._default_exit_code = default_exit_code
        self._responses: dict[tuple[str, ...], CommandResult | Handler] = {}
        self._calls: list[MockCall] = []

    # ── Scripting ────────────────────────────────────────────────

    def on(self, prefix: Sequence[str], response: CommandResult | Handler) -> None:
        """Answer commands starting with ``prefix`` with ``response``."""
        self._responses[tuple(prefix)] = response

    def respond(
        self,
        prefix: Sequence[str],
        exit_code: int = 0,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        """Shorthand for a fixed response."""
        self.on(
            prefix,
            CommandResult.synthetic(list(prefix), exit_code=exit_code, stdout=stdout, stderr=stderr),
        )

    def reset(self) -> None:
        """Clear call log and scripted responses."""
        self._calls.clear()
        self._responses.clear()
        self._history.clear()

    # ── Inspection ───────────────────────────────────────────────

    @property
    def calls(self) -> list[MockCall]:
        return self._calls

    @property
    def mutating_calls(self) -> list[MockCall]:
        """Calls that would have changed the system."""
        return [c for c in self._calls if c.mutating]

    def called(self, prefix: Sequence[str]) -> bool:
        p = list(prefix)
        return any(c.argv[: len(p)] == p for c in self._calls)

    # ── Execution ────────────────────────────────────────────────

    def _lookup(self, argv: list[str]) -> CommandResult | Handler | None:
        for length in range(len(argv), 0, -1):
            response = self._responses.get(tuple(argv[:length]))
            if response is not None:
                return response
        return None

    def run(
        self,
        argv: Sequence[str],
        *,
        elevated: bool = False,
        mutating: bool = True,
        input_text: str | None = None,
        cwd: str | None = None,
        secrets: Sequence[str] = (),
    ) -> CommandResult:
        # Calls keep what the process would receive; history is masked
        argv_list = list(argv)
        self._calls.append(
            MockCall(argv=argv_list, elevated=elevated, mutating=mutating, input_text=input_text)
        )

        if self.dry_run and mutating:
            result = CommandResult.synthetic(argv_list, dry_run=True)
        else:
            response = self._lookup(argv_list)
            if response is None:
                result = CommandResult.synthetic(argv_list, exit_code=self._default_exit_code)
            elif isinstance(response, CommandResult):
                result = response.model_copy(update={"argv": argv_list})
            else:
                result = response(argv_list)

        if secrets:
            result = result.model_copy(update={"argv": redact(result.argv, secrets)})
        self._history.append(result)
        return result
