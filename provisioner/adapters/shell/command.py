"""
Command executor — the only place external processes are spawned.

Every adapter reaches its tool through here. Non-zero exits are
returned, never raised, so callers can classify them. A dry run logs
mutating commands and returns a synthetic success; read-only commands
(probes) always run so the plan stays truthful.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from collections.abc import Sequence

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Conventional shell exit codes for "not found" and "timed out"
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124

DEFAULT_TIMEOUT = 1800

REDACTED = "******"


def format_argv(argv: Sequence[str]) -> str:
    """Render an argv list the way a shell user would type it."""
    return " ".join(shlex.quote(a) for a in argv)


def redact(argv: Sequence[str], secrets: Sequence[str] = ()) -> list[str]:
    """Copy of ``argv`` with every occurrence of each secret masked."""
    masked = list(argv)
    for secret in secrets:
        if secret:
            masked = [a.replace(secret, REDACTED) for a in masked]
    return masked


class CommandResult(BaseModel):
    """Captured result of one external command."""

    argv: list[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def command_line(self) -> str:
        return format_argv(self.argv)

    @property
    def error_summary(self) -> str:
        """Last line of stderr, or a generic exit-code message."""
        lines = [ln for ln in self.stderr.strip().splitlines() if ln.strip()]
        if lines:
            return lines[-1].strip()
        return f"{self.command_line} exited with code {self.exit_code}"

    @classmethod
    def synthetic(cls, argv: Sequence[str], exit_code: int = 0, **kwargs) -> CommandResult:
        """A result that did not come from a real process."""
        return cls(argv=list(argv), exit_code=exit_code, **kwargs)


class CommandExecutor:
    """Run external commands with consistent logging.

    Args:
        dry_run: Log mutating commands instead of running them.
        privilege_command: Prefix used for ``elevated=True`` calls
            (default ``sudo``). Dropped when already running as root.
        timeout: Per-command timeout in seconds.
        env: Extra environment variables for every command.
    """

    def __init__(
        self,
        dry_run: bool = False,
        privilege_command: Sequence[str] = ("sudo",),
        timeout: int = DEFAULT_TIMEOUT,
        env: dict[str, str] | None = None,
    ):
        self.dry_run = dry_run
        self.privilege_command = list(privilege_command)
        self.timeout = timeout
        self._env = env or {}
        self._history: list[CommandResult] = []

    @property
    def history(self) -> list[CommandResult]:
        """Every result produced by this executor, oldest first."""
        return self._history

    def _elevate(self, argv: list[str]) -> list[str]:
        if not self.privilege_command or os.geteuid() == 0:
            return argv
        return self.privilege_command + argv

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
        """Run a command and capture its result.

        Args:
            argv: Command and arguments (never passed through a shell).
            elevated: Run through the privilege-escalation prefix.
            mutating: False for read-only queries; these run even in
                dry-run mode.
            input_text: Text fed to stdin.
            cwd: Working directory.
            secrets: Values passed to the process but masked in logs,
                the result and the history.

        Returns:
            CommandResult. Never raises for process failures.
        """
        argv_list = list(argv)
        if elevated:
            argv_list = self._elevate(argv_list)
        shown = redact(argv_list, secrets)

        if self.dry_run and mutating:
            logger.info("DRY-RUN %s", format_argv(shown))
            result = CommandResult.synthetic(shown, dry_run=True)
            self._history.append(result)
            return result

        log = logger.info if mutating else logger.debug
        log("CMD %s", format_argv(shown))
        start = time.monotonic()

        try:
            proc = subprocess.run(
                argv_list,
                input=input_text,
                capture_output=True,
                text=True,
                cwd=cwd,
                timeout=self.timeout,
                env=dict(os.environ, **self._env),
            )
            stdout, stderr = redact([proc.stdout, proc.stderr], secrets)
            result = CommandResult(
                argv=shown,
                exit_code=proc.returncode,
                stdout=stdout,
                stderr=stderr,
            )
        except FileNotFoundError:
            result = CommandResult.synthetic(
                shown,
                exit_code=EXIT_NOT_FOUND,
                stderr=f"{argv_list[0]}: command not found",
            )
        except subprocess.TimeoutExpired:
            result = CommandResult.synthetic(
                shown,
                exit_code=EXIT_TIMEOUT,
                stderr=f"Command timed out after {self.timeout}s",
            )
        except OSError as e:
            result = CommandResult.synthetic(
                shown,
                exit_code=EXIT_NOT_FOUND,
                stderr=f"Command execution error: {e}",
            )

        result.duration_ms = int((time.monotonic() - start) * 1000)

        if result.stdout:
            logger.debug("STDOUT %s", result.stdout.strip())
        if result.stderr:
            logger.debug("STDERR %s", result.stderr.strip())
        if not result.ok and mutating:
            logger.warning("Command failed (%d): %s", result.exit_code, result.command_line)

        self._history.append(result)
        return result
