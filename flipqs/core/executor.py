"""Privileged shell command execution with a hard timeout."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from collections.abc import Callable, Sequence

from flipqs.core.config import DEFAULT_SHELL
from flipqs.core.model import CommandRequest, CommandResult

ROOT_PROBE_COMMAND = "echo Initial Root Check OK"
_EXIT_DIRECTIVE = "exit\n"
_REAP_TIMEOUT_S = 1.0
LOGGER = logging.getLogger(__name__)


class CommandExecutor:
    """Runs one command per privileged shell and reports a structured result.

    Failures never raise: a shell that cannot be spawned, a broken pipe, a
    non-zero exit, any stderr output, and a timeout all come back as a failed
    `CommandResult`. Retry policy belongs to the caller.
    """

    def __init__(
        self,
        shell: Sequence[str] = DEFAULT_SHELL,
        *,
        popen: Callable[..., subprocess.Popen[str]] = subprocess.Popen,
    ) -> None:
        self.shell = tuple(shell)
        self._popen = popen

    def execute(self, request: CommandRequest) -> CommandResult:
        LOGGER.debug("Executing command: %s", request.command)
        try:
            process = self._popen(
                list(self.shell),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=True,
            )
        except OSError as exc:
            LOGGER.error("Could not launch %s for '%s': %s", " ".join(self.shell), request.command, exc)
            return CommandResult(command=request.command, exit_code=-1, stderr=(str(exc),))

        try:
            return self._communicate(process, request)
        finally:
            _release(process)

    def execute_for_output(self, request: CommandRequest) -> str | None:
        result = self.execute(request)
        if not result.succeeded:
            return None
        return result.output

    def probe(self) -> CommandResult:
        """Run a harmless command so the root manager prompts early."""
        result = self.execute(CommandRequest(ROOT_PROBE_COMMAND))
        LOGGER.info("Root probe finished. Success: %s", result.succeeded)
        return result

    def _communicate(self, process: subprocess.Popen[str], request: CommandRequest) -> CommandResult:
        script = f"{request.command}\n{_EXIT_DIRECTIVE}"
        try:
            stdout, stderr = process.communicate(script, timeout=request.timeout_s)
        except subprocess.TimeoutExpired:
            LOGGER.error("Command '%s' timed out after %.1fs", request.command, request.timeout_s)
            _kill(process)
            return CommandResult(command=request.command, exit_code=-1, timed_out=True)
        except OSError as exc:
            LOGGER.error("I/O failure while running '%s': %s", request.command, exc)
            _kill(process)
            return CommandResult(command=request.command, exit_code=-1, stderr=(str(exc),))
        except ValueError as exc:
            LOGGER.error("Unreadable output from '%s': %s", request.command, exc)
            _kill(process)
            return CommandResult(command=request.command, exit_code=-1, stderr=(str(exc),))

        result = CommandResult(
            command=request.command,
            exit_code=process.returncode,
            stdout=tuple(stdout.splitlines()),
            stderr=tuple(stderr.splitlines()),
        )
        for line in result.stderr:
            LOGGER.error("STDERR: %s", line)
        if result.succeeded:
            LOGGER.debug("Command '%s' exit code: %s", request.command, result.exit_code)
        else:
            LOGGER.error(
                "Command '%s' failed. Exit code: %s, stderr lines: %d",
                request.command,
                result.exit_code,
                len(result.stderr),
            )
        return result


def _kill(process: subprocess.Popen[str]) -> None:
    # The shell may have forked the command; take down the whole session.
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except OSError:
        pass
    try:
        process.kill()
    except OSError:
        pass


def _release(process: subprocess.Popen[str]) -> None:
    for stream in (process.stdin, process.stdout, process.stderr):
        if stream is None:
            continue
        try:
            stream.close()
        except OSError:
            pass
    if process.poll() is None:
        _kill(process)
    try:
        process.wait(timeout=_REAP_TIMEOUT_S)
    except subprocess.TimeoutExpired:
        LOGGER.warning("Process %s did not exit after kill", process.pid)
