"""Async subprocess helpers shared by the build, git and push stages."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Mapping, Protocol

logger = logging.getLogger(__name__)

_SANITIZED_VARS = {
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
    "PIP_RESPECT_VIRTUALENV",
}

_OUTPUT_TAIL = 2000


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a sanitized environment suitable for subprocess execution."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    if additional:
        env.update(additional)
    return env


@dataclass(slots=True)
class CommandResult:
    """Holds the outcome of a subprocess invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandError(RuntimeError):
    """Raised when a required subprocess exits with a non-zero status."""

    def __init__(self, args: tuple[str, ...], returncode: int | None, output: str = "", reason: str = "") -> None:
        self.command = tuple(args)
        self.returncode = returncode
        self.output = output
        detail = reason or f"exit status {returncode}"
        message = f"command {' '.join(self.command)!r} failed: {detail}"
        tail = output.strip()[-_OUTPUT_TAIL:]
        if tail:
            message = f"{message}\n{tail}"
        super().__init__(message)


class CommandRunner(Protocol):
    """Callable signature of :func:`run_command`, used for test doubles."""

    def __call__(
        self,
        *args: str,
        cwd: Path | str | None = None,
        check: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> Awaitable[CommandResult]:
        ...


async def run_command(
    *args: str,
    cwd: Path | str | None = None,
    check: bool = True,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Run ``args`` to completion and capture its output.

    With ``check`` set (the default) a non-zero exit raises :class:`CommandError`
    carrying the command line and the tail of its output. A missing executable
    is reported the same way.
    """

    cmd = tuple(str(arg) for arg in args)
    logger.info("Executing command", extra={"command": list(cmd), "cwd": str(cwd) if cwd else None})
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd) if cwd else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=sanitize_environment(env),
        )
    except OSError as exc:
        raise CommandError(cmd, None, reason=str(exc)) from exc

    stdout_bytes, stderr_bytes = await process.communicate()
    stdout = stdout_bytes.decode("utf-8", errors="replace")
    stderr = stderr_bytes.decode("utf-8", errors="replace")
    result = CommandResult(args=cmd, returncode=process.returncode, stdout=stdout, stderr=stderr)
    if stdout or stderr:
        logger.debug("%s%s", stdout, stderr)
    if check and not result.ok:
        raise CommandError(cmd, result.returncode, output=stderr or stdout)
    return result


__all__ = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "run_command",
    "sanitize_environment",
]
