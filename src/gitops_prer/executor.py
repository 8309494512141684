"""Run image push commands with bounded concurrency."""

from __future__ import annotations

import asyncio
import logging
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from .bazel.utils import is_executable_file, target_to_executable
from .process import CommandRunner, run_command

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass(frozen=True, slots=True)
class PushTask:
    """A single push command and the target or binary it was derived from."""

    identifier: str
    command: tuple[str, ...]

    @classmethod
    def from_command_line(cls, command_line: str) -> "PushTask":
        return cls(identifier=command_line, command=tuple(shlex.split(command_line)))


def resolve_push_task(target: str, bazel_cmd: str, workspace: Path | None = None) -> PushTask:
    """Return how to run the push for ``target``.

    The built executable is run directly when it exists; otherwise the target
    goes through ``bazel run``.
    """

    binary = target_to_executable(target)
    path = Path(binary)
    if workspace is not None and not path.is_absolute():
        path = workspace / path
    if is_executable_file(path):
        return PushTask(identifier=target, command=(binary,))
    logger.info("target %s is not a file, running as a command", target)
    return PushTask(identifier=target, command=(bazel_cmd, "run", target))


class PushExecutor:
    """Execute push tasks, at most ``parallelism`` at a time.

    The first failing task stops tasks that have not started yet. Tasks that
    are already running are allowed to finish, then the first error is raised.
    """

    def __init__(
        self,
        parallelism: int = 1,
        *,
        runner: CommandRunner = run_command,
        cwd: Path | None = None,
    ) -> None:
        if parallelism < 1:
            raise ValueError("parallelism must be >= 1")
        self._parallelism = parallelism
        self._runner = runner
        self._cwd = cwd

    @property
    def parallelism(self) -> int:
        return self._parallelism

    async def _execute(self, task: PushTask) -> None:
        logger.info("Pushing %s", task.identifier, extra={"command": list(task.command)})
        await self._runner(*task.command, cwd=self._cwd)

    async def run_tasks(self, tasks: Iterable[PushTask]) -> None:
        """Run a pre-resolved list of tasks, each in its own coroutine."""

        semaphore = asyncio.Semaphore(self._parallelism)
        failed = asyncio.Event()

        async def _worker(task: PushTask) -> None:
            async with semaphore:
                if failed.is_set():
                    return
                try:
                    await self._execute(task)
                except Exception:
                    failed.set()
                    raise

        results = await asyncio.gather(*(_worker(task) for task in tasks), return_exceptions=True)
        _raise_first(results)

    async def run_queue(self, targets: Iterable[str], resolve: Callable[[str], PushTask]) -> None:
        """Feed ``targets`` through a fixed pool of workers.

        Each worker resolves its target with ``resolve`` right before running it.
        """

        queue: asyncio.Queue[object] = asyncio.Queue()
        failed = asyncio.Event()

        async def _worker() -> None:
            while True:
                item = await queue.get()
                if item is _STOP or failed.is_set():
                    return
                try:
                    await self._execute(resolve(item))
                except Exception:
                    failed.set()
                    raise

        for target in targets:
            queue.put_nowait(target)
        for _ in range(self._parallelism):
            queue.put_nowait(_STOP)

        results = await asyncio.gather(
            *(_worker() for _ in range(self._parallelism)), return_exceptions=True
        )
        _raise_first(results)


def _raise_first(results: list[object]) -> None:
    for result in results:
        if isinstance(result, BaseException):
            raise result


__all__ = ["PushExecutor", "PushTask", "resolve_push_task"]
