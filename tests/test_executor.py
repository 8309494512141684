from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from gitops_prer.executor import PushExecutor, PushTask, resolve_push_task
from gitops_prer.process import CommandError, CommandResult


class TrackingRunner:
    """Fake command runner that records peak concurrency."""

    def __init__(self, *, fail: set[str] | None = None, delay: float = 0.01) -> None:
        self.fail = fail or set()
        self.delay = delay
        self.active = 0
        self.peak = 0
        self.calls: list[tuple[str, ...]] = []

    async def __call__(self, *args: str, cwd=None, check: bool = True, env=None) -> CommandResult:
        self.active += 1
        self.peak = max(self.peak, self.active)
        self.calls.append(tuple(args))
        try:
            await asyncio.sleep(self.delay)
            if args[0] in self.fail:
                raise CommandError(tuple(args), 1, output="push failed")
            return CommandResult(args=tuple(args), returncode=0, stdout="", stderr="")
        finally:
            self.active -= 1


def _tasks(count: int) -> list[PushTask]:
    return [PushTask(identifier=f"push-{idx}", command=(f"push-{idx}",)) for idx in range(count)]


@pytest.mark.parametrize("parallelism", [1, 2, 5])
def test_run_tasks_respects_bound(parallelism: int) -> None:
    runner = TrackingRunner()
    executor = PushExecutor(parallelism, runner=runner)

    asyncio.run(executor.run_tasks(_tasks(12)))

    assert len(runner.calls) == 12
    assert runner.peak <= parallelism
    assert runner.peak == min(parallelism, 12)


@pytest.mark.parametrize("parallelism", [1, 3])
def test_run_queue_respects_bound(parallelism: int) -> None:
    runner = TrackingRunner()
    executor = PushExecutor(parallelism, runner=runner)
    targets = [f"//svc{idx}:push" for idx in range(7)]

    asyncio.run(
        executor.run_queue(targets, lambda target: PushTask(identifier=target, command=(target,)))
    )

    assert sorted(call[0] for call in runner.calls) == sorted(targets)
    assert runner.peak <= parallelism


def test_run_queue_with_no_targets() -> None:
    runner = TrackingRunner()

    asyncio.run(PushExecutor(4, runner=runner).run_queue([], lambda target: PushTask(target, (target,))))

    assert runner.calls == []


def test_sequential_failure_stops_remaining_tasks() -> None:
    runner = TrackingRunner(fail={"push-1"})
    executor = PushExecutor(1, runner=runner)

    with pytest.raises(CommandError, match="push-1"):
        asyncio.run(executor.run_tasks(_tasks(5)))

    assert [call[0] for call in runner.calls] == ["push-0", "push-1"]


def test_queue_failure_stops_workers() -> None:
    runner = TrackingRunner(fail={"//b:push"})
    executor = PushExecutor(1, runner=runner)

    with pytest.raises(CommandError):
        asyncio.run(
            executor.run_queue(
                ["//a:push", "//b:push", "//c:push"],
                lambda target: PushTask(identifier=target, command=(target,)),
            )
        )

    assert [call[0] for call in runner.calls] == ["//a:push", "//b:push"]


def test_running_siblings_complete_after_failure() -> None:
    runner = TrackingRunner(fail={"push-0"})
    executor = PushExecutor(3, runner=runner)

    with pytest.raises(CommandError):
        asyncio.run(executor.run_tasks(_tasks(3)))

    assert len(runner.calls) == 3
    assert runner.active == 0


def test_parallelism_must_be_positive() -> None:
    with pytest.raises(ValueError):
        PushExecutor(0)


def test_push_task_from_command_line() -> None:
    task = PushTask.from_command_line("bin/push.sh --tag 'v 1'")

    assert task.command == ("bin/push.sh", "--tag", "v 1")
    assert task.identifier == "bin/push.sh --tag 'v 1'"


def test_resolve_push_task_prefers_built_executable(tmp_path: Path) -> None:
    binary = tmp_path / "bazel-bin" / "apps" / "web" / "push"
    binary.parent.mkdir(parents=True)
    binary.write_text("#!/bin/sh\n", encoding="utf-8")
    binary.chmod(0o755)

    task = resolve_push_task("//apps/web:push", "tools/bazel", tmp_path)

    assert task.command == ("./bazel-bin/apps/web/push",)


def test_resolve_push_task_falls_back_to_bazel_run(tmp_path: Path) -> None:
    task = resolve_push_task("//apps/web:push", "tools/bazel", tmp_path)

    assert task == PushTask(identifier="//apps/web:push", command=("tools/bazel", "run", "//apps/web:push"))
