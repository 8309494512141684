"""Promote gitops targets into release-train deployment branches and open PRs."""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Protocol, Sequence

from . import commitmsg
from .bazel import BazelRunner, build_dependency_query, target_to_executable
from .config import PrerSettings
from .executor import PushExecutor, PushTask, resolve_push_task
from .git import BranchRepo, DeploymentBranch, Repo, reconcile_branch
from .hosting import GitServer
from .process import CommandRunner, run_command
from .trains import ReleaseTrain, classify_resolved_binaries, classify_targets, release_train_query

logger = logging.getLogger(__name__)


class GitopsRepo(BranchRepo, Protocol):
    async def commit(self, message: str, gitops_path: str) -> bool:
        ...

    async def push(self, branches: Sequence[str]) -> None:
        ...


RepoFactory = Callable[..., Awaitable[GitopsRepo]]


@dataclass(slots=True)
class RunResult:
    """Branches, trains and targets that received a new commit during a run."""

    updated_branches: list[str] = field(default_factory=list)
    updated_trains: set[str] = field(default_factory=set)
    updated_targets: list[str] = field(default_factory=list)
    deployments: list[DeploymentBranch] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.updated_branches)


async def discover_release_trains(settings: PrerSettings, bazel: BazelRunner) -> list[ReleaseTrain]:
    """Return the release trains to process, from explicit pairs or a cquery."""

    if settings.resolved_binary:
        return classify_resolved_binaries(settings.resolved_binary)
    records = await bazel.cquery(release_train_query(settings.release_branch, settings.target))
    return classify_targets(records)


def commit_message(settings: PrerSettings, targets: Sequence[str]) -> str:
    return (
        f"GitOps for release branch {settings.release_branch} from {settings.branch_name} "
        f"commit {settings.git_commit}\n{commitmsg.generate(targets)}"
    )


async def update_train(
    settings: PrerSettings,
    repo: GitopsRepo,
    train: ReleaseTrain,
    workdir: Path,
    *,
    runner: CommandRunner = run_command,
) -> tuple[DeploymentBranch, bool]:
    """Render ``train`` into its deployment branch and commit the result.

    Returns the reconciled branch and whether a commit was made.
    """

    branch = settings.deployment_branch(train.name)
    logger.info("train %s", train.name, extra={"branch": branch})
    deployment = await reconcile_branch(repo, branch, settings.gitops_pr_into, train.targets)
    for target in train.targets:
        logger.info("train %s target %s", train.name, target)
        await runner(
            target_to_executable(target),
            "--nopush",
            "--deployment_root",
            str(workdir),
            cwd=settings.workspace,
        )
    changed = await repo.commit(commit_message(settings, train.targets), settings.gitops_path)
    if changed:
        logger.info("branch %s has changes, push is required", branch)
    return deployment, changed


async def push_images(
    settings: PrerSettings,
    bazel: BazelRunner,
    targets: Sequence[str],
    *,
    runner: CommandRunner = run_command,
) -> None:
    """Run the push rules the updated gitops targets depend on."""

    executor = PushExecutor(settings.push_parallelism, runner=runner, cwd=settings.workspace)
    if settings.resolved_push:
        await executor.run_tasks(PushTask.from_command_line(command) for command in settings.resolved_push)
        return

    query = build_dependency_query(
        targets,
        kinds=settings.gitops_dependencies_kind,
        names=settings.gitops_dependencies_name,
        attrs=settings.gitops_dependencies_attr,
    )
    records = await bazel.cquery(query)
    await executor.run_queue(
        (record.name for record in records),
        lambda target: resolve_push_task(target, settings.bazel_cmd, settings.workspace),
    )


async def publish(
    settings: PrerSettings,
    repo: GitopsRepo,
    git_server: GitServer,
    branches: Sequence[str],
) -> None:
    """Push the updated branches and open one pull request per branch."""

    if settings.dry_run:
        logger.info("dry-run: updated gitops branches: %s", list(branches))
        logger.info("dry-run: skipping push")
        for branch in branches:
            logger.info("dry-run: skipping PR creation: branch %s into %s", branch, settings.gitops_pr_into)
        return

    await repo.push(branches)
    for branch in branches:
        title = settings.gitops_pr_title or f"GitOps deployment {branch}"
        body = settings.gitops_pr_body or branch
        await git_server.create_pr(branch, settings.gitops_pr_into, title, body)


async def create_gitops_prs(
    settings: PrerSettings,
    *,
    git_server: GitServer,
    bazel: BazelRunner | None = None,
    repo_factory: RepoFactory = Repo.clone_or_checkout,
    runner: CommandRunner = run_command,
) -> RunResult:
    """Run one full promotion and return what changed."""

    bazel = bazel or BazelRunner(settings.bazel_cmd, cwd=settings.workspace)
    result = RunResult()

    trains = await discover_release_trains(settings, bazel)
    if not trains:
        logger.info("No matching targets found")
        return result
    for train in trains:
        logger.info("release train %s: %s", train.name, ", ".join(train.targets))

    temporary = settings.gitopsdir is None
    if temporary:
        settings.gitops_tmpdir.mkdir(parents=True, exist_ok=True)
        workdir = Path(tempfile.mkdtemp(prefix="gitops", dir=settings.gitops_tmpdir))
    else:
        workdir = settings.gitopsdir
    try:
        repo = await repo_factory(
            settings.git_repo,
            workdir,
            settings.git_mirror,
            settings.gitops_pr_into,
            settings.gitops_path,
            settings.deploy_branch_prefix,
        )

        for train in trains:
            deployment, changed = await update_train(settings, repo, train, workdir, runner=runner)
            result.deployments.append(deployment)
            if changed:
                result.updated_branches.append(deployment.branch_name)
                result.updated_trains.add(train.name)
                result.updated_targets.extend(train.targets)

        if not result.changed:
            logger.info("No gitops changes to push")
            return result

        await push_images(settings, bazel, result.updated_targets, runner=runner)
        await publish(settings, repo, git_server, result.updated_branches)
    finally:
        if temporary:
            shutil.rmtree(workdir, ignore_errors=True)
    return result


__all__ = [
    "GitopsRepo",
    "RunResult",
    "commit_message",
    "create_gitops_prs",
    "discover_release_trains",
    "publish",
    "push_images",
    "update_train",
]
