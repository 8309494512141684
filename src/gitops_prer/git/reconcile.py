"""Decide whether a release train's deployment branch is reused or recreated."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from .. import commitmsg

logger = logging.getLogger(__name__)


class BranchState(str, enum.Enum):
    NOT_EXISTS = "not_exists"
    EXISTS_REUSABLE = "exists_reusable"
    EXISTS_STALE = "exists_stale"


class BranchRepo(Protocol):
    """The part of :class:`~gitops_prer.git.repo.Repo` the reconciler needs."""

    async def switch_to_branch(self, branch: str, primary_branch: str) -> bool:
        ...

    async def get_last_commit_message(self) -> str:
        ...

    async def recreate_branch(self, branch: str, primary_branch: str) -> None:
        ...


@dataclass(slots=True)
class DeploymentBranch:
    branch_name: str
    base_branch: str
    previous_targets: set[str] = field(default_factory=set)
    current_targets: set[str] = field(default_factory=set)
    state: BranchState = BranchState.NOT_EXISTS

    @property
    def removed_targets(self) -> set[str]:
        return self.previous_targets - self.current_targets


def decide_branch_state(previous: Iterable[str], current: Iterable[str], *, created: bool = False) -> BranchState:
    """Return the state of a deployment branch.

    A freshly created branch is ``NOT_EXISTS``. An existing branch is stale as
    soon as one previously deployed target is gone; added targets never make it
    stale.
    """

    if created:
        return BranchState.NOT_EXISTS
    if set(previous) - set(current):
        return BranchState.EXISTS_STALE
    return BranchState.EXISTS_REUSABLE


async def reconcile_branch(
    repo: BranchRepo,
    branch: str,
    base_branch: str,
    targets: Iterable[str],
) -> DeploymentBranch:
    """Switch ``repo`` to ``branch``, recreating it from ``base_branch`` if stale."""

    deployment = DeploymentBranch(branch_name=branch, base_branch=base_branch, current_targets=set(targets))
    created = await repo.switch_to_branch(branch, base_branch)
    if not created:
        message = await repo.get_last_commit_message()
        deployment.previous_targets = commitmsg.extract_targets(message)

    deployment.state = decide_branch_state(
        deployment.previous_targets, deployment.current_targets, created=created
    )
    if deployment.state is BranchState.EXISTS_STALE:
        logger.info(
            "Recreating branch %s: targets were removed",
            branch,
            extra={"branch": branch, "removed": sorted(deployment.removed_targets)},
        )
        await repo.recreate_branch(branch, base_branch)
    return deployment


__all__ = ["BranchRepo", "BranchState", "DeploymentBranch", "decide_branch_state", "reconcile_branch"]
