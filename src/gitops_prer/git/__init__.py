"""Git checkout handling and deployment branch reconciliation."""

from .reconcile import BranchRepo, BranchState, DeploymentBranch, decide_branch_state, reconcile_branch
from .repo import GitError, Repo

__all__ = [
    "BranchRepo",
    "BranchState",
    "DeploymentBranch",
    "GitError",
    "Repo",
    "decide_branch_state",
    "reconcile_branch",
]
