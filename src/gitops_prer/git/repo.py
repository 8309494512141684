"""Thin async wrapper around the git command line for the gitops checkout."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from ..process import CommandError, CommandResult, CommandRunner, run_command

logger = logging.getLogger(__name__)


class GitError(CommandError):
    """Raised when a required git command fails."""


class Repo:
    """A sparse checkout of the gitops repository."""

    def __init__(
        self,
        directory: Path,
        *,
        remote_name: str = "origin",
        runner: CommandRunner = run_command,
    ) -> None:
        self.directory = Path(directory)
        self.remote_name = remote_name
        self._runner = runner

    async def _git(self, *args: str, check: bool = True, cwd: Path | None = None) -> CommandResult:
        try:
            return await self._runner("git", *args, cwd=cwd or self.directory, check=check)
        except GitError:
            raise
        except CommandError as exc:
            raise GitError(exc.command, exc.returncode, output=exc.output) from exc

    @classmethod
    async def clone_or_checkout(
        cls,
        repo: str,
        directory: Path,
        mirror: str,
        primary_branch: str,
        gitops_path: str,
        branch_prefix: str,
        *,
        runner: CommandRunner = run_command,
    ) -> "Repo":
        """Return a checkout of ``primary_branch`` limited to ``gitops_path``.

        An existing checkout in ``directory`` is refreshed instead of cloned
        again. Remote deployment branches starting with ``branch_prefix`` are
        fetched so they can be switched to.
        """

        directory = Path(directory)
        workdir = cls(directory, runner=runner)
        if (directory / ".git").is_dir():
            logger.info("Reusing existing checkout", extra={"directory": str(directory)})
        else:
            directory.mkdir(parents=True, exist_ok=True)
            args = [
                "clone",
                "--no-checkout",
                "--single-branch",
                "--branch",
                primary_branch,
                "--filter=blob:none",
                "--no-tags",
                "--origin",
                workdir.remote_name,
            ]
            if mirror:
                args.extend(["--reference", mirror])
            args.extend([repo, str(directory)])
            await workdir._git(*args, cwd=directory.parent)
            await workdir._git("config", "--local", "core.sparsecheckout", "true")
            sparse = directory / ".git" / "info" / "sparse-checkout"
            sparse.parent.mkdir(parents=True, exist_ok=True)
            sparse.write_text(f"{gitops_path}/\n", encoding="utf-8")

        # --single-branch clones only track the primary branch.
        await workdir._track(f"+refs/heads/{branch_prefix}*:refs/remotes/{workdir.remote_name}/{branch_prefix}*")
        await workdir._git("fetch", "--prune", "--no-tags", workdir.remote_name)
        await workdir._git("checkout", "-f", "-B", primary_branch, f"{workdir.remote_name}/{primary_branch}")
        return workdir

    async def _track(self, refspec: str) -> None:
        key = f"remote.{self.remote_name}.fetch"
        result = await self._git("config", "--get-all", key, check=False)
        if refspec not in result.stdout.splitlines():
            await self._git("config", "--add", key, refspec)

    async def _has_ref(self, ref: str) -> bool:
        result = await self._git("rev-parse", "--verify", "--quiet", ref, check=False)
        return result.ok

    async def switch_to_branch(self, branch: str, primary_branch: str) -> bool:
        """Check out ``branch`` at its remote tip, or create it from ``primary_branch``.

        Local branches left over from an earlier run are reset, so history
        always comes from the remote. Returns True when the branch was created.
        """

        remote_ref = f"refs/remotes/{self.remote_name}/{branch}"
        if await self._has_ref(remote_ref):
            await self._git("checkout", "-f", "-B", branch, remote_ref)
            return False
        logger.info("Creating branch %s from %s", branch, primary_branch)
        await self._git("checkout", "-f", "-B", branch, primary_branch)
        return True

    async def recreate_branch(self, branch: str, primary_branch: str) -> None:
        """Reset ``branch`` to ``primary_branch``, dropping its history."""

        await self._git("checkout", primary_branch)
        await self._git("branch", "-f", branch, primary_branch)
        await self._git("checkout", branch)

    async def get_last_commit_message(self, ref: str | None = None) -> str:
        args = ["log", "-1", "--pretty=%B"]
        if ref:
            args.append(ref)
        result = await self._git(*args)
        return result.stdout

    async def is_clean(self) -> bool:
        result = await self._git("status", "--porcelain")
        return not result.stdout.strip()

    async def commit(self, message: str, gitops_path: str) -> bool:
        """Commit everything under ``gitops_path``; return False when nothing changed."""

        if (self.directory / gitops_path).exists():
            await self._git("add", "--all", "--", gitops_path)
        if await self.is_clean():
            return False
        await self._git("commit", "-a", "-m", message)
        return True

    async def push(self, branches: Sequence[str]) -> None:
        await self._git("push", self.remote_name, "-f", "--set-upstream", *branches)


__all__ = ["GitError", "Repo"]
