from __future__ import annotations

import asyncio
import shutil
import subprocess
from pathlib import Path

import pytest

from gitops_prer import commitmsg
from gitops_prer.bazel import FakeBazelRunner, TargetRecord
from gitops_prer.config import PrerSettings
from gitops_prer.git import BranchState, GitError, Repo, reconcile_branch
from gitops_prer.prer import create_gitops_prs

from fakes import FakeGitServer

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


@pytest.fixture(autouse=True)
def _git_identity(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GIT_AUTHOR_NAME", "CI")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "ci@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "CI")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "ci@example.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")


def _git(cwd: Path, *args: str) -> str:
    process = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True, check=True)
    return process.stdout


@pytest.fixture()
def origin(tmp_path: Path) -> Path:
    """A bare repository with master and two deployment branches."""

    seed = tmp_path / "seed"
    seed.mkdir()
    _git(seed, "init", "-q")
    _git(seed, "symbolic-ref", "HEAD", "refs/heads/master")
    (seed / "cloud").mkdir()
    (seed / "cloud" / "README").write_text("manifests\n", encoding="utf-8")
    (seed / "src.txt").write_text("outside gitops path\n", encoding="utf-8")
    _git(seed, "add", ".")
    _git(seed, "commit", "-q", "-m", "Initial commit")
    _git(seed, "checkout", "-q", "-b", "deploy/alpha")
    (seed / "cloud" / "old.yaml").write_text("kind: Old\n", encoding="utf-8")
    _git(seed, "add", ".")
    _git(seed, "commit", "-q", "-m", "deploy alpha\n" + commitmsg.generate(["//a:gitops", "//old:gitops"]))
    _git(seed, "checkout", "-q", "master")
    _git(seed, "checkout", "-q", "-b", "deploy/gamma")
    (seed / "cloud" / "gamma.yaml").write_text("kind: Gamma\n", encoding="utf-8")
    _git(seed, "add", ".")
    _git(seed, "commit", "-q", "-m", "deploy gamma\n" + commitmsg.generate(["//g:gitops"]))

    bare = tmp_path / "origin.git"
    _git(tmp_path, "clone", "-q", "--bare", str(seed), str(bare))
    return bare


def _clone(origin: Path, workdir: Path) -> Repo:
    return asyncio.run(Repo.clone_or_checkout(str(origin), workdir, "", "master", "cloud", "deploy/"))


def test_clone_is_sparse(origin: Path, tmp_path: Path) -> None:
    workdir = tmp_path / "work"

    repo = _clone(origin, workdir)

    assert (workdir / "cloud" / "README").exists()
    assert not (workdir / "src.txt").exists()
    assert repo.directory == workdir


def test_switch_reconcile_commit_and_push(origin: Path, tmp_path: Path) -> None:
    repo = _clone(origin, tmp_path / "work")

    async def _scenario() -> None:
        alpha = await reconcile_branch(repo, "deploy/alpha", "master", ["//a:gitops"])
        assert alpha.state is BranchState.EXISTS_STALE
        assert not (repo.directory / "cloud" / "old.yaml").exists()

        (repo.directory / "cloud" / "alpha.yaml").write_text("kind: Alpha\n", encoding="utf-8")
        assert await repo.commit("alpha\n" + commitmsg.generate(["//a:gitops"]), "cloud")
        assert not await repo.commit("alpha again", "cloud")

        beta = await reconcile_branch(repo, "deploy/beta", "master", ["//b:gitops"])
        assert beta.state is BranchState.NOT_EXISTS
        assert not await repo.commit("beta", "cloud")

        await repo.push(["deploy/alpha"])

    asyncio.run(_scenario())

    message = _git(origin, "log", "-1", "--pretty=%B", "deploy/alpha")
    assert commitmsg.extract_targets(message) == {"//a:gitops"}
    assert "old.yaml" not in _git(origin, "ls-tree", "-r", "--name-only", "deploy/alpha")


def test_reused_branch_keeps_history(origin: Path, tmp_path: Path) -> None:
    repo = _clone(origin, tmp_path / "work")

    alpha = asyncio.run(reconcile_branch(repo, "deploy/alpha", "master", ["//a:gitops", "//old:gitops", "//new:gitops"]))

    assert alpha.state is BranchState.EXISTS_REUSABLE
    assert (repo.directory / "cloud" / "old.yaml").exists()


def test_existing_checkout_is_refreshed(origin: Path, tmp_path: Path) -> None:
    workdir = tmp_path / "work"
    _clone(origin, workdir)

    repo = _clone(origin, workdir)

    message = asyncio.run(repo.get_last_commit_message("origin/deploy/alpha"))
    assert commitmsg.extract_targets(message) == {"//a:gitops", "//old:gitops"}


def test_clone_failure_raises_git_error(tmp_path: Path) -> None:
    with pytest.raises(GitError):
        _clone(tmp_path / "does-not-exist.git", tmp_path / "work")


def _advance(origin: Path, scratch: Path, branch: str, targets: list[str]) -> None:
    """Push a new commit to ``branch`` from a separate clone of ``origin``."""

    _git(scratch.parent, "clone", "-q", str(origin), str(scratch))
    _git(scratch, "checkout", "-q", "-B", branch, f"origin/{branch}")
    (scratch / "cloud" / "moved.yaml").write_text("kind: Moved\n", encoding="utf-8")
    _git(scratch, "add", ".")
    _git(scratch, "commit", "-q", "-m", "moved\n" + commitmsg.generate(targets))
    _git(scratch, "push", "-q", "origin", branch)


def test_reused_checkout_follows_remote_branches(origin: Path, tmp_path: Path) -> None:
    workdir = tmp_path / "work"
    repo = _clone(origin, workdir)

    async def _first_run() -> None:
        await reconcile_branch(repo, "deploy/alpha", "master", ["//a:gitops", "//old:gitops"])
        await reconcile_branch(repo, "deploy/gamma", "master", ["//g:gitops"])

    asyncio.run(_first_run())

    _advance(origin, tmp_path / "other", "deploy/alpha", ["//a:gitops", "//new:gitops"])
    _git(origin, "update-ref", "-d", "refs/heads/deploy/gamma")

    repo = _clone(origin, workdir)
    alpha = asyncio.run(reconcile_branch(repo, "deploy/alpha", "master", ["//a:gitops", "//new:gitops"]))

    assert alpha.state is BranchState.EXISTS_REUSABLE
    assert alpha.previous_targets == {"//a:gitops", "//new:gitops"}
    assert (workdir / "cloud" / "moved.yaml").exists()

    gamma = asyncio.run(reconcile_branch(repo, "deploy/gamma", "master", ["//g:gitops"]))

    assert gamma.state is BranchState.NOT_EXISTS
    assert not (workdir / "cloud" / "gamma.yaml").exists()


def _render_binary(workspace: Path, package: str, name: str) -> None:
    script = workspace / "bazel-bin" / package / "gitops"
    script.parent.mkdir(parents=True, exist_ok=True)
    script.write_text(
        "#!/bin/sh\n"
        'mkdir -p "$3/cloud"\n'
        f'echo "rendered: {name}" > "$3/cloud/{name}.yaml"\n',
        encoding="utf-8",
    )
    script.chmod(0o755)


def test_full_run_against_git_origin(origin: Path, tmp_path: Path) -> None:
    workspace = tmp_path / "ws"
    for package, name in (("a", "alpha"), ("b", "beta"), ("g", "gamma")):
        _render_binary(workspace, package, name)
    bazel = FakeBazelRunner(
        [
            [
                TargetRecord(name="//a:gitops", attributes={"deployment_branch": "alpha"}),
                TargetRecord(name="//b:gitops", attributes={"deployment_branch": "beta"}),
                TargetRecord(name="//g:gitops", attributes={"deployment_branch": "gamma"}),
            ],
            [],
        ]
    )
    settings = PrerSettings(
        workspace=workspace,
        gitops_tmpdir=tmp_path / "tmp",
        git_repo=str(origin),
        branch_name="feature/x",
        git_commit="abc123",
    )
    server = FakeGitServer()

    result = asyncio.run(create_gitops_prs(settings, git_server=server, bazel=bazel))

    assert {d.branch_name: d.state for d in result.deployments} == {
        "deploy/alpha": BranchState.EXISTS_STALE,
        "deploy/beta": BranchState.NOT_EXISTS,
        "deploy/gamma": BranchState.EXISTS_REUSABLE,
    }
    assert result.updated_branches == ["deploy/alpha", "deploy/beta", "deploy/gamma"]
    assert [pr[0] for pr in server.prs] == result.updated_branches
    assert list((tmp_path / "tmp").iterdir()) == []

    alpha_files = _git(origin, "ls-tree", "-r", "--name-only", "deploy/alpha").split()
    assert "cloud/alpha.yaml" in alpha_files
    assert "cloud/old.yaml" not in alpha_files
    assert commitmsg.extract_targets(_git(origin, "log", "-1", "--pretty=%B", "deploy/alpha")) == {"//a:gitops"}

    gamma_history = _git(origin, "log", "--format=%s", "deploy/gamma").splitlines()
    assert gamma_history[0].startswith("GitOps for release branch master from feature/x")
    assert "deploy gamma" in gamma_history
    assert "cloud/beta.yaml" in _git(origin, "ls-tree", "-r", "--name-only", "deploy/beta").split()
