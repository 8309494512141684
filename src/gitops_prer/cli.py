"""Command line entry point for gitops-prer."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from pydantic import ValidationError

from . import __version__
from .bazel import BazelQueryError
from .config import ConfigFileError, PrerSettings, load_settings
from .hosting import PullRequestError, UnknownGitServerError, resolve_git_server
from .prer import create_gitops_prs
from .process import CommandError
from .trains import ResolvedBinaryError

logger = logging.getLogger("gitops_prer")

FATAL_ERRORS = (
    BazelQueryError,
    CommandError,
    ConfigFileError,
    OSError,
    PullRequestError,
    ResolvedBinaryError,
    UnknownGitServerError,
)


def configure_logging(level: str) -> None:
    """Configure root logging for a run."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitops-prer",
        description="Render gitops targets into release-train deployment branches and open PRs.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, help="YAML file with settings")
    parser.add_argument("--release-branch", help="filter gitops targets by release branch")
    parser.add_argument("--bazel-cmd", help="bazel binary to use")
    parser.add_argument("--workspace", type=Path, help="path to workspace root")
    parser.add_argument("--git-repo", help="git repo location")
    parser.add_argument("--git-mirror", help="git mirror location used as clone reference")
    parser.add_argument("--gitops-path", help="location to store files in repo")
    parser.add_argument("--gitops-tmpdir", type=Path, help="location to check out the git tree")
    parser.add_argument("--gitopsdir", type=Path, help="use this directory instead of a temporary one")
    parser.add_argument("--target", help="target to scan, useful for debugging only")
    parser.add_argument("--push-parallelism", type=int, help="number of image pushes to perform concurrently")
    parser.add_argument("--gitops-pr-into", help="base branch and target branch for deployment PRs")
    parser.add_argument("--gitops-pr-title", help="title for deployment PRs")
    parser.add_argument("--gitops-pr-body", help="body for deployment PRs")
    parser.add_argument("--branch-name", help="branch name to use in commit message")
    parser.add_argument("--git-commit", help="git commit to use in commit message")
    parser.add_argument("--deploy-branch-prefix", help="prefix added to all deployment branch names")
    parser.add_argument("--deployment-branch-suffix", help="suffix added to all deployment branch names")
    parser.add_argument("--git-server", help="the git server api to use: bitbucket, github or gitlab")
    parser.add_argument(
        "--gitops-dependencies-kind",
        action="append",
        help="dependency kind to push, repeatable (default: k8s_container_push, push_oci)",
    )
    parser.add_argument("--gitops-dependencies-name", action="append", help="dependency name to push, repeatable")
    parser.add_argument(
        "--gitops-dependencies-attr",
        action="append",
        help="dependency attribute to push, attribute=value format, repeatable",
    )
    parser.add_argument("--resolved-push", action="append", help="resolved push binary to run, repeatable")
    parser.add_argument(
        "--resolved-binary",
        action="append",
        help="resolved gitops binary as releasetrain:cmd/binary/to/run, repeatable",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="commit locally but do not push branches or create PRs",
    )
    parser.add_argument("--log-level", help="CRITICAL, ERROR, WARNING, INFO or DEBUG")
    parser.add_argument("--github-repo-owner")
    parser.add_argument("--github-repo")
    parser.add_argument("--github-enterprise-host")
    parser.add_argument("--gitlab-host")
    parser.add_argument("--gitlab-repo")
    parser.add_argument("--bitbucket-api-pr-endpoint")
    parser.add_argument("--bitbucket-user")
    return parser


def settings_from_args(args: argparse.Namespace) -> PrerSettings:
    overrides = {key: value for key, value in vars(args).items() if key != "config"}
    return load_settings(args.config, **overrides)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = settings_from_args(args)
    except (ValidationError, ConfigFileError) as exc:
        configure_logging("INFO")
        logger.error("invalid configuration: %s", exc)
        raise SystemExit(1)
    configure_logging(settings.log_level)

    try:
        git_server = resolve_git_server(settings)
        result = asyncio.run(create_gitops_prs(settings, git_server=git_server))
    except FATAL_ERRORS as exc:
        logger.error("%s", exc)
        raise SystemExit(1)

    if result.changed:
        logger.info("updated gitops branches: %s", ", ".join(result.updated_branches))


if __name__ == "__main__":
    main()
