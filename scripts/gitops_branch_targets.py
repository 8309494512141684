"""Show the targets each deployment branch recorded in its last commit."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Iterable

from gitops_prer.commitmsg import extract_targets
from gitops_prer.git import GitError, Repo


def load_repo(repo_dir: str) -> Repo:
    """Construct a Repo for an existing checkout."""

    return Repo(Path(repo_dir))


async def collect_targets(repo: Repo, branches: Iterable[str]) -> list[dict[str, object]]:
    payload: list[dict[str, object]] = []
    for branch in branches:
        message = await repo.get_last_commit_message(branch)
        payload.append({"branch": branch, "targets": sorted(extract_targets(message))})
    return payload


def _default_formatter(item: dict[str, object]) -> str:
    targets = item["targets"] or ["(none)"]
    return "\n".join([f"{item['branch']}:", *(f"  {target}" for target in targets)])


def show_targets(args: argparse.Namespace, *, formatter=_default_formatter) -> int:
    repo = load_repo(args.repo_dir)
    branches = args.branch or ["HEAD"]
    try:
        payload = asyncio.run(collect_targets(repo, branches))
    except GitError as exc:
        print(f"git failed: {exc}", file=sys.stderr)
        return 1

    if args.format == "json":
        output_text = json.dumps(payload, indent=2)
    else:
        output_text = "\n".join(formatter(item) for item in payload)

    if args.output:
        Path(args.output).write_text(output_text, encoding="utf-8")
    else:
        print(output_text)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print the gitops targets recorded on deployment branches."
    )
    parser.add_argument("--repo-dir", default=".", help="Path to a checkout of the gitops repo")
    parser.add_argument(
        "--branch",
        action="append",
        help="Branch or ref to inspect, repeatable (default: HEAD)",
    )
    parser.add_argument(
        "--format",
        choices={"json", "text"},
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument("--output", help="Optional path to write the result to")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    exit_code = show_targets(args)
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
