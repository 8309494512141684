"""Record the deployed target set of a branch inside its commit messages.

The footer written by :func:`generate` is the only durable state the tool
keeps: the next run reads it back from the branch's last commit with
:func:`extract_targets` to find out what the branch deployed previously.
"""

from __future__ import annotations

from typing import Iterable

BEGIN_TAG = "--- gitops targets begin ---"
END_TAG = "--- gitops targets end ---"


def generate(targets: Iterable[str]) -> str:
    """Return a commit message footer listing ``targets`` one per line.

    Duplicates are dropped and the lines are sorted so the footer is stable for
    a given set.
    """

    lines = ["", BEGIN_TAG, *sorted(set(targets)), END_TAG, ""]
    return "\n".join(lines)


def extract_targets(message: str) -> set[str]:
    """Return the targets recorded in ``message``; empty when there is no footer."""

    targets: set[str] = set()
    between_tags = False
    for line in message.split("\n"):
        if line == BEGIN_TAG:
            between_tags = True
            continue
        if line == END_TAG:
            between_tags = False
            continue
        if between_tags:
            targets.add(line)
    return targets


__all__ = ["BEGIN_TAG", "END_TAG", "extract_targets", "generate"]
