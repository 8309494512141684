"""Helpers for mapping Bazel labels onto files in the workspace."""

from __future__ import annotations

import os
from pathlib import Path


def target_to_executable(target: str) -> str:
    """Return the ``bazel-bin`` path of the executable built for ``target``.

    ``//pkg/path:name`` maps to ``./bazel-bin/pkg/path/name`` and
    ``@repo//pkg:name`` to ``./bazel-bin/external/repo/pkg/name``. Anything that
    is not a label (an already resolved binary path) is returned unchanged.
    """

    if target.startswith("//"):
        rest = target[2:]
    elif target.startswith("@") and "//" in target:
        repo, _, rest = target[1:].partition("//")
        repo = repo.lstrip("@")
        if repo:
            rest = f"external/{repo}/{rest}"
    else:
        return target
    return "./bazel-bin/" + rest.replace(":", "/", 1)


def is_executable_file(path: Path) -> bool:
    """Return True when ``path`` is a regular file the current user may execute."""

    return path.is_file() and os.access(path, os.X_OK)


__all__ = ["is_executable_file", "target_to_executable"]
