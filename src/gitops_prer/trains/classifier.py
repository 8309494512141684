"""Group gitops targets into release trains."""

from __future__ import annotations

from typing import Iterable

from .models import ReleaseTrain, TargetRecord

GROUPING_ATTRIBUTE = "deployment_branch"


class ResolvedBinaryError(RuntimeError):
    """Raised when a ``releasetrain:command`` pair is malformed."""


def release_train_query(release_branch: str, target: str) -> str:
    """Return the cquery selecting gitops rules that deploy from ``release_branch``."""

    return (
        f'attr({GROUPING_ATTRIBUTE}, ".+", '
        f'attr(release_branch_prefix, "{release_branch}", kind(gitops, {target})))'
    )


def _add(trains: dict[str, ReleaseTrain], name: str, target: str) -> None:
    train = trains.get(name)
    if train is None:
        train = trains[name] = ReleaseTrain(name=name)
    train.targets.append(target)


def classify_resolved_binaries(pairs: Iterable[str]) -> list[ReleaseTrain]:
    """Group explicit ``releasetrain:cmd/binary/to/run`` pairs by train."""

    trains: dict[str, ReleaseTrain] = {}
    for pair in pairs:
        name, sep, binary = pair.partition(":")
        if not sep:
            raise ResolvedBinaryError(f"invalid resolved_binary format: {pair}")
        _add(trains, name, binary)
    return list(trains.values())


def classify_targets(
    records: Iterable[TargetRecord],
    *,
    attribute: str = GROUPING_ATTRIBUTE,
) -> list[ReleaseTrain]:
    """Group query results by the value of their grouping attribute.

    Trains are returned in order of first appearance. Records with an empty or
    missing grouping attribute are left out. Duplicate records are kept.
    """

    trains: dict[str, ReleaseTrain] = {}
    for record in records:
        name = record.attribute(attribute)
        if not name:
            continue
        _add(trains, name, record.name)
    return list(trains.values())


__all__ = [
    "GROUPING_ATTRIBUTE",
    "ResolvedBinaryError",
    "classify_resolved_binaries",
    "classify_targets",
    "release_train_query",
]
