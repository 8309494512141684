"""Data models for build targets and release trains."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping


@dataclass(frozen=True, slots=True)
class TargetRecord:
    """A rule target returned by a build-graph query."""

    name: str
    attributes: Mapping[str, str] = field(default_factory=dict)

    def attribute(self, name: str) -> str:
        return self.attributes.get(name, "")


@dataclass(slots=True)
class ReleaseTrain:
    """A named group of gitops targets promoted through one deployment branch."""

    name: str
    targets: list[str] = field(default_factory=list)


__all__ = ["ReleaseTrain", "TargetRecord"]
