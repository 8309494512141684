"""Build the dependency query that finds push targets for updated gitops targets."""

from __future__ import annotations

from typing import Iterable, Sequence

from ..config import DEFAULT_DEPENDENCY_KINDS
from .runner import BazelQueryError


def quote_target_set(targets: Iterable[str]) -> str:
    """Return a ``set(...)`` literal with every label quoted.

    Labels may contain ``+`` and other characters the query language treats
    specially, so each one is wrapped in single quotes, or double quotes when
    the label itself contains a single quote. A label with both quote
    characters cannot be expressed and raises :class:`BazelQueryError`.
    """

    quoted = []
    for target in targets:
        if "'" in target and '"' in target:
            raise BazelQueryError(f"cannot quote label containing both quote characters: {target}")
        quote = '"' if "'" in target else "'"
        quoted.append(f"{quote}{target}{quote}")
    return "set(" + " ".join(quoted) + ")"


def build_dependency_query(
    targets: Iterable[str],
    *,
    kinds: Sequence[str] = (),
    names: Sequence[str] = (),
    attrs: Sequence[str] = (),
) -> str:
    """Return the union of filtered ``deps()`` queries over ``targets``.

    ``attrs`` entries are ``attribute=value`` or just ``attribute``, in which case
    any value matches. With no filters at all the default push rule kinds
    are used.
    """

    if not (kinds or names or attrs):
        kinds = DEFAULT_DEPENDENCY_KINDS

    deps = f"deps({quote_target_set(targets)})"
    parts: list[str] = []
    for kind in kinds:
        parts.append(f"kind({kind}, {deps})")
    for name in names:
        parts.append(f"filter({name}, {deps})")
    for attr in attrs:
        name, sep, value = attr.partition("=")
        if not sep:
            value = ".*"
        parts.append(f"attr({name}, {value}, {deps})")
    return " union ".join(parts)


__all__ = ["build_dependency_query", "quote_target_set"]
