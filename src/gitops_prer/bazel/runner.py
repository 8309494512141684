"""Async client for ``bazel cquery``."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterable, TextIO

from ..process import sanitize_environment
from ..trains.models import TargetRecord

logger = logging.getLogger(__name__)


class BazelQueryError(RuntimeError):
    """Raised when a cquery cannot be executed or its output cannot be decoded."""


def _attribute_value(attribute: dict[str, Any]) -> str | None:
    if "stringValue" in attribute:
        return str(attribute["stringValue"])
    if "stringListValue" in attribute:
        return ",".join(str(item) for item in attribute["stringListValue"])
    if "intValue" in attribute:
        return str(attribute["intValue"])
    if "booleanValue" in attribute:
        return "true" if attribute["booleanValue"] else "false"
    return None


def decode_cquery_result(payload: bytes | str) -> list[TargetRecord]:
    """Decode ``--output=jsonproto`` cquery output into target records.

    Results that are not rules (source files, generated files) are skipped.
    """

    text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    if not text.strip():
        return []
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise BazelQueryError(f"Malformed cquery output: {exc}") from exc
    if not isinstance(document, dict):
        raise BazelQueryError("Malformed cquery output: expected a JSON object")

    records: list[TargetRecord] = []
    for result in document.get("results") or []:
        try:
            rule = (result.get("target") or {}).get("rule")
            if rule is None:
                continue
            attributes: dict[str, str] = {}
            for attribute in rule.get("attribute") or []:
                value = _attribute_value(attribute)
                if value is not None:
                    attributes[attribute["name"]] = value
            records.append(TargetRecord(name=rule["name"], attributes=attributes))
        except (AttributeError, KeyError, TypeError) as exc:
            raise BazelQueryError(f"Malformed cquery result entry: {result!r}") from exc
    return records


async def _drain(stream: asyncio.StreamReader, sink: TextIO) -> None:
    while True:
        chunk = await stream.read(4096)
        if not chunk:
            break
        sink.write(chunk.decode("utf-8", errors="replace"))
        sink.flush()


class BazelRunner:
    """Execute Bazel queries in a workspace."""

    def __init__(
        self,
        bazel_cmd: str = "tools/bazel",
        *,
        cwd: Path | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self._bazel_cmd = bazel_cmd
        self._cwd = cwd
        self._stderr = stderr

    @property
    def bazel_cmd(self) -> str:
        return self._bazel_cmd

    async def cquery(self, query: str) -> list[TargetRecord]:
        """Run ``query`` and return the matching rule targets."""

        logger.info("Executing bazel cquery %s", query)
        output = await self._invoke("cquery", query, "--output=jsonproto")
        return decode_cquery_result(output)

    async def _invoke(self, *args: str) -> bytes:
        cmd = [self._bazel_cmd, *args]
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(self._cwd) if self._cwd else None,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=sanitize_environment(),
            )
        except OSError as exc:
            raise BazelQueryError(f"Unable to execute {self._bazel_cmd}: {exc}") from exc

        # Bazel progress output goes straight to our stderr while stdout is collected.
        drain = asyncio.create_task(_drain(process.stderr, self._stderr or sys.stderr))
        stdout = await process.stdout.read()
        returncode = await process.wait()
        await drain
        if returncode != 0:
            raise BazelQueryError(f"{' '.join(cmd)!r} exited with status {returncode}")
        return stdout


class FakeBazelRunner(BazelRunner):
    """Test double that returns canned query results."""

    def __init__(self, responses: Iterable[list[TargetRecord]] | None = None) -> None:  # type: ignore[override]
        super().__init__("/tmp/fake-bazel")
        self._responses = list(responses or [])
        self._queries: list[str] = []

    async def cquery(self, query: str) -> list[TargetRecord]:  # type: ignore[override]
        self._queries.append(query)
        if self._responses:
            return self._responses.pop(0)
        return []

    @property
    def queries(self) -> list[str]:
        return self._queries


__all__ = [
    "BazelQueryError",
    "BazelRunner",
    "FakeBazelRunner",
    "TargetRecord",
    "decode_cquery_result",
]
