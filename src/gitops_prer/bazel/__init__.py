"""Bazel build-graph client and query construction."""

from .query import build_dependency_query, quote_target_set
from .runner import BazelQueryError, BazelRunner, FakeBazelRunner, TargetRecord, decode_cquery_result
from .utils import is_executable_file, target_to_executable

__all__ = [
    "BazelQueryError",
    "BazelRunner",
    "FakeBazelRunner",
    "TargetRecord",
    "build_dependency_query",
    "decode_cquery_result",
    "is_executable_file",
    "quote_target_set",
    "target_to_executable",
]
