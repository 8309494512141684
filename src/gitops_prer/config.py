"""Configuration management for gitops-prer."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_DEPENDENCY_KINDS: tuple[str, ...] = ("k8s_container_push", "push_oci")

# Repeatable options; the environment form is comma-separated.
StringList = Annotated[tuple[str, ...], NoDecode]


class ConfigFileError(RuntimeError):
    """Raised when a settings file cannot be read or is not a mapping."""


class PrerSettings(BaseSettings):
    """Runtime configuration for one promotion run.

    Values come from ``GITOPS_*`` environment variables, an optional ``.env``
    file, an optional YAML file and explicit overrides, in increasing order of
    precedence. The object is frozen and handed to every component.
    """

    model_config = SettingsConfigDict(
        env_prefix="GITOPS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    release_branch: str = Field(default="master", description="Filter gitops targets by release branch.")
    bazel_cmd: str = Field(default="tools/bazel", description="Bazel binary to use.")
    workspace: Path | None = Field(default=None, description="Path to the workspace root.")
    git_repo: str = Field(default="", description="Git repo location.")
    git_mirror: str = Field(default="", description="Git mirror location used as clone reference.")
    gitops_path: str = Field(default="cloud", description="Location to store files in the repo.")
    gitops_tmpdir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        description="Directory under which the temporary checkout is created.",
    )
    gitopsdir: Path | None = Field(
        default=None,
        description="Use this directory for the checkout instead of a temporary one.",
    )
    target: str = Field(default="//... except //experimental/...", description="Target expression to scan.")
    push_parallelism: int = Field(default=1, description="Number of pushes to run concurrently.")
    gitops_pr_into: str = Field(default="master", description="Base branch and PR target branch.")
    gitops_pr_title: str = Field(default="", description="Title for deployment PRs.")
    gitops_pr_body: str = Field(default="", description="Body for deployment PRs.")
    branch_name: str = Field(default="unknown", description="Branch name used in commit messages.")
    git_commit: str = Field(default="unknown", description="Commit id used in commit messages.")
    deploy_branch_prefix: str = Field(default="deploy/", description="Prefix for deployment branch names.")
    deployment_branch_suffix: str = Field(default="", description="Suffix for deployment branch names.")
    git_server: str = Field(default="bitbucket", description="'bitbucket', 'github' or 'gitlab'.")
    gitops_dependencies_kind: StringList = ()
    gitops_dependencies_name: StringList = ()
    gitops_dependencies_attr: StringList = ()
    resolved_push: StringList = ()
    resolved_binary: StringList = ()
    dry_run: bool = False
    log_level: str = "INFO"

    github_repo_owner: str = ""
    github_repo: str = ""
    github_access_token: SecretStr | None = None
    github_enterprise_host: str = ""
    gitlab_host: str = "https://gitlab.com"
    gitlab_repo: str = ""
    gitlab_access_token: SecretStr | None = None
    bitbucket_api_pr_endpoint: str = ""
    bitbucket_user: str = ""
    bitbucket_password: SecretStr | None = None

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "GITOPS_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("push_parallelism")
    @classmethod
    def _validate_push_parallelism(cls, value: int) -> int:
        if value < 1:
            raise ValueError("push_parallelism must be >= 1")
        return value

    @field_validator("git_server")
    @classmethod
    def _normalize_git_server(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator(
        "gitops_dependencies_kind",
        "gitops_dependencies_name",
        "gitops_dependencies_attr",
        "resolved_push",
        "resolved_binary",
        mode="before",
    )
    @classmethod
    def _ensure_tuple(cls, value: Any):
        if value is None or value == "":
            return ()
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value)
        raise TypeError("Repeatable options must be a list of strings or a comma-separated string")

    @field_validator("resolved_binary")
    @classmethod
    def _validate_resolved_binary(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for item in value:
            train, sep, command = item.partition(":")
            if not sep or not train or not command:
                raise ValueError(
                    f"invalid resolved_binary format: {item!r}, expected releasetrain:cmd/binary/to/run"
                )
        return value

    @field_validator("workspace", "gitops_tmpdir", "gitopsdir")
    @classmethod
    def _expand_path(cls, value: Path | None) -> Path | None:
        if value is None:
            return None
        return value.expanduser()

    @property
    def dependency_filters_given(self) -> bool:
        return bool(
            self.gitops_dependencies_kind
            or self.gitops_dependencies_name
            or self.gitops_dependencies_attr
        )

    def deployment_branch(self, train: str) -> str:
        """Return the deployment branch name for ``train``."""

        return f"{self.deploy_branch_prefix}{train}{self.deployment_branch_suffix}"


def read_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML settings file and return its top-level mapping."""

    try:
        document = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigFileError(f"Unable to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigFileError(f"Failed to parse YAML in {path}: {exc}") from exc

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigFileError(f"Config file {path} must contain a mapping at the top level")
    return {str(key).replace("-", "_"): value for key, value in document.items()}


def load_settings(config_file: Path | None = None, **overrides: Any) -> PrerSettings:
    """Build the settings for one run.

    Explicit ``overrides`` win over the YAML ``config_file``, which wins over the
    environment. Overrides whose value is ``None`` are ignored.
    """

    values: dict[str, Any] = {}
    if config_file is not None:
        values.update(read_config_file(config_file))
    values.update({key: value for key, value in overrides.items() if value is not None})
    return PrerSettings(**values)


__all__ = [
    "ConfigFileError",
    "DEFAULT_DEPENDENCY_KINDS",
    "PrerSettings",
    "load_settings",
    "read_config_file",
]
