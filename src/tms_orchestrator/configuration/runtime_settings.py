"""Configuration domain entities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class FieldRequirements:  # pylint: disable=too-many-instance-attributes
    """Field names and enum values the host tracker must provide.

    The orchestration core never reads these; they are validated at startup so
    that a misconfigured host project fails before any run is created.
    """

    kind_field: str
    kind_values: Mapping[str, str]
    status_field: str
    status_values: Mapping[str, str]
    target_type_field: str
    target_type_values: Mapping[str, str]
    target_reference_field: str


@dataclass(frozen=True)
class ProjectSettings:
    """Host project the orchestrator operates in."""

    project_id: str
    field_requirements: FieldRequirements


@dataclass(frozen=True)
class GitLabSettings:
    """GitLab API connectivity used to trigger pipelines."""

    base_url: str
    api_token: str
    project_id: str
    timeout_seconds: int


@dataclass(frozen=True)
class GitHubSettings:
    """GitHub API connectivity used to dispatch workflows."""

    base_url: str
    owner: str
    repo: str
    api_token: str
    timeout_seconds: int


@dataclass(frozen=True)
class DispatchSettings:
    """Fan-out and fallback behaviour for RunTestCases."""

    parallelism: int
    default_target_id: str
    default_target_name: str


@dataclass(frozen=True)
class KafkaSettings:
    """Kafka consumer configuration for completion signals."""

    bootstrap_servers: tuple[str, ...]
    topic: str
    group_id: str | None
    security: Mapping[str, object]
    timeout_seconds: int
    poll_interval_ms: int
    auto_offset_reset: str


@dataclass(frozen=True)
class StorageSettings:
    """Location of the YAML entity store."""

    root_dir: Path


@dataclass(frozen=True)
class Settings:  # pylint: disable=too-many-instance-attributes
    """Top-level configuration aggregate."""

    path: Path
    project: ProjectSettings
    dispatch: DispatchSettings
    storage: StorageSettings
    gitlab: GitLabSettings | None = None
    github: GitHubSettings | None = None
    kafka: KafkaSettings | None = None
