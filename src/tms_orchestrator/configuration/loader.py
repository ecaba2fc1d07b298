"""Configuration loader service."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import yaml

from tms_orchestrator.execution_targets.target_snapshot import ExecutionTargetType
from tms_orchestrator.test_runs.run_entities import TestRunStatus

from .runtime_settings import (
    DispatchSettings,
    FieldRequirements,
    GitHubSettings,
    GitLabSettings,
    KafkaSettings,
    ProjectSettings,
    Settings,
    StorageSettings,
)

DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_STORAGE_DIR = ".tms"

_DEFAULT_KIND_VALUES = {"test_case": "Test Case", "test_run": "Test Run"}
_DEFAULT_STATUS_VALUES = {
    TestRunStatus.PENDING.value: "Pending",
    TestRunStatus.RUNNING.value: "Running",
    TestRunStatus.AWAITING_EXTERNAL_RESULTS.value: "Awaiting External Results",
    TestRunStatus.PASSED.value: "Passed",
    TestRunStatus.FAILED.value: "Failed",
}
_DEFAULT_TARGET_TYPE_VALUES = {
    ExecutionTargetType.MANUAL.value: "Manual",
    ExecutionTargetType.GITLAB.value: "GitLab",
    ExecutionTargetType.GITHUB.value: "GitHub",
}


class ConfigurationError(Exception):
    """Raised when the configuration file is invalid."""


def load_configuration(config_path: Path | str) -> Settings:
    """Load and validate the configuration file (YAML, or JSON which YAML accepts)."""
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    text = path.read_text(encoding="utf-8")
    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError as exc:  # pragma: no cover - exercised indirectly
        raise ConfigurationError(f"Failed to parse configuration file: {exc}") from exc

    if parsed is None:
        parsed = {}

    if not isinstance(parsed, Mapping):
        raise ConfigurationError("Configuration root must be a mapping.")

    return Settings(
        path=path,
        project=_parse_project_section(parsed.get("project")),
        dispatch=_parse_dispatch_section(parsed.get("dispatch")),
        storage=_parse_storage_section(parsed.get("storage"), path.parent),
        gitlab=_parse_gitlab_section(parsed.get("gitlab")),
        github=_parse_github_section(parsed.get("github")),
        kafka=_parse_kafka_section(parsed.get("kafka")),
    )


def _parse_project_section(value: Any) -> ProjectSettings:
    section = _require_mapping(value, "project")
    project_id = _require_non_empty_string(section.get("id"), "project.id")
    requirements = _parse_field_requirements(section.get("field_requirements"))
    return ProjectSettings(project_id=project_id, field_requirements=requirements)


def _parse_field_requirements(value: Any) -> FieldRequirements:
    if value is None:
        value = {}
    section = _require_mapping(value, "project.field_requirements")
    prefix = "project.field_requirements"
    kind_values = _parse_enum_values(
        section.get("kind_values", _DEFAULT_KIND_VALUES),
        f"{prefix}.kind_values",
        required_keys=tuple(_DEFAULT_KIND_VALUES),
    )
    status_values = _parse_enum_values(
        section.get("status_values", _DEFAULT_STATUS_VALUES),
        f"{prefix}.status_values",
        required_keys=tuple(status.value for status in TestRunStatus),
    )
    target_type_values = _parse_enum_values(
        section.get("target_type_values", _DEFAULT_TARGET_TYPE_VALUES),
        f"{prefix}.target_type_values",
        required_keys=tuple(target_type.value for target_type in ExecutionTargetType),
    )
    return FieldRequirements(
        kind_field=_require_non_empty_string(
            section.get("kind_field", "TMS Kind"), f"{prefix}.kind_field"
        ),
        kind_values=kind_values,
        status_field=_require_non_empty_string(
            section.get("status_field", "Test Run Status"), f"{prefix}.status_field"
        ),
        status_values=status_values,
        target_type_field=_require_non_empty_string(
            section.get("target_type_field", "Execution Target Type"),
            f"{prefix}.target_type_field",
        ),
        target_type_values=target_type_values,
        target_reference_field=_require_non_empty_string(
            section.get("target_reference_field", "Execution Target Reference"),
            f"{prefix}.target_reference_field",
        ),
    )


def _parse_enum_values(
    value: Any, field_name: str, *, required_keys: Sequence[str]
) -> dict[str, str]:
    section = _require_mapping(value, field_name)
    missing = [key for key in required_keys if key not in section]
    if missing:
        raise ConfigurationError(f"{field_name} is missing values for: {', '.join(missing)}.")
    unexpected = sorted(str(key) for key in section if key not in required_keys)
    if unexpected:
        raise ConfigurationError(f"{field_name} has unknown keys: {', '.join(unexpected)}.")
    values = {
        key: _require_non_empty_string(section[key], f"{field_name}.{key}") for key in required_keys
    }
    if len(set(values.values())) != len(values):
        raise ConfigurationError(f"{field_name} values must be distinct.")
    return values


def _parse_dispatch_section(value: Any) -> DispatchSettings:
    section = _require_mapping(value if value is not None else {}, "dispatch")
    return DispatchSettings(
        parallelism=_require_positive_int(section.get("parallelism", 4), "dispatch.parallelism"),
        default_target_id=_require_non_empty_string(
            section.get("default_target_id", "manual-default"), "dispatch.default_target_id"
        ),
        default_target_name=_require_non_empty_string(
            section.get("default_target_name", "Manual"), "dispatch.default_target_name"
        ),
    )


def _parse_storage_section(value: Any, base_path: Path) -> StorageSettings:
    section = _require_mapping(value if value is not None else {}, "storage")
    root_dir = _require_non_empty_string(
        section.get("root_dir", DEFAULT_STORAGE_DIR), "storage.root_dir"
    )
    return StorageSettings(root_dir=_resolve_path(base_path, root_dir))


def _parse_gitlab_section(value: Any) -> GitLabSettings | None:
    if value is None:
        return None
    section = _require_mapping(value, "gitlab")
    return GitLabSettings(
        base_url=_require_base_url(section.get("base_url"), "gitlab.base_url"),
        api_token=_resolve_token(section, "gitlab"),
        project_id=_require_non_empty_string(
            _stringify_id(section.get("project_id")), "gitlab.project_id"
        ),
        timeout_seconds=_require_positive_int(
            section.get("timeout_seconds", 30), "gitlab.timeout_seconds"
        ),
    )


def _parse_github_section(value: Any) -> GitHubSettings | None:
    if value is None:
        return None
    section = _require_mapping(value, "github")
    return GitHubSettings(
        base_url=_require_base_url(
            section.get("base_url", DEFAULT_GITHUB_API_URL), "github.base_url"
        ),
        owner=_require_non_empty_string(section.get("owner"), "github.owner"),
        repo=_require_non_empty_string(section.get("repo"), "github.repo"),
        api_token=_resolve_token(section, "github"),
        timeout_seconds=_require_positive_int(
            section.get("timeout_seconds", 30), "github.timeout_seconds"
        ),
    )


def _parse_kafka_section(value: Any) -> KafkaSettings | None:
    if value is None:
        return None
    section = _require_mapping(value, "kafka")
    bootstrap_servers = _normalize_bootstrap_servers(section.get("bootstrap_servers"))
    topic = _require_non_empty_string(section.get("topic"), "kafka.topic")
    group_id = _optional_string(section.get("group_id"), "kafka.group_id")
    security = section.get("security") or {}
    if not isinstance(security, Mapping):
        raise ConfigurationError("kafka.security must be a mapping.")
    timeout_seconds = _require_positive_int(
        section.get("timeout_seconds", 60), "kafka.timeout_seconds"
    )
    poll_interval_ms = _require_positive_int(
        section.get("poll_interval_ms", 500), "kafka.poll_interval_ms"
    )
    auto_offset_reset_raw = section.get("auto_offset_reset", "earliest")
    auto_offset_reset = _require_non_empty_string(
        auto_offset_reset_raw, "kafka.auto_offset_reset"
    ).lower()
    return KafkaSettings(
        bootstrap_servers=bootstrap_servers,
        topic=topic,
        group_id=group_id,
        security=dict(security),
        timeout_seconds=timeout_seconds,
        poll_interval_ms=poll_interval_ms,
        auto_offset_reset=auto_offset_reset,
    )


def _resolve_token(section: Mapping[str, Any], section_name: str) -> str:
    token = section.get("api_token")
    token_env = section.get("api_token_env")
    if token and token_env:
        raise ConfigurationError(
            f"{section_name} must not set both api_token and api_token_env."
        )
    if token_env:
        variable = _require_non_empty_string(token_env, f"{section_name}.api_token_env")
        resolved = os.environ.get(variable, "").strip()
        if not resolved:
            raise ConfigurationError(
                f"Environment variable {variable} for {section_name}.api_token is not set."
            )
        return resolved
    return _require_non_empty_string(token, f"{section_name}.api_token")


def _require_base_url(value: Any, field_name: str) -> str:
    url = _require_non_empty_string(value, field_name)
    if not url.startswith(("http://", "https://")):
        raise ConfigurationError(f"{field_name} must start with http:// or https://.")
    return url.rstrip("/")


def _stringify_id(value: Any) -> Any:
    # GitLab project ids are commonly written as bare integers in YAML.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _normalize_bootstrap_servers(value: Any) -> tuple[str, ...]:
    if value is None:
        raise ConfigurationError("kafka.bootstrap_servers is required.")
    servers: list[str] = []
    if isinstance(value, str):
        servers = [item.strip() for item in value.split(",") if item.strip()]
    elif isinstance(value, Sequence):
        for item in value:
            if not isinstance(item, str):
                raise ConfigurationError("kafka.bootstrap_servers entries must be strings.")
            stripped = item.strip()
            if stripped:
                servers.append(stripped)
    else:
        raise ConfigurationError("kafka.bootstrap_servers must be a string or list of strings.")
    if not servers:
        raise ConfigurationError("kafka.bootstrap_servers must contain at least one server.")
    return tuple(servers)


def _resolve_path(base_path: Path, raw_path: str) -> Path:
    candidate = Path(raw_path)
    if not candidate.is_absolute():
        return (base_path / candidate).resolve()
    return candidate


def _require_mapping(value: Any, section_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"Configuration section '{section_name}' is required.")
    return value


def _require_non_empty_string(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(f"{field_name} must be a string.")
    stripped = value.strip()
    if not stripped:
        raise ConfigurationError(f"{field_name} must not be empty.")
    return stripped


def _optional_string(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"{field_name} must be a string.")
    stripped = value.strip()
    return stripped or None


def _require_positive_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{field_name} must be an integer.")
    if not isinstance(value, int):
        raise ConfigurationError(f"{field_name} must be an integer.")
    if value <= 0:
        raise ConfigurationError(f"{field_name} must be greater than zero.")
    return value
