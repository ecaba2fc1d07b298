"""Configuration domain exports."""

from .config_scaffold_builder import (
    DEFAULT_CONFIG_FILENAME,
    build_placeholder_configuration,
    write_placeholder_configuration,
)
from .loader import ConfigurationError, load_configuration
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

__all__ = [
    "DispatchSettings",
    "FieldRequirements",
    "GitHubSettings",
    "GitLabSettings",
    "KafkaSettings",
    "ProjectSettings",
    "Settings",
    "StorageSettings",
    "ConfigurationError",
    "load_configuration",
    "DEFAULT_CONFIG_FILENAME",
    "build_placeholder_configuration",
    "write_placeholder_configuration",
]
