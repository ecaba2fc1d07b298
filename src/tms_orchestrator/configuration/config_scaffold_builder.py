"""Configuration scaffold generation helpers."""

from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_FILENAME = "tms.yaml"

_CONFIG_SCAFFOLD_TEMPLATE = """# Orchestrator configuration template for tms-orchestrator.
# Replace every <REQUIRED> placeholder before running any other command.
# Remove the gitlab, github or kafka sections when the project does not use them.

project:
  id: "<REQUIRED>"
  # Host tracker fields validated at startup. The defaults below apply when omitted.
  field_requirements:
    kind_field: "TMS Kind"
    kind_values:
      test_case: "Test Case"
      test_run: "Test Run"
    status_field: "Test Run Status"
    status_values:
      PENDING: "Pending"
      RUNNING: "Running"
      AWAITING_EXTERNAL_RESULTS: "Awaiting External Results"
      PASSED: "Passed"
      FAILED: "Failed"
    target_type_field: "Execution Target Type"
    target_type_values:
      MANUAL: "Manual"
      GITLAB: "GitLab"
      GITHUB: "GitHub"
    target_reference_field: "Execution Target Reference"

dispatch:
  parallelism: 4
  # Target used when neither the test case nor its suite configures one.
  default_target_id: "manual-default"
  default_target_name: "Manual"

storage:
  # Relative paths are resolved against the directory of this file.
  root_dir: ".tms"

gitlab:
  base_url: "<REQUIRED>"
  # Set either api_token or api_token_env (name of an environment variable).
  api_token_env: "GITLAB_TOKEN"
  project_id: "<REQUIRED>"
  timeout_seconds: 30

github:
  base_url: "https://api.github.com"
  owner: "<REQUIRED>"
  repo: "<REQUIRED>"
  api_token_env: "GITHUB_TOKEN"
  timeout_seconds: 30

kafka:
  bootstrap_servers:
    - "<REQUIRED>"
  # Topic carrying {"testRunId": ..., "passed": ..., "idempotencyKey": ...} messages.
  topic: "<REQUIRED>"
  group_id: "<OPTIONAL>"
  security:
    sasl.username: "<OPTIONAL>"
    sasl.password: "<OPTIONAL>"
    security.protocol: "<OPTIONAL>"
    sasl.mechanisms: "<OPTIONAL>"
  timeout_seconds: 60
  poll_interval_ms: 500
  auto_offset_reset: "earliest"
"""


def build_placeholder_configuration() -> str:
    """Build a YAML configuration template with placeholders and inline guidance."""
    return _CONFIG_SCAFFOLD_TEMPLATE


def write_placeholder_configuration(output_path: Path | str) -> Path:
    """Write the placeholder configuration template to the requested output path.

    Args:
      output_path: Destination file path for the scaffold.

    Returns:
      The resolved destination path.

    Raises:
      FileExistsError: If the destination file already exists.
      OSError: If writing the scaffold fails.
    """
    destination = Path(output_path)
    if destination.exists():
        raise FileExistsError(f"Configuration file already exists: {destination.resolve()}")
    destination.write_text(build_placeholder_configuration(), encoding="utf-8")
    return destination.resolve()
