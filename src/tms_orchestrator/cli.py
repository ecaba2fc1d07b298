"""Command line interface entry point."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from functools import wraps
from pathlib import Path
from typing import Any, TypeVar

import click

from tms_orchestrator.completion_signals import (
    AppliedCompletionSignal,
    CompletionSignalError,
    CompletionSignalReader,
    GitLabPipelineWebhookTranslator,
    apply_completion_signals,
)
from tms_orchestrator.configuration import (
    DEFAULT_CONFIG_FILENAME,
    ConfigurationError,
    Settings,
    load_configuration,
    write_placeholder_configuration,
)
from tms_orchestrator.errors import TmsError
from tms_orchestrator.execution_targets import ExecutionTargetSnapshot, ExecutionTargetType
from tms_orchestrator.results_writing import RunsReportMetadata, write_runs_workbook
from tms_orchestrator.service_wiring import HostContext, OrchestratorServices, open_services
from tms_orchestrator.test_catalog import (
    UNSET,
    CreateTestCaseRequest,
    CreateTestSuiteRequest,
    UpdateTestCaseExecutionTargetRequest,
    UpdateTestSuiteCompositionRequest,
    UpdateTestSuiteMetadataRequest,
)
from tms_orchestrator.test_runs import (
    CaseDispatchResult,
    ExecutionMode,
    ExecutionResultOutcome,
    ExecutionResultSignal,
    RunTestCasesOutcome,
    RunTestCasesRequest,
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

ResultT = TypeVar("ResultT")


class CliError(Exception):
    """Custom CLI error."""


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="tms-orchestrator")
@click.option(
    "--log-level",
    default="WARNING",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level for diagnostic output on stderr",
)
def cli(log_level: str) -> None:
    """Test management orchestrator: catalog, dispatch and result reconciliation."""
    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT, stream=sys.stderr)


def _config_option(function: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--config",
        "config_path",
        required=True,
        type=click.Path(path_type=str),
        help="Path to YAML/JSON orchestrator configuration file",
    )(function)


def _observed_option(function: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--observed",
        is_flag=True,
        default=False,
        help="Only await results of an execution started elsewhere; invoke no adapter",
    )(function)


def _target_options(prefix: str = "target") -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Add --<prefix>-type/-id/-name/-ref/-project options describing one target."""

    def decorate(function: Callable[..., Any]) -> Callable[..., Any]:
        options = (
            click.option(
                f"--{prefix}-type",
                f"{prefix.replace('-', '_')}_type",
                type=click.Choice([member.value for member in ExecutionTargetType], False),
                help="Execution target type",
            ),
            click.option(f"--{prefix}-id", f"{prefix.replace('-', '_')}_id", help="Target id"),
            click.option(
                f"--{prefix}-name", f"{prefix.replace('-', '_')}_name", help="Target display name"
            ),
            click.option(
                f"--{prefix}-ref",
                f"{prefix.replace('-', '_')}_ref",
                default="",
                help="Branch (GitLab) or workflow.yml[:branch] (GitHub)",
            ),
            click.option(
                f"--{prefix}-project",
                f"{prefix.replace('-', '_')}_project",
                help="GitLab project overriding the configured one",
            ),
        )
        for option in reversed(options):
            function = option(function)
        return function

    return decorate


def _target_from_options(
    options: dict[str, Any], prefix: str = "target"
) -> ExecutionTargetSnapshot | None:
    """Build a snapshot from the values collected by `_target_options(prefix)`."""
    key = prefix.replace("-", "_")
    target_type = options.get(f"{key}_type")
    target_id = options.get(f"{key}_id")
    target_name = options.get(f"{key}_name")
    target_ref = options.get(f"{key}_ref") or ""
    target_project = options.get(f"{key}_project")
    if target_type is None:
        if target_id or target_name or target_ref or target_project:
            raise CliError("Target options require a target type.")
        return None
    if not target_id:
        raise CliError("A target id is required when a target type is given.")
    return ExecutionTargetSnapshot(
        id=target_id,
        name=target_name or target_id,
        type=ExecutionTargetType.parse(target_type),
        ref=target_ref or "",
        pipeline_id=target_project or None,
    )


def _with_services(
    config_path: str,
    action: Callable[[OrchestratorServices, Settings], Awaitable[ResultT]],
) -> ResultT:
    """Load settings, open the services and run `action` to completion."""
    try:
        settings = load_configuration(config_path)
    except ConfigurationError as exc:
        raise CliError(str(exc)) from exc

    async def _run() -> ResultT:
        async with open_services(settings, HostContext.from_settings(settings)) as services:
            return await action(services, settings)

    try:
        return asyncio.run(_run())
    except (TmsError, CompletionSignalError, OSError) as exc:
        raise CliError(str(exc)) from exc


def _translate_errors(function: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(function)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return function(*args, **kwargs)
        except TmsError as exc:
            raise CliError(str(exc)) from exc

    return wrapper


@cli.command(name="generate-config")
@click.option(
    "--output",
    "output_path",
    required=False,
    default=DEFAULT_CONFIG_FILENAME,
    show_default=True,
    type=click.Path(path_type=str),
    help="Path to the YAML configuration template to write",
)
def generate_config(output_path: str) -> None:
    """Generate a placeholder YAML configuration with guidance comments."""
    try:
        resolved_output = write_placeholder_configuration(output_path)
    except (FileExistsError, OSError) as exc:
        raise CliError(str(exc)) from exc
    click.echo(str(resolved_output))


@cli.command(name="create-case")
@_config_option
@click.option("--summary", required=True, help="Test case summary")
@click.option("--description", default="", help="Test case description")
@_target_options()
@_translate_errors
def create_case(config_path: str, summary: str, description: str, **target: Any) -> None:
    """Create a test case, optionally with its own execution target."""
    request = CreateTestCaseRequest(
        summary=summary,
        description=description,
        execution_target_snapshot=_target_from_options(target),
    )
    click.echo(
        _with_services(config_path, lambda services, _: services.create_test_case.execute(request))
    )


@cli.command(name="set-case-target")
@_config_option
@click.option("--case-id", "test_case_id", required=True, help="Test case id")
@click.option("--clear", is_flag=True, default=False, help="Remove the configured target")
@_target_options()
@_translate_errors
def set_case_target(config_path: str, test_case_id: str, clear: bool, **target: Any) -> None:
    """Attach, replace or clear the execution target of a test case."""
    snapshot = _target_from_options(target)
    if clear == (snapshot is not None):
        raise CliError("Pass either --clear or a target description.")
    request = UpdateTestCaseExecutionTargetRequest(
        test_case_id=test_case_id, execution_target_snapshot=snapshot
    )
    test_case = _with_services(
        config_path, lambda services, _: services.update_test_case_target.execute(request)
    )
    target_snapshot = test_case.execution_target_snapshot
    click.echo(f"{test_case.id}\t{target_snapshot.fingerprint() if target_snapshot else '-'}")


@cli.command(name="create-suite")
@_config_option
@click.option("--name", required=True, help="Test suite name")
@click.option("--description", default="", help="Test suite description")
def create_suite(config_path: str, name: str, description: str) -> None:
    """Create an empty test suite."""
    request = CreateTestSuiteRequest(name=name, description=description)
    click.echo(
        _with_services(config_path, lambda services, _: services.create_test_suite.execute(request))
    )


@cli.command(name="update-suite")
@_config_option
@click.option("--suite-id", "test_suite_id", required=True, help="Test suite id")
@click.option("--name", default=None, help="New suite name")
@click.option("--description", default=None, help="New suite description")
@click.option(
    "--clear-default-target", is_flag=True, default=False, help="Remove the suite default target"
)
@_target_options("default-target")
@_translate_errors
def update_suite(
    config_path: str,
    test_suite_id: str,
    name: str | None,
    description: str | None,
    clear_default_target: bool,
    **target: Any,
) -> None:
    """Patch name, description or default execution target of a test suite."""
    snapshot = _target_from_options(target, "default-target")
    if clear_default_target and snapshot is not None:
        raise CliError("Pass either --clear-default-target or a default target, not both.")
    default_target: object = UNSET
    if clear_default_target:
        default_target = None
    elif snapshot is not None:
        default_target = snapshot
    request = UpdateTestSuiteMetadataRequest(
        test_suite_id=test_suite_id,
        name=name,
        description=description,
        default_execution_target=default_target,
    )
    test_suite = _with_services(
        config_path, lambda services, _: services.update_test_suite_metadata.execute(request)
    )
    click.echo(f"{test_suite.id}\t{test_suite.name}")


@cli.command(name="compose-suite")
@_config_option
@click.option("--suite-id", "test_suite_id", required=True, help="Test suite id")
@click.option(
    "--case-id",
    "test_case_ids",
    multiple=True,
    help="Test case id; repeat to list the complete composition in order",
)
def compose_suite(config_path: str, test_suite_id: str, test_case_ids: Sequence[str]) -> None:
    """Replace the test cases of a suite with the given ordered list."""
    request = UpdateTestSuiteCompositionRequest(
        test_suite_id=test_suite_id, test_case_ids=tuple(test_case_ids)
    )
    change = _with_services(
        config_path, lambda services, _: services.update_test_suite_composition.execute(request)
    )
    click.echo(f"added: {', '.join(change.added) or '-'}")
    click.echo(f"removed: {', '.join(change.removed) or '-'}")


@cli.command(name="run")
@_config_option
@click.option(
    "--case-id", "test_case_ids", multiple=True, required=True, help="Test case id to run"
)
@click.option("--suite-id", "test_suite_id", default="", help="Suite the runs belong to")
@_target_options("override")
@_observed_option
@_translate_errors
def run_cases(
    config_path: str,
    test_case_ids: Sequence[str],
    test_suite_id: str,
    observed: bool,
    **override: Any,
) -> None:
    """Create and dispatch one test run per test case."""
    request = RunTestCasesRequest(
        test_case_ids=tuple(test_case_ids),
        suite_id=test_suite_id,
        execution_target_override=_target_from_options(override, "override"),
        execution_mode=_execution_mode(observed),
    )
    outcome = _with_services(
        config_path, lambda services, _: services.run_test_cases.execute(request)
    )
    _report_dispatch_outcome(outcome)


@cli.command(name="run-suite")
@_config_option
@click.option("--suite-id", "test_suite_id", required=True, help="Test suite id")
@_target_options("override")
@_observed_option
@_translate_errors
def run_suite(config_path: str, test_suite_id: str, observed: bool, **override: Any) -> None:
    """Dispatch every test case of a suite."""
    execution_target_override = _target_from_options(override, "override")

    async def _run(services: OrchestratorServices, _: Settings) -> RunTestCasesOutcome:
        test_suite = await services.repositories.test_suites.find_by_id(test_suite_id)
        if test_suite is None:
            raise CliError(f"TestSuite '{test_suite_id}' not found.")
        if not test_suite.test_case_ids:
            raise CliError(f"TestSuite '{test_suite_id}' has no test cases.")
        return await services.run_test_cases.execute(
            RunTestCasesRequest(
                test_case_ids=test_suite.test_case_ids,
                suite_id=test_suite.id,
                execution_target_override=execution_target_override,
                execution_mode=_execution_mode(observed),
            )
        )

    _report_dispatch_outcome(_with_services(config_path, _run))


def _execution_mode(observed: bool) -> ExecutionMode:
    return ExecutionMode.OBSERVED if observed else ExecutionMode.MANAGED


@cli.command(name="redispatch")
@_config_option
@click.option("--run-id", "test_run_id", required=True, help="Pending test run id")
def redispatch(config_path: str, test_run_id: str) -> None:
    """Dispatch a test run again after a failed dispatch left it PENDING."""
    result = _with_services(
        config_path, lambda services, _: services.redispatch_test_run.execute(test_run_id)
    )
    _report_dispatch_outcome(RunTestCasesOutcome(results=(result,)))


@cli.command(name="submit-result")
@_config_option
@click.option("--run-id", "test_run_id", required=True, help="Test run id")
@click.option("--passed/--failed", "passed", required=True, help="Execution result")
@click.option("--idempotency-key", default=None, help="Key deduplicating repeated submissions")
def submit_result(
    config_path: str, test_run_id: str, passed: bool, idempotency_key: str | None
) -> None:
    """Record a manual execution result for a test run."""
    signal = ExecutionResultSignal(
        test_run_id=test_run_id, passed=passed, idempotency_key=idempotency_key
    )
    outcome = _with_services(
        config_path, lambda services, _: services.handle_execution_result.execute(signal)
    )
    _echo_result_outcome(outcome)


@cli.command(name="gitlab-webhook")
@_config_option
@click.option(
    "--payload",
    "payload_file",
    required=True,
    type=click.File("r", encoding="utf-8"),
    help="GitLab pipeline webhook JSON body ('-' for stdin)",
)
def gitlab_webhook(config_path: str, payload_file) -> None:
    """Apply a GitLab pipeline webhook body to the test run it belongs to."""
    try:
        payload = json.load(payload_file)
    except json.JSONDecodeError as exc:
        raise CliError(f"Webhook payload is not valid JSON: {exc}") from exc

    async def _apply(
        services: OrchestratorServices, _: Settings
    ) -> ExecutionResultOutcome | None:
        translator = GitLabPipelineWebhookTranslator(services.repositories.test_runs)
        signal = await translator.translate(payload)
        if signal is None:
            return None
        return await services.handle_execution_result.execute(signal)

    outcome = _with_services(config_path, _apply)
    if outcome is None:
        click.echo("ignored")
        return
    _echo_result_outcome(outcome)


@cli.command(name="consume-results")
@_config_option
def consume_results(config_path: str) -> None:
    """Apply completion signals read from the configured Kafka topic."""

    async def _consume(
        services: OrchestratorServices, settings: Settings
    ) -> list[AppliedCompletionSignal]:
        if settings.kafka is None:
            raise CliError("Configuration section 'kafka' is required to consume results.")
        reader = CompletionSignalReader(settings.kafka)
        return await apply_completion_signals(reader.consume(), services.handle_execution_result)

    applied = _with_services(config_path, _consume)
    for item in applied:
        if item.succeeded and item.outcome is not None:
            _echo_result_outcome(item.outcome)
        else:
            test_run_id = item.signal.test_run_id if item.signal is not None else "-"
            click.echo(f"{test_run_id}\trejected\t{item.error_message}", err=True)
    click.echo(f"applied {sum(1 for item in applied if item.succeeded)} of {len(applied)} signals")


@cli.command(name="export-runs")
@_config_option
@click.option(
    "--output",
    "output_path",
    required=True,
    type=click.Path(path_type=str),
    help="Path to the test run report workbook to write",
)
@click.option("--suite-id", "test_suite_id", default="", help="Only export runs of this suite")
def export_runs(config_path: str, output_path: str, test_suite_id: str) -> None:
    """Write all test runs of the project to an Excel workbook."""

    async def _export(services: OrchestratorServices, _: Settings) -> Path:
        runs = [
            run
            for run in await services.repositories.test_runs.find_all()
            if not test_suite_id or run.test_suite_id == test_suite_id
        ]
        test_cases = {
            test_case.id: test_case
            for test_case in await services.repositories.test_cases.find_all()
        }
        metadata = RunsReportMetadata(
            generated_at=datetime.now(UTC),
            project_id=services.host.project_id,
            output_path=Path(output_path),
            test_suite_id=test_suite_id,
        )
        return await asyncio.to_thread(
            write_runs_workbook, runs, metadata, test_cases=test_cases
        )

    click.echo(str(_with_services(config_path, _export).resolve()))


def _report_dispatch_outcome(outcome: RunTestCasesOutcome) -> None:
    for result in outcome.results:
        click.echo(_format_dispatch_result(result))
    if outcome.failures:
        raise CliError(
            f"{len(outcome.failures)} of {len(outcome.results)} test cases were not dispatched."
        )


def _format_dispatch_result(result: CaseDispatchResult) -> str:
    run_id = result.test_run_id or "-"
    if result.succeeded and result.status is not None:
        return f"{result.test_case_id}\t{run_id}\t{result.status.value}"
    return f"{result.test_case_id}\t{run_id}\t{result.error_kind}: {result.error_message}"


def _echo_result_outcome(outcome: ExecutionResultOutcome) -> None:
    state = "applied" if outcome.applied else "unchanged"
    click.echo(f"{outcome.test_run_id}\t{outcome.status.value}\t{state}")


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for console_scripts wiring."""
    argv = argv if argv is not None else sys.argv[1:]
    try:
        cli.main(args=list(argv), standalone_mode=False)
    except CliError as exc:
        click.echo(str(exc), err=True)
        return 1
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except click.Abort:
        click.echo("Aborted.", err=True)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
