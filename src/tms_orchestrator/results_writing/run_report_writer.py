"""Test run report workbook writer service."""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from pathlib import Path

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from tms_orchestrator.test_catalog.catalog_entities import TestCase
from tms_orchestrator.test_runs.run_entities import TestRun, TestRunStatus

from .report_models import RunsReportMetadata

RUNS_SHEET_NAME = "TestRuns"
RUN_INFO_SHEET_NAME = "RunInfo"

RUN_COLUMNS = (
    "test_run_id",
    "test_case_ids",
    "test_case_summaries",
    "test_suite_id",
    "status",
    "target_id",
    "target_name",
    "target_type",
    "target_ref",
    "pipeline_id",
    "version",
    "created_at",
    "updated_at",
)


def write_runs_workbook(
    runs: Sequence[TestRun],
    metadata: RunsReportMetadata,
    *,
    test_cases: Mapping[str, TestCase] | None = None,
) -> Path:
    """Write one row per test run plus a RunInfo summary sheet; returns the output path."""
    summaries = {
        test_case_id: test_case.summary for test_case_id, test_case in (test_cases or {}).items()
    }
    ordered_runs = sorted(runs, key=lambda run: (run.created_at, run.id))

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = RUNS_SHEET_NAME
    _write_header(sheet)
    for row, run in enumerate(ordered_runs, start=2):
        for column, value in enumerate(_run_row(run, summaries), start=1):
            sheet.cell(row=row, column=column, value=value)
    sheet.freeze_panes = "A2"

    _write_run_info_sheet(workbook, metadata, ordered_runs)

    output = Path(metadata.output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(output)
    return output


def _write_header(sheet) -> None:
    for column, name in enumerate(RUN_COLUMNS, start=1):
        cell = sheet.cell(row=1, column=column, value=name)
        cell.style = "Headline 1"
        sheet.column_dimensions[get_column_letter(column)].width = max(12, min(len(name) + 6, 40))


def _run_row(run: TestRun, summaries: Mapping[str, str]) -> tuple[object, ...]:
    target = run.execution_target
    return (
        run.id,
        ", ".join(run.test_case_ids),
        "\n".join(summaries.get(test_case_id, "") for test_case_id in run.test_case_ids),
        run.test_suite_id,
        run.status.value,
        target.id,
        target.name,
        target.type.value,
        target.ref,
        run.pipeline_id,
        run.version,
        run.created_at.isoformat(),
        run.updated_at.isoformat() if run.updated_at else None,
    )


def _write_run_info_sheet(
    workbook, metadata: RunsReportMetadata, runs: Sequence[TestRun]
) -> None:
    sheet = workbook.create_sheet(RUN_INFO_SHEET_NAME)
    counts = Counter(run.status for run in runs)
    entries: list[tuple[str, object]] = [
        ("generated_at", metadata.generated_at.isoformat()),
        ("project_id", metadata.project_id),
        ("test_suite_id", metadata.test_suite_id),
        ("output_path", str(metadata.output_path)),
        ("total", len(runs)),
    ]
    entries.extend((status.value.lower(), counts.get(status, 0)) for status in TestRunStatus)
    for row, (key, value) in enumerate(entries, start=1):
        sheet.cell(row=row, column=1, value=key)
        sheet.cell(row=row, column=2, value=value)
