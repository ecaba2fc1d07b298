"""Results writing domain exports."""

from .report_models import RunsReportMetadata
from .run_report_writer import (
    RUN_COLUMNS,
    RUN_INFO_SHEET_NAME,
    RUNS_SHEET_NAME,
    write_runs_workbook,
)

__all__ = [
    "RUN_COLUMNS",
    "RUN_INFO_SHEET_NAME",
    "RUNS_SHEET_NAME",
    "RunsReportMetadata",
    "write_runs_workbook",
]
