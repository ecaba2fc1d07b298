"""Results writing entities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


@dataclass(frozen=True)
class RunsReportMetadata:
    """Metadata rendered into the RunInfo sheet."""

    generated_at: datetime
    project_id: str
    output_path: Path
    test_suite_id: str = ""
