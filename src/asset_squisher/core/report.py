"""报告生成工具。"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable

from asset_squisher.core.models import PipelineOutcome

HEADER = ["source_path", "relative_path", "status", "elapsed_seconds", "artifact_count", "message"]


def write_csv_report(outcomes: Iterable[PipelineOutcome], report_path: Path) -> Path:
    """将处理结果写入 CSV 报告。"""

    report_path.parent.mkdir(parents=True, exist_ok=True)
    with report_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(HEADER)
        for record in outcomes:
            writer.writerow(
                [
                    str(record.source.absolute_path),
                    str(record.source.relative_path),
                    record.status,
                    f"{record.elapsed:.3f}",
                    len(record.artifacts),
                    record.message or "",
                ]
            )
    return report_path
