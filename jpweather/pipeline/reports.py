"""Run report aggregation."""

from __future__ import annotations

from pathlib import Path

from jpweather.common.fs import write_json
from jpweather.pipeline.run import PipelineResult


def build_run_summary(result: PipelineResult, *, run_id: str, run_date: str) -> dict:
    warning_count = sum(len(warnings) for warnings in result.source_warnings.values())
    return {
        "run_id": run_id,
        "run_date": run_date,
        "status": result.status,
        "sources": {
            "ok": result.source_rows,
            "failed": result.failed_sources,
            "failure_details": result.failure_details,
            "warnings": result.source_warnings,
        },
        "stages": result.stats,
        "exclusions": result.ledger.to_dict(),
        "output": result.quality,
        "warning_count": warning_count,
        "error_count": len(result.failed_sources) + result.ledger.total,
    }


def write_run_summary(data_dir: Path, result: PipelineResult, *, run_id: str, run_date: str) -> Path:
    summary_path = data_dir / "out" / "reports" / "run_summary.json"
    write_json(summary_path, build_run_summary(result, run_id=run_id, run_date=run_date))
    return summary_path
