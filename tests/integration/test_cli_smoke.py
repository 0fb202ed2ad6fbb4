from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from jpweather.cli import parse_args, run_command
from jpweather.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS

ROOT = Path(__file__).resolve().parents[2]
FIXTURES = ROOT / "tests" / "fixtures"


def write_pipeline(config_dir: Path, sources: dict, priority: list[str]) -> Path:
    config_dir.mkdir(parents=True, exist_ok=True)
    pipeline = {
        "run": {"name": "smoke"},
        "season": {"start_month": 6, "start_day": 1, "length_days": 122},
        "metrics": ["average_temperature", "max_temperature", "min_temperature"],
        "source_priority": priority,
        "metadata": {"path": str(ROOT / "config" / "stations.csv")},
        "resolver": {"max_distance_km": 50},
        "http": {"max_attempts": 1},
        "sources": sources,
        "output": {"filename": "observations.csv"},
    }
    (config_dir / "pipeline.yml").write_text(yaml.safe_dump(pipeline), encoding="utf-8")
    return config_dir


def html_source() -> dict:
    return {
        "kind": "html_table",
        "enabled": True,
        "path": str(FIXTURES / "html" / "jma_daily_tokyo.html"),
        "table_selector": "#tablefix1",
        "entity_id": "47662",
        "year": 2023,
        "month": 8,
        "day_column": 0,
        "columns": {"average_temperature": 6, "max_temperature": 7, "min_temperature": 8},
    }


def yearly_source(path: Path) -> dict:
    return {
        "kind": "yearly_json",
        "enabled": True,
        "path": str(path),
        "entity_id": "tokyo",
        "metric": "average_temperature",
    }


def _args(config_dir: Path, data_dir: Path, *extra: str):
    return parse_args(
        [
            "run",
            "--config-dir",
            str(config_dir),
            "--data-dir",
            str(data_dir),
            "--run-date",
            "2023-10-01",
            "--run-id",
            "run-test",
            *extra,
        ]
    )


@pytest.mark.integration
def test_cli_run_writes_table_and_summary(tmp_path: Path):
    config_dir = write_pipeline(
        tmp_path / "config",
        {"jma_daily": html_source(), "summer": yearly_source(FIXTURES / "json" / "summer_flat.json")},
        ["jma_daily", "summer"],
    )
    data_dir = tmp_path / "data"

    exit_code = run_command(_args(config_dir, data_dir))

    assert exit_code == EXIT_PARTIAL
    table = (data_dir / "out" / "observations.csv").read_text(encoding="utf-8").splitlines()
    assert table[0].startswith("entity_id,display_name,parent_region,date,metric,value")
    assert "47662,Tokyo,Kanto,1876-06-01,average_temperature,22.100,summer,alias," in table
    assert "47662,Tokyo,Kanto,2023-08-04,average_temperature,29.900,jma_daily,key," in table
    assert len(table) == 1 + 6 + 14

    summary = json.loads((data_dir / "out" / "reports" / "run_summary.json").read_text(encoding="utf-8"))
    assert summary["status"] == "partial"
    assert summary["exclusions"]["by_code"] == {"UNPARSEABLE_VALUE": 1}
    assert summary["stages"]["normalise"]["missing_values"] == {"summer": 1}
    assert (data_dir / "run_meta" / "run-test.log.jsonl").exists()


@pytest.mark.integration
def test_cli_run_succeeds_on_clean_input(tmp_path: Path):
    clean = tmp_path / "clean.json"
    clean.write_text(json.dumps({"2020": [24.0, 24.5]}), encoding="utf-8")
    config_dir = write_pipeline(tmp_path / "config", {"summer": yearly_source(clean)}, ["summer"])

    assert run_command(_args(config_dir, tmp_path / "data")) == EXIT_SUCCESS


@pytest.mark.integration
def test_cli_strict_run_fails_on_missing_source(tmp_path: Path):
    config_dir = write_pipeline(
        tmp_path / "config",
        {
            "jma_daily": html_source(),
            "summer": yearly_source(tmp_path / "absent.json"),
        },
        ["jma_daily", "summer"],
    )

    assert run_command(_args(config_dir, tmp_path / "data")) == EXIT_PARTIAL
    assert run_command(_args(config_dir, tmp_path / "strict", "--strict")) == EXIT_HARD_FAIL


@pytest.mark.integration
def test_cli_run_all_sources_failing_is_hard_failure(tmp_path: Path):
    config_dir = write_pipeline(tmp_path / "config", {"summer": yearly_source(tmp_path / "absent.json")}, ["summer"])
    data_dir = tmp_path / "data"

    assert run_command(_args(config_dir, data_dir)) == EXIT_HARD_FAIL
    assert not (data_dir / "out" / "observations.csv").exists()
