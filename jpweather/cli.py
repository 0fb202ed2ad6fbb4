"""CLI entrypoint for the Japanese weather observation pipeline."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from jpweather.common.config_loader import load_config
from jpweather.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from jpweather.common.errors import PipelineError
from jpweather.common.logging import DEFAULT_LOGGER_NAME, build_logger, log_event
from jpweather.common.time_utils import generate_run_id, parse_run_date
from jpweather.pipeline.export import write_output_csv
from jpweather.pipeline.reports import write_run_summary
from jpweather.pipeline.run import run_pipeline


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=["run"])
    parser.add_argument("--run-date", default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--strict", action="store_true")
    return parser.parse_args(argv)


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    run_date = parse_run_date(args.run_date)
    config_dir = Path(args.config_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    data_dir = Path(args.data_dir)

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    bundle = load_config(config_dir, overlay_config_dir=overlay_config_dir)
    log_event(logger, "run start", run_id=run_id, stage="read", event="STAGE_START", status="ok")

    try:
        result = run_pipeline(bundle, run_date=run_date, run_id=run_id, logger=logger, strict=args.strict)
    except PipelineError as exc:
        log_event(
            logger,
            f"run failed: {exc}",
            run_id=run_id,
            event="RUN_END",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_HARD_FAIL

    out_path = write_output_csv(data_dir / "out" / bundle.output_filename(), result.rows)
    write_run_summary(data_dir, result, run_id=run_id, run_date=run_date)
    log_event(
        logger,
        f"wrote {out_path}",
        run_id=run_id,
        event="RUN_END",
        status="ok" if result.status == "success" else "error",
        rows_out=len(result.rows),
    )

    if result.status == "success":
        return EXIT_SUCCESS
    if args.strict and result.failed_sources:
        return EXIT_HARD_FAIL
    return EXIT_PARTIAL


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError as exc:
        logging.getLogger(DEFAULT_LOGGER_NAME).error("pipeline aborted: %s", exc)
        return EXIT_HARD_FAIL
    except Exception:
        logging.getLogger(DEFAULT_LOGGER_NAME).exception("unexpected failure")
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
