"""JSON-lines run logging with a fixed field set."""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from jpweather.common.constants import JSON_LOG_FIELDS
from jpweather.common.fs import ensure_dir
from jpweather.common.time_utils import utc_timestamp_iso

DEFAULT_LOGGER_NAME = "jpweather"


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {name: getattr(record, name, None) for name in JSON_LOG_FIELDS}
        payload["timestamp"] = utc_timestamp_iso()
        payload["message"] = record.getMessage()
        return json.dumps(payload, ensure_ascii=False)


def build_logger(run_id: str, data_dir: Path, level: str = "INFO") -> logging.Logger:
    """Logger for one run, writing to stderr and ``run_meta/<run_id>.log.jsonl``."""
    logger = logging.getLogger(f"{DEFAULT_LOGGER_NAME}.{run_id}")
    logger.setLevel(level.upper())
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    stream = logging.StreamHandler()
    stream.setFormatter(JsonLineFormatter())
    logger.addHandler(stream)

    log_path = data_dir / "run_meta" / f"{run_id}.log.jsonl"
    ensure_dir(log_path.parent)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(JsonLineFormatter())
    logger.addHandler(file_handler)

    return logger


def get_logger(logger: logging.Logger | None) -> logging.Logger:
    return logger if logger is not None else logging.getLogger(DEFAULT_LOGGER_NAME)


def log_event(logger: logging.Logger, message: str, **event_fields: Any) -> None:
    level = logging.WARNING if event_fields.get("status") == "error" else logging.INFO
    logger.log(level, message, extra=event_fields)


@contextmanager
def stage_timer(logger: logging.Logger, stage: str, *, run_id: str | None = None) -> Iterator[dict]:
    """Emit STAGE_END with the elapsed time once the block finishes.

    The block fills ``rows_in``/``rows_out`` in the yielded dict.
    """
    counts: dict[str, int | None] = {"rows_in": None, "rows_out": None}
    started = time.monotonic()
    yield counts
    log_event(
        logger,
        f"stage {stage} done",
        run_id=run_id,
        stage=stage,
        event="STAGE_END",
        status="ok",
        duration_ms=int((time.monotonic() - started) * 1000),
        rows_in=counts["rows_in"],
        rows_out=counts["rows_out"],
    )
