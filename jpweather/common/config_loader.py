"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jpweather.common.constants import DEFAULT_PLAUSIBILITY
from jpweather.common.errors import ConfigError
from jpweather.common.fs import read_yaml
from jpweather.common.http import RetryConfig, TimeoutConfig
from jpweather.common.schema import validate_pipeline_config

PIPELINE_FILENAME = "pipeline.yml"


@dataclass(frozen=True)
class ConfigBundle:
    pipeline: dict
    config_dir: Path

    @property
    def metrics(self) -> list[str]:
        return list(self.pipeline["metrics"])

    @property
    def sources(self) -> dict[str, dict]:
        return self.pipeline["sources"]

    def enabled_sources(self) -> dict[str, dict]:
        return {name: cfg for name, cfg in self.sources.items() if cfg.get("enabled")}

    def source_priority(self) -> dict[str, int]:
        return {name: idx for idx, name in enumerate(self.pipeline["source_priority"])}

    def plausibility(self) -> dict[str, dict[str, float]]:
        bounds = {metric: dict(DEFAULT_PLAUSIBILITY[metric]) for metric in self.metrics}
        for metric, override in (self.pipeline.get("plausibility") or {}).items():
            bounds[metric] = {"min": float(override["min"]), "max": float(override["max"])}
        return bounds

    def metadata_path(self) -> Path:
        return Path(self.pipeline["metadata"]["path"])

    def max_distance_km(self) -> float | None:
        value = self.pipeline["resolver"].get("max_distance_km")
        return None if value is None else float(value)

    def timeout(self) -> TimeoutConfig:
        http = self.pipeline["http"]
        return TimeoutConfig(
            connect=float(http.get("connect_timeout", TimeoutConfig.connect)),
            read=float(http.get("read_timeout", TimeoutConfig.read)),
        )

    def retry(self) -> RetryConfig:
        http = self.pipeline["http"]
        return RetryConfig(
            max_attempts=int(http.get("max_attempts", RetryConfig.max_attempts)),
            multiplier=float(http.get("backoff_multiplier", RetryConfig.multiplier)),
            max_wait=float(http.get("max_backoff_seconds", RetryConfig.max_wait)),
        )

    def output_filename(self) -> str:
        return self.pipeline["output"]["filename"]


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    return _deep_merge(base, overlay)


def load_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    overlay_path = None
    if overlay_config_dir is not None:
        overlay_path = overlay_config_dir / PIPELINE_FILENAME
    cfg = _load_yaml_with_overlay(config_dir / PIPELINE_FILENAME, overlay_path)
    return ConfigBundle(
        pipeline=validate_pipeline_config(cfg, allow_unknown=allow_unknown),
        config_dir=config_dir,
    )
