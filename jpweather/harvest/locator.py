"""Read a source body from a local path or a URL, mapping failures to source errors."""

from __future__ import annotations

import json
from pathlib import Path

from jpweather.common.errors import MalformedSource, SourceUnavailable
from jpweather.common.fs import read_text
from jpweather.common.http import HttpClient, HttpRequestError


def describe_locator(source_config: dict) -> str:
    return source_config.get("path") or source_config.get("url") or ""


def read_source_text(
    source_name: str,
    source_config: dict,
    http_client: HttpClient,
    *,
    source_type: str,
) -> str:
    encoding = source_config.get("encoding") or "utf-8"
    path = source_config.get("path")
    if path:
        try:
            return read_text(Path(path), encoding=encoding)
        except UnicodeDecodeError as exc:
            raise MalformedSource(source_name, f"cannot decode {path} as {encoding}") from exc
        except OSError as exc:
            raise SourceUnavailable(source_name, f"cannot read {path}: {exc}") from exc

    url = source_config["url"]
    try:
        return http_client.get_text(url, source_type=source_type, encoding=source_config.get("encoding"))
    except HttpRequestError as exc:
        raise SourceUnavailable(source_name, str(exc)) from exc


def read_source_json(
    source_name: str,
    source_config: dict,
    http_client: HttpClient,
    *,
    source_type: str,
):
    text = read_source_text(source_name, source_config, http_client, source_type=source_type)
    try:
        return json.loads(text)
    except ValueError as exc:
        raise MalformedSource(source_name, f"invalid JSON in {describe_locator(source_config)}") from exc
