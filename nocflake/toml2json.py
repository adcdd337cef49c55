"""Read TOML from standard input and write it as compact JSON."""

from __future__ import annotations

import datetime as _dt
import json
import math
import sys
import tomllib
from typing import Any

__all__ = ["convert", "main"]

DATETIME_KEY = "$__toml_private_datetime"


def _format_datetime(value: _dt.datetime | _dt.date | _dt.time) -> str:
    if isinstance(value, _dt.datetime):
        offset = value.utcoffset()
        text = value.replace(tzinfo=None).isoformat()
        if offset is None:
            return text
        if offset == _dt.timedelta(0):
            return text + "Z"
        return text + value.isoformat()[len(text):]
    return value.isoformat()


def _to_json_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _to_json_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_to_json_value(item) for item in value]
    if isinstance(value, (_dt.datetime, _dt.date, _dt.time)):
        return {DATETIME_KEY: _format_datetime(value)}
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def convert(data: str | bytes) -> str:
    """Convert a TOML document to a compact JSON string with sorted keys."""
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    document = tomllib.loads(data)
    return json.dumps(
        _to_json_value(document),
        ensure_ascii=False,
        separators=(",", ":"),
        sort_keys=True,
    )


def main(argv: list[str] | None = None) -> int:
    """Convert standard input to JSON on standard output; return the exit status."""
    try:
        output = convert(sys.stdin.buffer.read())
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    sys.stdout.buffer.write((output + "\n").encode("utf-8"))
    sys.stdout.buffer.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())