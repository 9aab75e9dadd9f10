"""CSV row source.

Rows are yielded lazily in file order with header names and cell values
trimmed. ``utf-8-sig`` is the default encoding so exports saved with a BOM
still produce a clean first header.
"""

from __future__ import annotations

import csv
from collections.abc import Iterator
from pathlib import Path

from .errors import ConfigError
from .models import CsvRow


def _clean(value: str | None) -> str:
    return value.strip() if isinstance(value, str) else ""


def iter_rows(path: str | Path, encoding: str = "utf-8-sig") -> Iterator[CsvRow]:
    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"CSV file not found: {p}")
    try:
        with p.open(newline="", encoding=encoding) as fh:
            reader = csv.reader(fh)
            header = next(reader, None)
            if header is None:
                return
            columns = [_clean(h) for h in header]
            for record in reader:
                if not record:
                    continue
                yield {
                    name: _clean(record[idx]) if idx < len(record) else ""
                    for idx, name in enumerate(columns)
                    if name
                }
    except (UnicodeDecodeError, csv.Error) as exc:
        raise ConfigError(
            f"could not read CSV {p} as {encoding}: {exc}; "
            "convert it with 'milestonesuite convert-csv' or pass --encoding"
        ) from exc


def read_rows(path: str | Path, encoding: str = "utf-8-sig") -> list[CsvRow]:
    return list(iter_rows(path, encoding=encoding))


__all__ = ["iter_rows", "read_rows"]
