"""Convert Shift_JIS CSV exports to UTF-8 so the batch commands can read them."""

from __future__ import annotations

from pathlib import Path

from .errors import ConfigError
from .logging import get_logger

DEFAULT_INPUT_DIR = Path("csv/input_shift_jis")
DEFAULT_OUTPUT_DIR = Path("csv/input_utf_8")


def convert_file(source: Path, target: Path, source_encoding: str = "shift_jis") -> Path:
    try:
        text = source.read_bytes().decode(source_encoding)
    except UnicodeDecodeError as exc:
        raise ConfigError(f"could not decode {source} as {source_encoding}: {exc}") from exc
    target.write_text(text, encoding="utf-8")
    return target


def convert_directory(
    input_dir: str | Path = DEFAULT_INPUT_DIR,
    output_dir: str | Path = DEFAULT_OUTPUT_DIR,
    source_encoding: str = "shift_jis",
) -> list[Path]:
    """Convert every ``*.csv`` in ``input_dir`` (case-insensitive) into ``output_dir``."""
    src = Path(input_dir)
    dst = Path(output_dir)
    if not src.is_dir():
        raise ConfigError(f"input directory not found: {src}")
    dst.mkdir(parents=True, exist_ok=True)
    logger = get_logger()
    converted: list[Path] = []
    for path in sorted(src.iterdir()):
        if not path.is_file() or path.suffix.lower() != ".csv":
            continue
        out = convert_file(path, dst / path.name, source_encoding)
        logger.info(f"converted: {path} -> {out}", operation="convert_csv")
        converted.append(out)
    return converted


__all__ = ["DEFAULT_INPUT_DIR", "DEFAULT_OUTPUT_DIR", "convert_directory", "convert_file"]
