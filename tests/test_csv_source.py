from __future__ import annotations

from pathlib import Path

import pytest

from milestonesuite.csv_source import iter_rows, read_rows
from milestonesuite.encoding import convert_directory
from milestonesuite.errors import ConfigError


def test_rows_are_trimmed_and_ordered(tmp_path: Path):
    path = tmp_path / "issues.csv"
    path.write_text(
        "\ufeff キー ,件名, マイルストーン \n"
        "PRJ-2 , second ,\"v1, v2\"\n"
        ",blank,\n"
        "PRJ-1,first,v3\n",
        encoding="utf-8",
    )
    rows = read_rows(path)

    assert [r["キー"] for r in rows] == ["PRJ-2", "", "PRJ-1"]
    assert rows[0]["マイルストーン"] == "v1, v2"
    assert rows[0]["件名"] == "second"


def test_short_records_fill_missing_columns(tmp_path: Path):
    path = tmp_path / "issues.csv"
    path.write_text("Key,Milestones\nPRJ-1\n", encoding="utf-8")
    assert read_rows(path) == [{"Key": "PRJ-1", "Milestones": ""}]


def test_iter_rows_is_lazy_and_checks_path(tmp_path: Path):
    rows = iter_rows(tmp_path / "missing.csv")
    with pytest.raises(ConfigError):
        next(rows)


def test_empty_file_yields_nothing(tmp_path: Path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")
    assert read_rows(path) == []


def test_convert_directory_shift_jis(tmp_path: Path):
    src = tmp_path / "sjis"
    dst = tmp_path / "utf8"
    src.mkdir()
    (src / "export.CSV").write_bytes("キー,マイルストーン\nPRJ-1,リリース1\n".encode("shift_jis"))
    (src / "notes.txt").write_bytes(b"ignored")

    converted = convert_directory(src, dst)

    assert converted == [dst / "export.CSV"]
    assert (dst / "export.CSV").read_text(encoding="utf-8") == "キー,マイルストーン\nPRJ-1,リリース1\n"
    assert not (dst / "notes.txt").exists()
    rows = read_rows(dst / "export.CSV")
    assert rows == [{"キー": "PRJ-1", "マイルストーン": "リリース1"}]


def test_shift_jis_export_read_as_utf8_is_config_error(tmp_path: Path):
    path = tmp_path / "export.csv"
    path.write_bytes("キー\nPRJ-1\n".encode("shift_jis"))

    with pytest.raises(ConfigError, match="convert-csv"):
        read_rows(path)
    assert read_rows(path, encoding="shift_jis") == [{"キー": "PRJ-1"}]


def test_convert_directory_missing_input(tmp_path: Path):
    with pytest.raises(ConfigError, match="input directory not found"):
        convert_directory(tmp_path / "nope", tmp_path / "out")


def test_convert_directory_names_undecodable_file(tmp_path: Path):
    src = tmp_path / "sjis"
    src.mkdir()
    (src / "broken.csv").write_bytes(b"\x82\xff\xfc")

    with pytest.raises(ConfigError, match="broken.csv"):
        convert_directory(src, tmp_path / "out")
