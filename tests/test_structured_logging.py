import io
import json
import re
from datetime import datetime

from milestonesuite.diffing import DiffStatus
from milestonesuite.logging import StructuredLogger, create_run_logger, run_log_path


def test_json_records_carry_extras():
    stream = io.StringIO()
    logger = StructuredLogger(name="milestonesuite.json-test", json_logging=True, stream=stream)

    logger.log_issue_action("updated", "PRJ-1", dry_run=True, milestone_ids=[1, 2])

    entry = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert entry["message"] == "issue updated PRJ-1 [DRY]"
    assert entry["operation"] == "issue_updated"
    assert entry["issue_key"] == "PRJ-1"
    assert entry["dry_run"] is True
    assert entry["milestone_ids"] == [1, 2]
    assert "indent" not in entry


def test_json_keeps_non_ascii_names():
    stream = io.StringIO()
    logger = StructuredLogger(name="milestonesuite.json-utf8", json_logging=True, stream=stream)

    logger.emit_diff("PRJ-1", ["リリース1"], ["リリース1", "v2"], DiffStatus.APPLY, dry_run=False)

    entry = json.loads(stream.getvalue().strip())
    assert entry["message"] == "changed: リリース1 -> リリース1, v2"
    assert entry["status"] == "apply"
    assert entry["after"] == ["リリース1", "v2"]


def test_run_log_file_indents_groups_and_prefixes_errors(tmp_path):
    log_file = tmp_path / "run.log"
    logger = StructuredLogger(
        name="milestonesuite.file-test", log_file=log_file, stream=io.StringIO()
    )

    with logger.grouped("[APPLY] PRJ-1 Login fails"):
        logger.emit_diff("PRJ-1", ["v1"], ["v1", "v2"], DiffStatus.APPLY, dry_run=False)
        logger.log_error("update failed:", error="boom")
    logger.info("done")
    logger.close()

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert lines == [
        "",
        "[APPLY] PRJ-1 Login fails",
        "  changed: v1 -> v1, v2",
        "  ERROR: update failed: boom",
        "done",
    ]


def test_run_log_file_is_appended(tmp_path):
    log_file = tmp_path / "run.log"
    first = StructuredLogger(name="milestonesuite.append", log_file=log_file, stream=io.StringIO())
    first.info("one")
    first.close()
    second = StructuredLogger(name="milestonesuite.append", log_file=log_file, stream=io.StringIO())
    second.info("two")
    second.close()

    assert log_file.read_text(encoding="utf-8").splitlines() == ["one", "two"]


def test_skip_lines():
    stream = io.StringIO()
    logger = StructuredLogger(name="milestonesuite.skip", stream=stream)
    logger.emit_diff("PRJ-1", ["frozen"], ["frozen"], DiffStatus.HAS_SKIP_MILESTONE, dry_run=False)
    logger.emit_diff("PRJ-2", [], [], DiffStatus.NO_CHANGE, dry_run=False)

    text = stream.getvalue()
    assert "skipped (has skip milestone): frozen" in text
    assert "unchanged: (none)" in text


def test_run_log_path_format():
    path = run_log_path("logs", "update-dry-run", now=datetime(2024, 1, 2, 3, 4, 5))
    assert str(path).replace("\\", "/") == "logs/update-dry-run-20240102-030405.log"


def test_create_run_logger_writes_file(tmp_path):
    logger, path = create_run_logger(tmp_path / "logs", "add-milestone", stream=io.StringIO())
    try:
        logger.info("hello")
    finally:
        logger.close()

    assert re.fullmatch(r"add-milestone-\d{8}-\d{6}\.log", path.name)
    assert path.parent == tmp_path / "logs"
    assert path.read_text(encoding="utf-8").strip() == "hello"


def test_timed_operation_logs_failure_and_reraises(tmp_path):
    log_file = tmp_path / "run.log"
    logger = StructuredLogger(name="milestonesuite.timed", log_file=log_file, stream=io.StringIO())
    try:
        with logger.timed_operation("fetch_milestone_directory"):
            raise RuntimeError("down")
    except RuntimeError:
        pass
    logger.close()

    text = log_file.read_text(encoding="utf-8")
    assert "Operation: fetch_milestone_directory_start" in text
    assert "ERROR: operation fetch_milestone_directory failed down" in text
