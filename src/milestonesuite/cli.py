"""milestonesuite CLI.

Subcommands:
  add          -> add one milestone to every issue listed in the CSV
  delete       -> remove one milestone from every issue listed in the CSV
  update       -> make each issue's milestones match the CSV milestone column
  milestones   -> list the project's milestones (id, name)
  convert-csv  -> convert Shift_JIS CSV exports to UTF-8

Every batch command accepts --dry-run to log intended changes only.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

from .backlog_rest import BacklogRestClient
from .config import CONFIG_DEFAULT, SuiteConfig, build_run_config, resolve_log_dir
from .csv_source import iter_rows
from .encoding import DEFAULT_INPUT_DIR, DEFAULT_OUTPUT_DIR, convert_directory
from .env_auth import BacklogCredentials, EnvAuthConfig, create_env_auth_manager
from .errors import ConfigError
from .logging import StructuredLogger, configure_logging, create_run_logger
from .models import RunConfig
from .orchestrator import BATCH_COMMANDS, list_milestones, run_command
from .runtime import execute_command, prepare_config
from .ux import print_success, print_summary_box, summary_items

_MAX_HELP_WIDTH = 100

LOG_PREFIXES = {
    "add": "add-milestone",
    "delete": "delete-milestone",
    "update": "update",
}


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--config",
        default=None,
        help=f"YAML config file (default: {CONFIG_DEFAULT} when present)",
    )
    p.add_argument("--log-dir", help="Directory for run logs (env: LOG_DIR, default: logs)")
    p.add_argument("--json-logs", action="store_true", help="Emit JSON log records")


def _add_batch_options(p: argparse.ArgumentParser, *, needs_target: bool) -> None:
    _add_common(p)
    p.add_argument("--csv", help="CSV file with issue keys (env: CSV_FILE)")
    p.add_argument("--encoding", help="CSV file encoding (default: utf-8-sig)")
    p.add_argument("--issue-key-column", help="Issue key column (env: ISSUE_KEY_COLUMN)")
    if needs_target:
        p.add_argument("--milestone", help="Target milestone name (env: MILESTONE)")
    else:
        p.add_argument("--milestone-column", help="Milestone list column (env: MILESTONE_COLUMN)")
    p.add_argument(
        "--skip-if",
        help="Comma separated milestones; issues carrying any are left alone "
        "(env: SKIP_IF_MILESTONE_EXISTS)",
    )
    p.add_argument(
        "--dry-run",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Log intended changes without updating issues (env: DRY_RUN)",
    )
    p.add_argument("--delay-ms", type=int, help="Pause between issues in ms (default 800)")
    p.add_argument("--retries", type=int, help="Attempts per call on HTTP 429 (default 3)")
    p.add_argument("--retry-base-ms", type=int, help="Initial backoff in ms (default 1000)")


def _build_parser() -> argparse.ArgumentParser:
    """Construct top-level CLI parser with subcommands."""
    p = _FormatterArgumentParser(
        prog="milestonesuite", description="Bulk milestone edits for Backlog issues"
    )
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    pa = sub.add_parser("add", help="Add a milestone to every issue in the CSV")
    _add_batch_options(pa, needs_target=True)

    pd = sub.add_parser("delete", help="Remove a milestone from every issue in the CSV")
    _add_batch_options(pd, needs_target=True)

    pu = sub.add_parser("update", help="Set each issue's milestones from the CSV column")
    _add_batch_options(pu, needs_target=False)

    pm = sub.add_parser("milestones", help="List the project's milestones")
    _add_common(pm)

    pc = sub.add_parser("convert-csv", help="Convert Shift_JIS CSV files to UTF-8")
    pc.add_argument("--input-dir", type=Path, default=DEFAULT_INPUT_DIR)
    pc.add_argument("--output-dir", type=Path, default=DEFAULT_OUTPUT_DIR)
    pc.add_argument("--source-encoding", default="shift_jis")
    return p


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "csv": args.csv,
        "encoding": args.encoding,
        "issue_key_column": args.issue_key_column,
        "milestone": getattr(args, "milestone", None),
        "milestone_column": getattr(args, "milestone_column", None),
        "skip_if": args.skip_if,
        "dry_run": args.dry_run,
        "delay_ms": args.delay_ms,
        "retries": args.retries,
        "retry_base_ms": args.retry_base_ms,
        "log_dir": args.log_dir,
    }


def _credentials(cfg: SuiteConfig) -> BacklogCredentials:
    manager = create_env_auth_manager(
        EnvAuthConfig(load_dotenv=cfg.env_auth_load_dotenv, dotenv_path=cfg.env_auth_dotenv_path)
    )
    env_creds = manager.get_credentials()
    creds = BacklogCredentials(
        api_key=env_creds.api_key,
        space_url=env_creds.space_url or (cfg.space_url or "").rstrip("/") or None,
        project_key=env_creds.project_key or cfg.project_key,
    )
    missing = creds.missing()
    if missing:
        raise ConfigError(f"required settings are missing: {', '.join(missing)}")
    return creds


def _client(creds: BacklogCredentials) -> BacklogRestClient:
    return BacklogRestClient(
        api_key=str(creds.api_key),
        space_url=str(creds.space_url),
        project_key=str(creds.project_key),
    )


def _log_run_header(
    logger: StructuredLogger, log_file: Path, creds: BacklogCredentials, run_cfg: RunConfig
) -> None:
    logger.info(f"Log file: {log_file}")
    logger.info(f"Space: {creds.space_url}, Project: {creds.project_key}")
    logger.info(f"CSV: {run_cfg.csv_file}")
    logger.info(f"Mode: {'DRY-RUN' if run_cfg.dry_run else 'APPLY'}")
    if run_cfg.target_milestone:
        logger.info(f"Target Milestone: {run_cfg.target_milestone}")
    if run_cfg.skip_milestones:
        logger.info(f"Skip If Milestone Exists: {', '.join(sorted(run_cfg.skip_milestones))}")


def _cmd_batch(cfg: SuiteConfig, args: argparse.Namespace) -> int:
    creds = _credentials(cfg)
    run_cfg = build_run_config(cfg, command=args.cmd, overrides=_overrides(args))
    prefix = LOG_PREFIXES[args.cmd] + ("-dry-run" if run_cfg.dry_run else "")
    logger, log_file = create_run_logger(
        run_cfg.log_dir,
        prefix,
        json_logging=cfg.logging_json_enabled,
        level=cfg.logging_level,
    )
    try:
        _log_run_header(logger, log_file, creds, run_cfg)
        assert run_cfg.csv_file is not None  # guaranteed by build_run_config
        summary = run_command(
            args.cmd,
            run_cfg,
            client=_client(creds),
            rows=iter_rows(run_cfg.csv_file, encoding=run_cfg.csv_encoding),
            logger=logger,
        )
    finally:
        logger.close()
    print_summary_box(f"{args.cmd} summary", summary_items(summary, run_cfg.dry_run))
    return 0


def _cmd_milestones(cfg: SuiteConfig, args: argparse.Namespace) -> int:
    creds = _credentials(cfg)
    logger, log_file = create_run_logger(
        resolve_log_dir(cfg, args.log_dir),
        "milestones-list",
        json_logging=cfg.logging_json_enabled,
        level=cfg.logging_level,
    )
    try:
        logger.info(f"Log file: {log_file}")
        logger.info(f"Space: {creds.space_url}, Project: {creds.project_key}")
        list_milestones(_client(creds), logger)
    finally:
        logger.close()
    return 0


def _cmd_convert_csv(args: argparse.Namespace) -> int:
    configure_logging()
    converted = convert_directory(args.input_dir, args.output_dir, args.source_encoding)
    print_success(f"converted {len(converted)} CSV file(s) -> {args.output_dir}")
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    cfg = prepare_config(args)
    if args.cmd == "convert-csv":
        return _cmd_convert_csv(args)
    assert cfg is not None
    if args.cmd in BATCH_COMMANDS:
        return _cmd_batch(cfg, args)
    if args.cmd == "milestones":
        return _cmd_milestones(cfg, args)
    raise ConfigError(f"unknown command: {args.cmd}")  # pragma: no cover


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return execute_command(lambda: _dispatch(args), args.cmd)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
