from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

from .errors import ConfigError
from .models import RunConfig
from .reconcile import parse_name_list

CONFIG_DEFAULT = "milestonesuite.config.yaml"

# Column headers of a Backlog CSV export
DEFAULT_ISSUE_KEY_COLUMN = "キー"
DEFAULT_MILESTONE_COLUMN = "マイルストーン"

DEFAULT_DELAY_MS = 800
DEFAULT_LOG_DIR = "logs"
TRUTHY = ("1", "true", "t", "yes", "y", "on")


def parse_boolean(value: str | bool | None) -> bool:
    if isinstance(value, bool):
        return value
    if not value:
        return False
    return value.strip().lower() in TRUTHY


@dataclass
class SuiteConfig:
    """Values read from the optional YAML config file."""

    source_file: Path | None = None
    space_url: str | None = None
    project_key: str | None = None
    csv_file: str | None = None
    csv_encoding: str = "utf-8-sig"
    issue_key_column: str | None = None
    milestone_column: str | None = None
    target_milestone: str | None = None
    skip_if_milestone_exists: list[str] = field(default_factory=list)
    dry_run_default: bool = False
    delay_ms: int = DEFAULT_DELAY_MS
    retry_attempts: int = 3
    retry_base_delay_ms: int = 1000
    log_dir: str = DEFAULT_LOG_DIR
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    # Environment authentication configuration
    env_auth_load_dotenv: bool = True
    env_auth_dotenv_path: str | None = None


def _section(raw: Mapping[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"config section '{name}' must be a mapping")
    return cast(dict[str, Any], value)


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return sorted(parse_name_list(value))
    return [str(v).strip() for v in value if str(v).strip()]


def load_config(path: str | Path) -> SuiteConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Configuration file not found: {p}")
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {p}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration root must be a mapping: {p}")
    backlog = _section(raw, "backlog")
    csv_cfg = _section(raw, "csv")
    behavior = _section(raw, "behavior")
    retry_cfg = _section(raw, "retry")
    logging_config = _section(raw, "logging")
    env_auth = _section(raw, "environment")

    try:
        return SuiteConfig(
            source_file=p,
            space_url=backlog.get("space_url"),
            project_key=backlog.get("project_key"),
            csv_file=csv_cfg.get("file"),
            csv_encoding=csv_cfg.get("encoding", "utf-8-sig"),
            issue_key_column=csv_cfg.get("issue_key_column"),
            milestone_column=csv_cfg.get("milestone_column"),
            target_milestone=behavior.get("milestone"),
            skip_if_milestone_exists=_as_list(behavior.get("skip_if_milestone_exists")),
            dry_run_default=bool(behavior.get("dry_run", False)),
            delay_ms=int(behavior.get("delay_ms", DEFAULT_DELAY_MS)),
            retry_attempts=int(retry_cfg.get("attempts", 3)),
            retry_base_delay_ms=int(retry_cfg.get("base_delay_ms", 1000)),
            log_dir=str(logging_config.get("dir", DEFAULT_LOG_DIR)),
            logging_json_enabled=bool(logging_config.get("json_enabled", False)),
            logging_level=str(logging_config.get("level", "INFO")),
            env_auth_load_dotenv=bool(env_auth.get("load_dotenv", True)),
            env_auth_dotenv_path=env_auth.get("dotenv_path"),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value in {p}: {exc}") from exc


def load_config_if_present(path: str | Path | None) -> SuiteConfig:
    """Explicit paths must exist; the default path is optional."""
    if path is None:
        default = Path(CONFIG_DEFAULT)
        return load_config(default) if default.exists() else SuiteConfig()
    return load_config(path)


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _env_int(environ: Mapping[str, str], name: str) -> int | None:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _resolve_dry_run(
    cli_value: bool | None, environ: Mapping[str, str], default: bool
) -> bool:
    if cli_value is not None:
        return cli_value
    env_value = environ.get("DRY_RUN") or environ.get("BACKLOG_DRY_RUN")
    if env_value is not None and env_value.strip():
        return parse_boolean(env_value)
    return default


def build_run_config(
    cfg: SuiteConfig,
    *,
    command: str,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> RunConfig:
    """Merge CLI overrides > environment > YAML > defaults into a RunConfig.

    Raises ConfigError when a value the command needs is missing.
    """
    ov = dict(overrides or {})
    env = os.environ if environ is None else environ
    column_default = command == "update"

    target = _first(
        ov.get("milestone"), env.get("MILESTONE"), env.get("TARGET_MILESTONE"), cfg.target_milestone
    )
    skip_raw = _first(ov.get("skip_if"), env.get("SKIP_IF_MILESTONE_EXISTS"))
    skip = parse_name_list(skip_raw) if skip_raw is not None else frozenset(
        cfg.skip_if_milestone_exists
    )
    csv_file = _first(ov.get("csv"), env.get("CSV_FILE"), cfg.csv_file)
    issue_key_column = _first(
        ov.get("issue_key_column"),
        env.get("ISSUE_KEY_COLUMN"),
        cfg.issue_key_column,
        DEFAULT_ISSUE_KEY_COLUMN if column_default else None,
    )
    milestone_column = _first(
        ov.get("milestone_column"),
        env.get("MILESTONE_COLUMN"),
        cfg.milestone_column,
        DEFAULT_MILESTONE_COLUMN if column_default else None,
    )

    missing: list[str] = []
    if not csv_file:
        missing.append("CSV_FILE")
    if not issue_key_column:
        missing.append("ISSUE_KEY_COLUMN")
    if command == "update" and not milestone_column:
        missing.append("MILESTONE_COLUMN")
    if command in ("add", "delete") and not (target or "").strip():
        missing.append("MILESTONE")
    if missing:
        raise ConfigError(f"required settings are missing: {', '.join(missing)}")

    delay_ms = _first(ov.get("delay_ms"), _env_int(env, "MILESTONESUITE_DELAY_MS"), cfg.delay_ms)
    attempts = _first(
        ov.get("retries"), _env_int(env, "MILESTONESUITE_RETRY_ATTEMPTS"), cfg.retry_attempts
    )
    base_ms = _first(
        ov.get("retry_base_ms"), _env_int(env, "MILESTONESUITE_RETRY_BASE_MS"), cfg.retry_base_delay_ms
    )
    if int(delay_ms) < 0 or int(base_ms) < 0 or int(attempts) < 1:
        raise ConfigError("delay and retry settings must be non-negative (attempts >= 1)")

    return RunConfig(
        csv_file=Path(str(csv_file)),
        issue_key_column=str(issue_key_column),
        milestone_column=str(milestone_column or ""),
        target_milestone=str(target or "").strip(),
        skip_milestones=skip,
        dry_run=_resolve_dry_run(ov.get("dry_run"), env, cfg.dry_run_default),
        delay_ms=int(delay_ms),
        retry_attempts=int(attempts),
        retry_base_delay_ms=int(base_ms),
        csv_encoding=str(_first(ov.get("encoding"), cfg.csv_encoding)),
        log_dir=Path(str(_first(ov.get("log_dir"), env.get("LOG_DIR"), cfg.log_dir))),
    )


def resolve_log_dir(
    cfg: SuiteConfig, override: str | None = None, environ: Mapping[str, str] | None = None
) -> Path:
    env = os.environ if environ is None else environ
    return Path(str(_first(override, env.get("LOG_DIR"), cfg.log_dir)))


__all__ = [
    "CONFIG_DEFAULT",
    "ConfigError",
    "DEFAULT_ISSUE_KEY_COLUMN",
    "DEFAULT_MILESTONE_COLUMN",
    "SuiteConfig",
    "build_run_config",
    "load_config",
    "load_config_if_present",
    "parse_boolean",
    "resolve_log_dir",
]
