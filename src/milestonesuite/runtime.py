"""Runtime helpers for milestonesuite CLI orchestration."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, Protocol

from .config import SuiteConfig, load_config_if_present
from .errors import MilestoneSuiteError, describe_error
from .logging import get_logger
from .ux import print_error


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


CONFIGLESS_COMMANDS = {"convert-csv"}


def prepare_config(
    args: Any, *, loader: Callable[[str | None], SuiteConfig] = load_config_if_present
) -> SuiteConfig | None:
    """Load the YAML config for the given argparse namespace (if the command needs one)."""
    if getattr(args, "cmd", None) in CONFIGLESS_COMMANDS:
        return None
    if not hasattr(args, "config"):
        raise AttributeError("Command namespace is missing 'config' attribute")
    cfg = loader(args.config)
    if getattr(args, "json_logs", False):
        cfg.logging_json_enabled = True
    return cfg


def execute_command(handler: _HandlerCallable, command: str) -> int:
    """Run a command handler; fatal milestonesuite errors become exit code 1."""
    start = time.monotonic()
    try:
        result = handler()
        exit_code = int(result) if result is not None else 0
    except MilestoneSuiteError as exc:
        message = describe_error(exc)
        print_error(f"{command}: {message}")
        get_logger().log_error(f"{command} aborted:", error=message, operation=command)
        exit_code = 1
    get_logger().debug(
        f"{command} finished",
        operation=command,
        exit_code=exit_code,
        duration_ms=round((time.monotonic() - start) * 1000, 2),
    )
    return exit_code


__all__ = ["prepare_config", "execute_command"]
