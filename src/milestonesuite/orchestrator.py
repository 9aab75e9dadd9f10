"""Batch driver: walks CSV rows and reconciles each issue's milestones.

Issues are handled strictly one at a time. Per issue the driver moves through

    fetch -> skip check -> reconcile -> (no change | dry-run hold | mutate)

and every failure is caught at the issue boundary, recorded, and the batch
moves on. After each issue, when more rows remain, the driver waits
``delay_ms`` regardless of which branch the issue took so the request rate
seen by Backlog stays bounded.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from typing import Protocol

from .diffing import DiffStatus, compute_diff, render_header
from .errors import ConfigError, classify_error, describe_error
from .logging import StructuredLogger, get_logger
from .models import (
    CsvRow,
    IssueMilestoneState,
    IssueOutcome,
    IssueSnapshot,
    MilestoneDirectory,
    OutcomeStatus,
    RunConfig,
    RunSummary,
)
from .reconcile import (
    AddMilestone,
    DeleteMilestone,
    Policy,
    SetExactMilestones,
    describe_policy,
    reconcile,
    should_skip,
    skipped_result,
    target_ids,
)
from .retry import RetryConfig, call_with_retry

BATCH_COMMANDS = ("add", "delete", "update")

PolicyFactory = Callable[[CsvRow], Policy]


class MilestoneClient(Protocol):
    def fetch_milestone_directory(self) -> MilestoneDirectory: ...

    def fetch_issue(self, issue_key: str) -> IssueSnapshot: ...

    def update_issue_milestones(self, issue_key: str, milestone_ids: Iterable[int]) -> None: ...


def policy_factory(command: str, config: RunConfig) -> PolicyFactory:
    """Map a CLI command onto the per-row policy builder."""
    if command in ("add", "delete"):
        if not config.target_milestone:
            raise ConfigError(f"'{command}' requires a target milestone (MILESTONE)")
        target = config.target_milestone
        if command == "add":
            return lambda row: AddMilestone(target)
        return lambda row: DeleteMilestone(target)
    if command == "update":
        column = config.milestone_column
        return lambda row: SetExactMilestones.from_cell(row.get(column))
    raise ConfigError(f"unknown batch command: {command}")


def _retry_config(config: RunConfig) -> RetryConfig:
    return RetryConfig(attempts=config.retry_attempts, base_delay_ms=config.retry_base_delay_ms)


def process_issue(
    issue_key: str,
    policy: Policy,
    *,
    config: RunConfig,
    client: MilestoneClient,
    directory: MilestoneDirectory,
    logger: StructuredLogger,
    sleep: Callable[[float], None] = time.sleep,
) -> IssueOutcome:
    retry_cfg = _retry_config(config)
    dry_run = config.dry_run
    logger.debug(f"policy: {describe_policy(policy)}", issue_key=issue_key)

    try:
        snapshot = call_with_retry(
            lambda: client.fetch_issue(issue_key),
            cfg=retry_cfg,
            sleep=sleep,
            label=f"fetch {issue_key}",
        )
    except Exception as exc:
        message = describe_error(exc)
        logger.log_error(
            f"issue {issue_key} could not be loaded:",
            error=message,
            issue_key=issue_key,
            category=classify_error(exc).category,
        )
        return IssueOutcome(issue_key, OutcomeStatus.FAILED, error=message)

    state = IssueMilestoneState.from_snapshot(snapshot)
    before = list(state.names)

    if should_skip(state.names, config.skip_milestones):
        status = DiffStatus.HAS_SKIP_MILESTONE
        with logger.grouped(render_header(issue_key, snapshot.summary, status, dry_run)):
            logger.emit_diff(issue_key, before, before, status, dry_run)
        return IssueOutcome(issue_key, OutcomeStatus.SKIPPED, result=skipped_result(state))

    result = reconcile(policy, state, directory)

    if result.unknown_target:
        status = DiffStatus.SKIP
        with logger.grouped(render_header(issue_key, snapshot.summary, status, dry_run)):
            for note in result.notes:
                logger.warning(note, issue_key=issue_key)
            logger.emit_diff(issue_key, before, before, status, dry_run)
        return IssueOutcome(issue_key, OutcomeStatus.UNKNOWN_MILESTONE, result=result)

    status = DiffStatus.APPLY if result.changed else DiffStatus.NO_CHANGE
    with logger.grouped(render_header(issue_key, snapshot.summary, status, dry_run)):
        for note in result.notes:
            logger.info(f"note: {note}", issue_key=issue_key)
        logger.emit_diff(issue_key, before, list(result.after_names), status, dry_run)

        if not result.changed:
            return IssueOutcome(issue_key, OutcomeStatus.NO_CHANGE, result=result)
        if dry_run:
            return IssueOutcome(issue_key, OutcomeStatus.DRY_RUN, result=result)

        ids = target_ids(policy, result, state, directory)
        try:
            call_with_retry(
                lambda: client.update_issue_milestones(issue_key, ids),
                cfg=retry_cfg,
                sleep=sleep,
                label=f"update {issue_key}",
            )
        except Exception as exc:
            message = describe_error(exc)
            logger.log_error(
                "update failed:",
                error=message,
                issue_key=issue_key,
                category=classify_error(exc).category,
            )
            return IssueOutcome(issue_key, OutcomeStatus.FAILED, result=result, error=message)
        logger.log_issue_action(
            "updated", issue_key, milestone_ids=ids, **compute_diff(before, result.after_names)
        )
        return IssueOutcome(issue_key, OutcomeStatus.APPLIED, result=result)


def run_batch(
    config: RunConfig,
    policy_for_row: PolicyFactory,
    *,
    client: MilestoneClient,
    directory: MilestoneDirectory,
    rows: Iterable[CsvRow],
    logger: StructuredLogger | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunSummary:
    """Process every row in order; a failing issue never stops the batch."""
    logger = logger or get_logger()
    all_rows: Sequence[CsvRow] = list(rows)
    total = len(all_rows)
    summary = RunSummary()
    column = config.issue_key_column

    for index, row in enumerate(all_rows):
        summary.row_count += 1
        issue_key = (row.get(column) or "").strip()
        if not issue_key:
            summary.skipped_count += 1
            logger.info(
                f"row#{summary.row_count}: skipped (empty {column}) issueIdOrKey=(none)",
                operation="row_skipped",
            )
            continue

        summary.processed_count += 1
        logger.info(f"[{summary.processed_count}/{total}] processing: {issue_key}")
        try:
            outcome = process_issue(
                issue_key,
                policy_for_row(row),
                config=config,
                client=client,
                directory=directory,
                logger=logger,
                sleep=sleep,
            )
        except Exception as exc:
            message = describe_error(exc)
            logger.log_error(f"issue {issue_key} failed:", error=message, issue_key=issue_key)
            outcome = IssueOutcome(issue_key, OutcomeStatus.FAILED, error=message)
        summary.record(outcome)

        if index < total - 1 and config.delay_ms > 0:
            sleep(config.delay_ms / 1000)

    return summary


def format_summary_line(summary: RunSummary) -> str:
    return (
        f"all issues processed (rows={summary.row_count}, "
        f"processed={summary.processed_count}, skipped={summary.skipped_count})"
    )


def preflight_target(
    command: str, config: RunConfig, directory: MilestoneDirectory, logger: StructuredLogger
) -> None:
    """Warn once up front when the target milestone does not resolve."""
    if command not in ("add", "delete") or config.target_milestone in directory:
        return
    if command == "add":
        logger.warning(
            f'target milestone "{config.target_milestone}" is not defined in the project; '
            "every issue will be left unchanged",
            operation="preflight",
        )
    else:
        logger.warning(
            f'target milestone "{config.target_milestone}" is not listed in the project; '
            "removing it by name from each issue",
            operation="preflight",
        )


def run_command(
    command: str,
    config: RunConfig,
    *,
    client: MilestoneClient,
    rows: Iterable[CsvRow],
    logger: StructuredLogger | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunSummary:
    """Resolve policy and directory, then run the batch.

    ConfigError and DirectoryFetchError propagate: both abort the run before
    any row is touched.
    """
    logger = logger or get_logger()
    policy_for_row = policy_factory(command, config)
    with logger.timed_operation("fetch_milestone_directory"):
        directory = client.fetch_milestone_directory()
    preflight_target(command, config, directory, logger)
    summary = run_batch(
        config,
        policy_for_row,
        client=client,
        directory=directory,
        rows=rows,
        logger=logger,
        sleep=sleep,
    )
    logger.info("")
    logger.info(format_summary_line(summary), operation="run_summary")
    return summary


def list_milestones(client: MilestoneClient, logger: StructuredLogger | None = None) -> MilestoneDirectory:
    logger = logger or get_logger()
    directory = client.fetch_milestone_directory()
    logger.info("milestones (id, name)")
    for milestone in directory.entries():
        logger.info(f"  {milestone.id}\t{milestone.name}")
    return directory


__all__ = [
    "BATCH_COMMANDS",
    "MilestoneClient",
    "format_summary_line",
    "list_milestones",
    "policy_factory",
    "preflight_target",
    "process_issue",
    "run_batch",
    "run_command",
]
