"""Failure classification and per-action failure records."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from taskengine.graph.state import ExecutionStep, FailureRecord, FailureStrategy, WorkflowState

LOGGER = logging.getLogger("taskengine.failure")

RETRY_LIMIT = 2

_SIZE_FORMAT = re.compile(
    r"\b280\b|character|too long|too large|exceeds? (the )?(max(imum)? )?(length|size|\d+)"
    r"|length|\bformat\b|malformed",
    re.IGNORECASE,
)
_AUTHORIZATION = re.compile(
    r"unauthori[sz]ed|permission|forbidden|\b401\b|\b403\b|access denied"
    r"|\bauth(entication|orization)?\b|credential",
    re.IGNORECASE,
)
_TRANSIENT = re.compile(
    r"\b5\d\d\b|timeout|timed out|network|connection reset|\b429\b|rate limit"
    r"|unavailable|bad gateway",
    re.IGNORECASE,
)


def classify_failure(error_text: str, attempt_count: int) -> FailureStrategy:
    """Map an error message and attempt count to a recovery strategy.

    Rules apply in order; the first match wins.
    """
    text = error_text or ""
    if _SIZE_FORMAT.search(text):
        return FailureStrategy.ALTERNATIVE
    if _AUTHORIZATION.search(text):
        return FailureStrategy.MANUAL_INTERVENTION
    if _TRANSIENT.search(text):
        return FailureStrategy.RETRY if attempt_count < RETRY_LIMIT else FailureStrategy.SKIP
    return FailureStrategy.RETRY if attempt_count < RETRY_LIMIT else FailureStrategy.ALTERNATIVE


def record_failure(state: WorkflowState, step: ExecutionStep, max_retries: int = RETRY_LIMIT) -> FailureRecord:
    """Create or update the failure record for the step's action."""
    error_text = step.error or "Unknown error"
    record = state.failure_for(step.action)

    if record is None:
        record = FailureRecord(
            action=step.action,
            last_error=error_text,
            first_step_number=step.step_number,
            max_retries=max_retries,
        )
        state.failures.append(record)
    else:
        record.attempt_count += 1
        record.last_error = error_text
        record.last_attempt_at = datetime.now(timezone.utc)

    record.strategy = classify_failure(error_text, record.attempt_count)
    LOGGER.info(
        f"Failure recorded for '{step.action}' (attempt {record.attempt_count}): "
        f"strategy={record.strategy.value}"
    )
    return record
