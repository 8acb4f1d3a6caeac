"""Execution history analytics.

Pure functions over an ordered ``History`` (``Sequence[Result[ToolExecution]]``):
summaries, performance metrics, error analysis, filtered views and retry
candidates.  Nothing here mutates the history or performs I/O.  Empty and
all-failed histories produce zeroed metrics.
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple, Type

from agent_conductor.config.constants import DEFAULT_RETRY_MAX_ATTEMPTS
from agent_conductor.domain import Result, ResultError, ToolExecution, ToolPayload

from .retry_policy import DEFAULT_RETRY_POLICY, ErrorCategory, RetryPolicy

HistoryView = Sequence[Result[ToolExecution]]

UNKNOWN_TOOL = "unknown"


@dataclass(frozen=True)
class ExecutionSummary:
    total: int = 0
    successful: int = 0
    failed: int = 0
    total_duration_ms: float = 0.0
    average_duration_ms: float = 0.0
    success_rate: float = 0.0
    error_codes: Tuple[str, ...] = ()
    errors_by_category: Dict[ErrorCategory, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolMetrics:
    count: int
    average_ms: float
    total_ms: float


@dataclass(frozen=True)
class PerformanceMetrics:
    """Timing statistics over successful executions only."""
    count: int = 0
    average_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    median_ms: float = 0.0
    std_dev_ms: float = 0.0
    tool_breakdown: Dict[str, ToolMetrics] = field(default_factory=dict)


@dataclass(frozen=True)
class ErrorAnalysis:
    total_errors: int = 0
    errors_by_code: Dict[str, int] = field(default_factory=dict)
    errors_by_category: Dict[ErrorCategory, int] = field(default_factory=dict)
    retryable_errors: int = 0
    most_common_error: Optional[str] = None
    error_rate: float = 0.0


@dataclass(frozen=True)
class RetryCandidate:
    error: ResultError
    recommended_delay_s: float
    max_attempts: int

    @property
    def tool_name(self) -> str:
        return self.error.metadata.get("tool_name") or UNKNOWN_TOOL


# ---------------------------------------------------------------------------
# Filtered views
# ---------------------------------------------------------------------------

def successful(history: HistoryView) -> List[ToolExecution]:
    return [r.value for r in history if r.is_success]


def failures(history: HistoryView) -> List[ResultError]:
    return [r.error for r in history if r.is_failure]


def _tool_name_of(result: Result[ToolExecution]) -> Optional[str]:
    if result.is_success:
        return result.value.tool_name
    return result.error.metadata.get("tool_name")


def for_tool(history: HistoryView, tool_name: str) -> List[Result[ToolExecution]]:
    """Entries for ``tool_name`` (case-insensitive).  Failures match on their ``tool_name`` metadata."""
    wanted = tool_name.lower()
    return [r for r in history if (_tool_name_of(r) or "").lower() == wanted]


def for_session(history: HistoryView, session_id: str) -> List[Result[ToolExecution]]:
    out = []
    for r in history:
        sid = r.value.session_id if r.is_success else r.error.metadata.get("session_id")
        if sid == session_id:
            out.append(r)
    return out


def group_by_tool(history: HistoryView) -> Dict[str, List[Result[ToolExecution]]]:
    groups: Dict[str, List[Result[ToolExecution]]] = {}
    for r in history:
        groups.setdefault(_tool_name_of(r) or UNKNOWN_TOOL, []).append(r)
    return groups


def extract_payloads(
    history: HistoryView,
    kind: Optional[Type[ToolPayload]] = None,
) -> List[ToolPayload]:
    """Payloads of successful executions, optionally only those of type ``kind``."""
    out: List[ToolPayload] = []
    for execution in successful(history):
        payload = execution.payload
        if payload is None:
            continue
        if kind is None or isinstance(payload, kind):
            out.append(payload)
    return out


# ---------------------------------------------------------------------------
# Summaries and metrics
# ---------------------------------------------------------------------------

def _failure_duration(error: ResultError) -> float:
    try:
        return float(error.metadata.get("execution_duration_ms") or 0.0)
    except (TypeError, ValueError):
        return 0.0


def _count_categories(errors: Sequence[ResultError], policy: RetryPolicy) -> Dict[ErrorCategory, int]:
    counts: Dict[ErrorCategory, int] = {}
    for e in errors:
        cat = policy.category_of(e.code)
        counts[cat] = counts.get(cat, 0) + 1
    return counts


def summarize(history: HistoryView, policy: RetryPolicy = DEFAULT_RETRY_POLICY) -> ExecutionSummary:
    total = len(history)
    if total == 0:
        return ExecutionSummary()
    ok = successful(history)
    errs = failures(history)
    total_duration = sum(e.duration_ms for e in ok) + sum(_failure_duration(e) for e in errs)
    return ExecutionSummary(
        total=total,
        successful=len(ok),
        failed=len(errs),
        total_duration_ms=total_duration,
        average_duration_ms=total_duration / total,
        success_rate=len(ok) / total,
        error_codes=tuple(dict.fromkeys(e.code for e in errs)),
        errors_by_category=_count_categories(errs, policy),
    )


def _completed_at(result: Result[ToolExecution]) -> datetime:
    return result.value.completed_at if result.is_success else result.error.timestamp


def performance_metrics(history: HistoryView, since: Optional[datetime] = None) -> PerformanceMetrics:
    """Timing statistics over successful executions.

    With ``since``, only entries completed (or failed) at or after that instant count.
    Standard deviation is the sample (n-1) deviation; 0 for fewer than two samples.
    """
    if since is not None:
        history = [r for r in history if _completed_at(r) >= since]
    ok = successful(history)
    if not ok:
        return PerformanceMetrics()
    durations = [e.duration_ms for e in ok]
    lo, hi = min(durations), max(durations)

    per_tool: Dict[str, List[float]] = {}
    for e in ok:
        per_tool.setdefault(e.tool_name, []).append(e.duration_ms)

    return PerformanceMetrics(
        count=len(durations),
        # Float rounding can push the mean of equal samples just past them.
        average_ms=min(max(statistics.fmean(durations), lo), hi),
        min_ms=lo,
        max_ms=hi,
        median_ms=float(statistics.median(durations)),
        std_dev_ms=statistics.stdev(durations) if len(durations) > 1 else 0.0,
        tool_breakdown={
            name: ToolMetrics(count=len(ds), average_ms=sum(ds) / len(ds), total_ms=sum(ds))
            for name, ds in per_tool.items()
        },
    )


def analyze_errors(history: HistoryView, policy: RetryPolicy = DEFAULT_RETRY_POLICY) -> ErrorAnalysis:
    errs = failures(history)
    if not errs:
        return ErrorAnalysis()
    by_code: Dict[str, int] = {}
    for e in errs:
        by_code[e.code] = by_code.get(e.code, 0) + 1
    # max() keeps the first maximal key, and dicts preserve first-seen order.
    most_common = max(by_code, key=lambda code: by_code[code])
    return ErrorAnalysis(
        total_errors=len(errs),
        errors_by_code=by_code,
        errors_by_category=_count_categories(errs, policy),
        retryable_errors=sum(1 for e in errs if policy.is_retryable(e.code)),
        most_common_error=most_common,
        error_rate=len(errs) / len(history),
    )


# ---------------------------------------------------------------------------
# Retry views
# ---------------------------------------------------------------------------

def retryable_failures(history: HistoryView, policy: RetryPolicy = DEFAULT_RETRY_POLICY) -> List[ResultError]:
    return [e for e in failures(history) if policy.is_retryable(e.code)]


def has_retryable_failures(history: HistoryView, policy: RetryPolicy = DEFAULT_RETRY_POLICY) -> bool:
    return any(r.is_failure and policy.is_retryable(r.error.code) for r in history)


def retry_candidates(
    history: HistoryView,
    max_attempts: int = DEFAULT_RETRY_MAX_ATTEMPTS,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
) -> List[RetryCandidate]:
    return [
        RetryCandidate(
            error=e,
            recommended_delay_s=policy.retry_delay(e.code, 1),
            max_attempts=max_attempts,
        )
        for e in retryable_failures(history, policy)
    ]
