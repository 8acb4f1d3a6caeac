"""Tests for execution history analytics."""
from __future__ import annotations

from datetime import timedelta

import pytest

from agent_conductor.application import history_analytics as ha
from agent_conductor.application.retry_policy import ErrorCategory
from agent_conductor.domain import (
    BinaryPayload,
    DocumentPayload,
    TextPayload,
    ToolCall,
    ToolErrorCodes,
    ToolExecution,
    utc_now,
)


def _ok(tool: str, ms: float, payload=None, session: str = "s1"):
    return ToolExecution.success(ToolCall(tool, session_id=session), payload or f"{tool} out", duration_ms=ms)


def _fail(tool: str, code: str, ms: float = 0.0, session: str = "s1"):
    return ToolExecution.failure(ToolCall(tool, session_id=session), code, f"{tool} failed", duration_ms=ms)


@pytest.fixture
def history():
    return [
        _ok("grep", 10.0),
        _fail("fetch", ToolErrorCodes.NETWORK_ERROR, ms=4.0),
        _ok("grep", 30.0, payload={"matches": 2}),
        _fail("fetch", ToolErrorCodes.NETWORK_ERROR, ms=6.0, session="s2"),
        _ok("Read_File", 20.0, payload=b"\x89PNG"),
        _fail("rm", ToolErrorCodes.ACCESS_DENIED),
    ]


def test_empty_history_yields_zeroed_metrics():
    assert ha.summarize([]) == ha.ExecutionSummary()
    assert ha.performance_metrics([]) == ha.PerformanceMetrics()
    assert ha.analyze_errors([]) == ha.ErrorAnalysis()
    assert ha.retry_candidates([]) == []


def test_all_failed_history_has_zero_performance():
    metrics = ha.performance_metrics([_fail("fetch", ToolErrorCodes.EXECUTION_FAILED, ms=50.0)])
    assert metrics.count == 0
    assert metrics.average_ms == 0.0


@pytest.mark.parametrize("durations", [
    [5.0],
    [3.0, 1.0, 2.0],
    [10.0, 40.0, 20.0, 30.0],
    [0.1, 0.1, 0.1],
    [7.0, 7.0, 1.0, 7.0, 250.0],
    [0.0, 1e-9, 1e9],
])
def test_performance_metrics_stay_within_observed_bounds(durations):
    metrics = ha.performance_metrics([_ok(f"t{i}", ms) for i, ms in enumerate(durations)])
    assert metrics.count == len(durations)
    assert metrics.min_ms == min(durations)
    assert metrics.max_ms == max(durations)
    assert metrics.min_ms <= metrics.median_ms <= metrics.max_ms
    assert metrics.min_ms <= metrics.average_ms <= metrics.max_ms
    assert metrics.std_dev_ms >= 0.0


def test_summarize(history):
    summary = ha.summarize(history)
    assert summary.total == 6
    assert summary.successful == 3
    assert summary.failed == 3
    assert summary.total_duration_ms == pytest.approx(70.0)
    assert summary.average_duration_ms == pytest.approx(70.0 / 6)
    assert summary.success_rate == pytest.approx(0.5)
    assert summary.error_codes == (ToolErrorCodes.NETWORK_ERROR, ToolErrorCodes.ACCESS_DENIED)
    assert summary.errors_by_category == {ErrorCategory.NETWORK: 2, ErrorCategory.SECURITY: 1}


def test_performance_metrics(history):
    metrics = ha.performance_metrics(history)
    assert metrics.count == 3
    assert metrics.average_ms == pytest.approx(20.0)
    assert metrics.min_ms == 10.0
    assert metrics.max_ms == 30.0
    assert metrics.median_ms == 20.0
    assert metrics.std_dev_ms == pytest.approx(10.0)
    grep = metrics.tool_breakdown["grep"]
    assert (grep.count, grep.average_ms, grep.total_ms) == (2, 20.0, 40.0)


def test_performance_metrics_single_sample_has_zero_std_dev():
    assert ha.performance_metrics([_ok("grep", 7.0)]).std_dev_ms == 0.0


def test_performance_metrics_since_filters_old_entries(history):
    assert ha.performance_metrics(history, since=utc_now() + timedelta(hours=1)).count == 0
    assert ha.performance_metrics(history, since=utc_now() - timedelta(hours=1)).count == 3


def test_analyze_errors(history):
    analysis = ha.analyze_errors(history)
    assert analysis.total_errors == 3
    assert analysis.errors_by_code == {ToolErrorCodes.NETWORK_ERROR: 2, ToolErrorCodes.ACCESS_DENIED: 1}
    assert analysis.retryable_errors == 2
    assert analysis.most_common_error == ToolErrorCodes.NETWORK_ERROR
    assert analysis.error_rate == pytest.approx(0.5)


def test_most_common_error_tie_keeps_first_seen():
    errors = [_fail("a", ToolErrorCodes.ACCESS_DENIED), _fail("b", ToolErrorCodes.TOOL_NOT_FOUND)]
    assert ha.analyze_errors(errors).most_common_error == ToolErrorCodes.ACCESS_DENIED


def test_filtered_views(history):
    assert len(ha.successful(history)) == 3
    assert [e.code for e in ha.failures(history)][-1] == ToolErrorCodes.ACCESS_DENIED
    assert len(ha.for_tool(history, "GREP")) == 2
    assert len(ha.for_tool(history, "read_file")) == 1
    assert len(ha.for_tool(history, "fetch")) == 2
    assert len(ha.for_session(history, "s2")) == 1
    groups = ha.group_by_tool(history)
    assert list(groups) == ["grep", "fetch", "Read_File", "rm"]


def test_extract_payloads(history):
    assert len(ha.extract_payloads(history)) == 3
    assert ha.extract_payloads(history, DocumentPayload) == [DocumentPayload({"matches": 2})]
    assert ha.extract_payloads(history, BinaryPayload) == [BinaryPayload(b"\x89PNG")]
    assert ha.extract_payloads(history, TextPayload) == [TextPayload("grep out")]


def test_retry_views(history):
    assert ha.has_retryable_failures(history)
    assert not ha.has_retryable_failures([_fail("rm", ToolErrorCodes.ACCESS_DENIED)])
    assert len(ha.retryable_failures(history)) == 2

    candidates = ha.retry_candidates(history, max_attempts=5)
    assert [c.tool_name for c in candidates] == ["fetch", "fetch"]
    assert all(c.recommended_delay_s == 1.5 for c in candidates)
    assert all(c.max_attempts == 5 for c in candidates)
