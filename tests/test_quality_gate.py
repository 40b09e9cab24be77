"""Tests for warnings_gate/analysis/quality_gate.py"""

import pytest

from warnings_gate.analysis.quality_gate import (
    GateMetric,
    QualityGateResult,
    QualityGateRule,
    evaluate,
)
from warnings_gate.models import BuildOutcome, BuildResult, Issue, IssueSet, Severity


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _issue(fp, severity=Severity.NORMAL) -> Issue:
    return Issue(
        tool="pmd", file="src/Main.java", line_start=1, line_end=1,
        category="Design", type="GodClass", severity=severity,
        message="msg", fingerprint=fp,
    )


def _result(total=4, new=0, new_severity=Severity.NORMAL) -> BuildResult:
    new_issues = [_issue(f"n{i}", new_severity) for i in range(new)]
    old_issues = [_issue(f"o{i}") for i in range(total - new)]
    return BuildResult(
        id="analysis", name="Static Analysis", tools=["pmd"],
        issues=IssueSet(new_issues + old_issues),
        new=IssueSet(new_issues), outstanding=IssueSet(old_issues),
    )


# ---------------------------------------------------------------------------
# QualityGateRule
# ---------------------------------------------------------------------------

def test_parse_scoped_type():
    rule = QualityGateRule.parse("NEW_HIGH", 2, "failed")
    assert rule.metric == GateMetric.NEW
    assert rule.severity == Severity.HIGH
    assert rule.result == BuildOutcome.FAILED
    assert rule.label == "New (severity HIGH)"


def test_parse_accepts_numeric_string_threshold():
    assert QualityGateRule.parse("TOTAL", "7").threshold == 7


@pytest.mark.parametrize("args, message", [
    (("TOTAL", -1, "UNSTABLE"), "must not be negative"),
    (("TOTAL", 1.5, "UNSTABLE"), "must be an integer"),
    (("DELTA", 1, "UNSTABLE"), "Unknown quality gate type"),
    (("TOTAL", 1, "BROKEN"), "Unknown quality gate result"),
    (("TOTAL", 1, "SUCCESS"), "UNSTABLE or FAILED"),
    (("TOTAL_URGENT", 1, "FAILED"), "Unknown severity"),
])
def test_invalid_rules_raise(args, message):
    with pytest.raises(ValueError, match=message):
        QualityGateRule.parse(*args)


# ---------------------------------------------------------------------------
# evaluate
# ---------------------------------------------------------------------------

def test_threshold_is_inclusive():
    gate = evaluate(_result(total=4), [QualityGateRule.parse("TOTAL", 4, "UNSTABLE")])
    assert gate.status == BuildOutcome.UNSTABLE
    assert gate.messages[0] == "-> UNSTABLE - Total (any severity): 4 - Quality Gate: 4"
    assert gate.messages[-1] == "-> Some quality gates have been missed: overall result is UNSTABLE"


def test_below_threshold_passes():
    gate = evaluate(_result(total=3), [QualityGateRule.parse("TOTAL", 4, "UNSTABLE")])
    assert gate.status == BuildOutcome.SUCCESS
    assert gate.messages == [
        "-> PASSED - Total (any severity): 3 - Quality Gate: 4",
        "-> All quality gates have been passed",
    ]


def test_new_metric_uses_new_issues():
    rules = [QualityGateRule.parse("NEW", 3, "FAILED")]
    assert evaluate(_result(total=10, new=2), rules).status == BuildOutcome.SUCCESS
    assert evaluate(_result(total=10, new=3), rules).status == BuildOutcome.FAILED


def test_severity_scope():
    rules = [QualityGateRule.parse("NEW_HIGH", 1, "FAILED")]
    assert evaluate(_result(total=5, new=5), rules).status == BuildOutcome.SUCCESS
    assert evaluate(_result(total=5, new=1, new_severity=Severity.HIGH),
                    rules).status == BuildOutcome.FAILED


@pytest.mark.parametrize("order", [0, 1])
def test_failed_wins_regardless_of_order(order):
    rules = [
        QualityGateRule.parse("TOTAL", 1, "UNSTABLE"),
        QualityGateRule.parse("TOTAL", 2, "FAILED"),
    ]
    if order:
        rules.reverse()
    assert evaluate(_result(total=5), rules).status == BuildOutcome.FAILED


def test_no_rules_succeeds():
    gate = evaluate(_result(total=100), [])
    assert gate.status == BuildOutcome.SUCCESS
    assert gate.messages == ["No quality gates have been set - skipping"]


def test_zero_threshold_always_fires():
    gate = evaluate(_result(total=0), [QualityGateRule.parse("TOTAL", 0, "UNSTABLE")])
    assert gate.status == BuildOutcome.UNSTABLE


# ---------------------------------------------------------------------------
# ignore_quality_gate
# ---------------------------------------------------------------------------

def test_ignored_gate_keeps_status_but_not_step_result():
    rules = [QualityGateRule.parse("TOTAL", 1, "FAILED")]
    gate = evaluate(_result(total=4), rules, ignore_quality_gate=True)

    assert gate.status == BuildOutcome.FAILED
    assert gate.step_result == BuildOutcome.SUCCESS
    assert gate.messages[-1] == "-> Quality gate result is ignored for the build step"


def test_step_result_follows_status_when_not_ignored():
    gate = evaluate(_result(total=4), [QualityGateRule.parse("TOTAL", 1, "FAILED")])
    assert gate.step_result == BuildOutcome.FAILED


def test_result_dict_form():
    gate = QualityGateResult(status=BuildOutcome.UNSTABLE, ignored=True, messages=["x"])
    restored = QualityGateResult.from_dict(gate.to_dict())
    assert restored == gate
    assert gate.to_dict()["step_result"] == "SUCCESS"
