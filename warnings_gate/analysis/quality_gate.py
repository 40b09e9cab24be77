"""Quality gate evaluation.

Usage:
    rules  = [QualityGateRule.parse("TOTAL", 4, "UNSTABLE"),
              QualityGateRule.parse("NEW_HIGH", 1, "FAILED")]
    result = evaluate(build_result, rules)
    result.status       # BuildOutcome.UNSTABLE
    result.messages     # console lines, one per rule plus the overall line

A rule fires when its metric meets or exceeds the threshold. The overall
status is the most severe fired result, whatever the order of the rules.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from warnings_gate.models import BuildOutcome, BuildResult, Severity


class GateMetric(str, Enum):
    TOTAL = "TOTAL"
    NEW = "NEW"


@dataclass(frozen=True)
class QualityGateRule:
    threshold: int
    metric: GateMetric = GateMetric.TOTAL
    result: BuildOutcome = BuildOutcome.UNSTABLE
    severity: Severity | None = None

    def __post_init__(self) -> None:
        if isinstance(self.threshold, bool) or not isinstance(self.threshold, int):
            raise ValueError(f"Quality gate threshold must be an integer, got {self.threshold!r}")
        if self.threshold < 0:
            raise ValueError(f"Quality gate threshold must not be negative, got {self.threshold}")
        if self.result == BuildOutcome.SUCCESS:
            raise ValueError("Quality gate result must be UNSTABLE or FAILED")

    @classmethod
    def parse(cls, type_: str, threshold: Any, result: str = "UNSTABLE") -> "QualityGateRule":
        """Build a rule from config strings such as ``"NEW_HIGH"`` and ``"FAILED"``."""
        metric_name, _, severity_name = str(type_).strip().upper().partition("_")
        try:
            metric = GateMetric(metric_name)
        except ValueError:
            raise ValueError(f"Unknown quality gate type '{type_}'") from None
        severity = Severity.parse(severity_name) if severity_name else None
        try:
            outcome = BuildOutcome(str(result).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown quality gate result '{result}'") from None
        if isinstance(threshold, str) and threshold.strip().lstrip("-").isdigit():
            threshold = int(threshold)
        return cls(threshold=threshold, metric=metric, result=outcome, severity=severity)

    @property
    def label(self) -> str:
        scope = f"severity {self.severity.value}" if self.severity else "any severity"
        return f"{self.metric.value.capitalize()} ({scope})"

    def actual(self, result: BuildResult) -> int:
        issues = result.new if self.metric == GateMetric.NEW else result.issues
        return issues.count(self.severity)


@dataclass
class RuleEvaluation:
    rule: QualityGateRule
    actual: int

    @property
    def fired(self) -> bool:
        return self.actual >= self.rule.threshold

    @property
    def status(self) -> str:
        return self.rule.result.value if self.fired else "PASSED"

    def __str__(self) -> str:
        return (f"-> {self.status} - {self.rule.label}: {self.actual} "
                f"- Quality Gate: {self.rule.threshold}")


@dataclass
class QualityGateResult:
    status: BuildOutcome = BuildOutcome.SUCCESS
    ignored: bool = False
    messages: list[str] = field(default_factory=list)

    @property
    def step_result(self) -> BuildOutcome:
        """Outcome handed to the enclosing build step."""
        return BuildOutcome.SUCCESS if self.ignored else self.status

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "ignored": self.ignored,
            "step_result": self.step_result.value,
            "messages": list(self.messages),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QualityGateResult":
        return cls(
            status=BuildOutcome(data.get("status", "SUCCESS")),
            ignored=bool(data.get("ignored", False)),
            messages=list(data.get("messages", [])),
        )


def evaluate(result: BuildResult, rules: list[QualityGateRule],
             ignore_quality_gate: bool = False) -> QualityGateResult:
    if not rules:
        return QualityGateResult(
            ignored=ignore_quality_gate,
            messages=["No quality gates have been set - skipping"],
        )

    evaluations = [RuleEvaluation(rule, rule.actual(result)) for rule in rules]
    status = BuildOutcome.worst(e.rule.result for e in evaluations if e.fired)

    messages = [str(e) for e in evaluations]
    if status == BuildOutcome.SUCCESS:
        messages.append("-> All quality gates have been passed")
    else:
        messages.append(
            f"-> Some quality gates have been missed: overall result is {status.value}"
        )
    if ignore_quality_gate:
        messages.append("-> Quality gate result is ignored for the build step")

    return QualityGateResult(status=status, ignored=ignore_quality_gate, messages=messages)
