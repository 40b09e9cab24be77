"""Data models for analysis results.

Contains the dataclasses shared by every stage of the pipeline, with JSON
serialization helpers used by the result store:
    - Severity, DeltaType, BuildOutcome
    - Issue, IssueSet
    - BuildResult       (one per build and tool / aggregation id)
    - BuildRecord       (one per committed build of a job)
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Iterator


class Severity(str, Enum):
    ERROR = "ERROR"
    HIGH = "HIGH"
    NORMAL = "NORMAL"
    LOW = "LOW"

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """Return the severity named by *value*.

        Accepts the plain names as well as the ``WARNING_HIGH`` style used by
        CI server exports, case-insensitively. Raises ValueError otherwise.
        """
        name = str(value).strip().upper()
        if name.startswith("WARNING_"):
            name = name[len("WARNING_"):]
        try:
            return cls[name]
        except KeyError:
            raise ValueError(f"Unknown severity '{value}'") from None


class DeltaType(str, Enum):
    NEW = "NEW"
    FIXED = "FIXED"
    OUTSTANDING = "OUTSTANDING"
    ALL = "ALL"


class BuildOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    UNSTABLE = "UNSTABLE"
    FAILED = "FAILED"

    @property
    def rank(self) -> int:
        return _OUTCOME_RANK[self]

    @classmethod
    def worst(cls, outcomes: Iterable["BuildOutcome"]) -> "BuildOutcome":
        """Most severe outcome of *outcomes*, SUCCESS when empty."""
        return max(outcomes, key=lambda o: o.rank, default=cls.SUCCESS)


_OUTCOME_RANK = {
    BuildOutcome.SUCCESS: 0,
    BuildOutcome.UNSTABLE: 1,
    BuildOutcome.FAILED: 2,
}


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Issue:
    tool: str
    file: str
    line_start: int
    line_end: int
    category: str
    type: str
    severity: Severity
    message: str
    fingerprint: str = ""
    approximate: bool = False

    @property
    def key(self) -> tuple[str, str]:
        """Tool-qualified identity used inside one issue set."""
        return (self.tool, self.fingerprint)

    @property
    def degraded_key(self) -> tuple[str, str, int, str, str]:
        """Lesser-precision identity used when a fingerprint is approximate."""
        return (self.tool, self.file, self.line_start, self.category, self.type)

    def with_fingerprint(self, value: str, approximate: bool) -> "Issue":
        return replace(self, fingerprint=value, approximate=approximate)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "file": self.file,
            "line_start": self.line_start,
            "line_end": self.line_end,
            "category": self.category,
            "type": self.type,
            "severity": self.severity.value,
            "message": self.message,
            "fingerprint": self.fingerprint,
            "approximate": self.approximate,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Issue":
        return cls(
            tool=data["tool"],
            file=data["file"],
            line_start=int(data["line_start"]),
            line_end=int(data["line_end"]),
            category=data.get("category", ""),
            type=data.get("type", ""),
            severity=Severity.parse(data["severity"]),
            message=data.get("message", ""),
            fingerprint=data.get("fingerprint", ""),
            approximate=bool(data.get("approximate", False)),
        )


class IssueSet:
    """Insertion-ordered collection of issues, unique by ``Issue.key``."""

    def __init__(self, issues: Iterable[Issue] = ()) -> None:
        self._issues: dict[tuple[str, str], Issue] = {}
        for issue in issues:
            self.add(issue)

    def add(self, issue: Issue) -> bool:
        """Add *issue*; return False (and keep the first) on a duplicate key."""
        if issue.key in self._issues:
            return False
        self._issues[issue.key] = issue
        return True

    def __contains__(self, issue: object) -> bool:
        return isinstance(issue, Issue) and issue.key in self._issues

    def __iter__(self) -> Iterator[Issue]:
        return iter(self._issues.values())

    def __len__(self) -> int:
        return len(self._issues)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IssueSet):
            return NotImplemented
        return set(self._issues) == set(other._issues)

    def __repr__(self) -> str:
        return f"IssueSet({len(self)} issues)"

    def keys(self) -> set[tuple[str, str]]:
        return set(self._issues)

    def for_tool(self, tool: str) -> "IssueSet":
        return IssueSet(i for i in self if i.tool == tool)

    def count(self, severity: Severity | None = None) -> int:
        if severity is None:
            return len(self)
        return sum(1 for i in self if i.severity == severity)

    def to_list(self) -> list[dict[str, Any]]:
        return [i.to_dict() for i in self]

    @classmethod
    def from_list(cls, items: Iterable[dict[str, Any]]) -> "IssueSet":
        return cls(Issue.from_dict(d) for d in items)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class BuildResult:
    """Issues, delta and gate outcome of one tool or aggregation in a build."""

    id: str
    name: str
    tools: list[str]
    issues: IssueSet = field(default_factory=IssueSet)
    new: IssueSet = field(default_factory=IssueSet)
    fixed: IssueSet = field(default_factory=IssueSet)
    outstanding: IssueSet = field(default_factory=IssueSet)
    reference_build: int | None = None
    quality_gate: Any = None  # QualityGateResult, set by the gate evaluator
    messages: list[str] = field(default_factory=list)
    hidden: bool = False

    @property
    def total(self) -> int:
        return len(self.issues)

    @property
    def new_size(self) -> int:
        return len(self.new)

    @property
    def fixed_size(self) -> int:
        return len(self.fixed)

    @property
    def outstanding_size(self) -> int:
        return len(self.outstanding)

    def severity_counts(self) -> dict[str, int]:
        return {s.value: self.issues.count(s) for s in Severity}

    def issues_of(self, delta_type: DeltaType) -> IssueSet:
        if delta_type == DeltaType.NEW:
            return self.new
        if delta_type == DeltaType.FIXED:
            return self.fixed
        if delta_type == DeltaType.OUTSTANDING:
            return self.outstanding
        return self.issues

    def to_dict(self) -> dict[str, Any]:
        gate = self.quality_gate.to_dict() if self.quality_gate is not None else None
        # new and outstanding partition the issues, so only the labels are stored
        new_keys = self.new.keys()
        return {
            "id": self.id,
            "name": self.name,
            "tools": list(self.tools),
            "reference_build": self.reference_build,
            "issues": [
                {**i.to_dict(), "new": i.key in new_keys} for i in self.issues
            ],
            "fixed": self.fixed.to_list(),
            "quality_gate": gate,
            "messages": list(self.messages),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BuildResult":
        from warnings_gate.analysis.quality_gate import QualityGateResult

        issues, new, outstanding = IssueSet(), IssueSet(), IssueSet()
        for raw in data.get("issues", []):
            issue = Issue.from_dict(raw)
            issues.add(issue)
            (new if raw.get("new") else outstanding).add(issue)
        gate = data.get("quality_gate")
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            tools=list(data.get("tools", [])),
            issues=issues,
            new=new,
            fixed=IssueSet.from_list(data.get("fixed", [])),
            outstanding=outstanding,
            reference_build=data.get("reference_build"),
            quality_gate=QualityGateResult.from_dict(gate) if gate else None,
            messages=list(data.get("messages", [])),
        )


@dataclass
class BuildRecord:
    """All results committed for one build of a job."""

    job: str
    number: int
    results: dict[str, BuildResult] = field(default_factory=dict)
    hidden_summaries: int = 0

    @property
    def outcome(self) -> BuildOutcome:
        return BuildOutcome.worst(
            r.quality_gate.status for r in self.results.values() if r.quality_gate
        )

    @property
    def step_result(self) -> BuildOutcome:
        return BuildOutcome.worst(
            r.quality_gate.step_result for r in self.results.values() if r.quality_gate
        )

    @property
    def total(self) -> int:
        return sum(r.total for r in self.results.values())

    @property
    def messages(self) -> list[str]:
        return [line for r in self.results.values() for line in r.messages]

    def to_dict(self) -> dict[str, Any]:
        return {
            "job": self.job,
            "number": self.number,
            "hidden_summaries": self.hidden_summaries,
            "results": [r.to_dict() for r in self.results.values()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BuildRecord":
        results = [BuildResult.from_dict(r) for r in data.get("results", [])]
        return cls(
            job=data["job"],
            number=int(data["number"]),
            results={r.id: r for r in results},
            hidden_summaries=int(data.get("hidden_summaries", 0)),
        )
