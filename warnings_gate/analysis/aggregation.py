"""Combination of per-tool results into one aggregated result."""

from dataclasses import dataclass, field

from warnings_gate.models import BuildResult, IssueSet

DEFAULT_GROUP_ID = "analysis"
DEFAULT_GROUP_NAME = "Static Analysis"


@dataclass
class AggregationGroup:
    tools: list[str]
    enabled: bool = False
    id: str = DEFAULT_GROUP_ID
    name: str = DEFAULT_GROUP_NAME


@dataclass
class AggregationOutcome:
    results: list[BuildResult]
    hidden: list[BuildResult] = field(default_factory=list)

    @property
    def not_displayed(self) -> int:
        return len(self.hidden)


def aggregate(per_tool: dict[str, BuildResult], group: AggregationGroup) -> AggregationOutcome:
    """Merge the results of *group*'s tools when aggregation is enabled.

    Tools without a result are skipped. Issue keys stay tool-qualified, so the
    same defect reported by two tools is counted twice. Per-tool results
    rolled into the aggregate are returned as hidden.
    """
    present = [per_tool[t] for t in group.tools if t in per_tool]
    if not group.enabled:
        return AggregationOutcome(results=present)

    combined = BuildResult(
        id=group.id,
        name=group.name,
        tools=[r.id for r in present],
        reference_build=_reference_build(present),
    )
    for result in present:
        _union(combined.issues, result.issues)
        _union(combined.new, result.new)
        _union(combined.fixed, result.fixed)
        _union(combined.outstanding, result.outstanding)
        combined.messages.extend(result.messages)
        result.hidden = True

    return AggregationOutcome(results=[combined], hidden=present)


def _union(target: IssueSet, source: IssueSet) -> None:
    for issue in source:
        target.add(issue)


def _reference_build(results: list[BuildResult]) -> int | None:
    references = [r.reference_build for r in results if r.reference_build is not None]
    return max(references, default=None)
