"""Evaluation of one build of a job.

Usage:
    record = record_build(store, "my-job", job_config.analyses,
                          {"checkstyle": checkstyle_issues, "pmd": pmd_issues})
    record.step_result   # BuildOutcome for the enclosing build step
    record.messages      # console lines

Every configured analysis runs filter -> classify -> aggregate -> gate on the
build's issues. The job's lock is held from the reference lookup until the
build is committed, so two builds of one job never compare against each
other's uncommitted results.
"""

from typing import Iterable

from warnings_gate.analysis.aggregation import AggregationGroup, aggregate
from warnings_gate.analysis.delta import Delta, classify
from warnings_gate.analysis.filters import apply_filters
from warnings_gate.analysis.quality_gate import evaluate
from warnings_gate.config import AnalysisConfig
from warnings_gate.models import BuildRecord, BuildResult, Issue, IssueSet
from warnings_gate.sources import TOOL_NAMES
from warnings_gate.store import ResultStore


def record_build(
    store: ResultStore,
    job: str,
    analyses: list[AnalysisConfig],
    reports: dict[str, IssueSet | Iterable[Issue]],
    *,
    build_number: int | None = None,
    reference_build: int | None = None,
    tool_names: dict[str, str] | None = None,
) -> BuildRecord:
    """Compute and commit the results of a build; return the committed record.

    *reports* maps tool ids to their normalized issues. Tools configured in
    an analysis but absent from *reports* are skipped.
    """
    names = {**TOOL_NAMES, **(tool_names or {})}
    issue_sets = {
        tool: issues if isinstance(issues, IssueSet) else IssueSet(issues)
        for tool, issues in reports.items()
    }

    with store.lock(job):
        number = build_number if build_number is not None else store.next_build_number(job)
        reference = store.reference_for(job, reference_build)
        notes: list[str] = []
        if reference_build is not None and reference is None:
            notes.append(f"Reference build #{reference_build} not found")

        record = BuildRecord(job=job, number=number)
        for analysis in analyses:
            for result in _run_analysis(analysis, issue_sets, reference, names, notes,
                                        record):
                record.results[result.id] = result

        store.commit(record)
    return record


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _run_analysis(analysis: AnalysisConfig, reports: dict[str, IssueSet],
                  reference: BuildRecord | None, names: dict[str, str],
                  notes: list[str], record: BuildRecord) -> list[BuildResult]:
    per_tool: dict[str, BuildResult] = {}
    for tool in analysis.tools:
        if tool in reports:
            per_tool[tool] = _tool_result(tool, names.get(tool, tool), reports[tool],
                                          analysis, reference, notes)

    group = AggregationGroup(
        tools=analysis.tools,
        enabled=analysis.aggregate,
        id=analysis.id,
        name=analysis.name,
    )
    outcome = aggregate(per_tool, group)
    record.hidden_summaries += outcome.not_displayed

    for result in outcome.results:
        gate = evaluate(result, analysis.quality_gates, analysis.ignore_quality_gate)
        result.quality_gate = gate
        result.messages.extend(f"[{result.name}] {line}" for line in gate.messages)
    return outcome.results


def _tool_result(tool: str, name: str, issues: IssueSet, analysis: AnalysisConfig,
                 reference: BuildRecord | None, notes: list[str]) -> BuildResult:
    filtered = apply_filters(issues, analysis.filters)
    delta = classify(filtered.kept, _reference_issues(reference, tool))
    if reference is None:
        # the first build is the baseline: nothing is new relative to it
        delta = Delta(outstanding=delta.new)

    result = BuildResult(
        id=tool,
        name=name,
        tools=[tool],
        issues=filtered.kept,
        new=delta.new,
        fixed=delta.fixed,
        outstanding=delta.outstanding,
        reference_build=reference.number if reference is not None else None,
    )
    result.messages.extend(f"[{name}] {note}" for note in notes)
    result.messages.append(f"[{name}] {filtered.summary}")
    if reference is None:
        result.messages.append(f"[{name}] No reference build found - using this build as baseline")
    else:
        result.messages.append(f"[{name}] Reference build: #{reference.number}")
    result.messages.append(
        f"[{name}] {len(delta.new)} new, {len(delta.fixed)} fixed, "
        f"{len(delta.outstanding)} outstanding issues"
    )
    return result


def _reference_issues(reference: BuildRecord | None, tool: str) -> IssueSet | None:
    """Issues *tool* reported in the reference build, wherever they were stored."""
    if reference is None:
        return None
    if tool in reference.results:
        return reference.results[tool].issues
    for result in reference.results.values():
        if tool in result.tools:
            return result.issues.for_tool(tool)
    return IssueSet()
