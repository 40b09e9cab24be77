"""Report generators for committed builds.

Functions:
    build_summary(result)                          -> dict
    build_record_summary(record)                   -> dict
    issues_count(record, tool=None, delta_type)    -> int
    history_summary(records)                       -> dict
"""

from collections import Counter
from datetime import datetime, timezone
from pathlib import PurePosixPath

from warnings_gate.models import BuildRecord, BuildResult, DeltaType, IssueSet, Severity
from warnings_gate.sources import TOOL_NAMES


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def build_summary(result: BuildResult, tool_names: dict[str, str] | None = None) -> dict:
    """Summary of one result: title, counts, gate status and breakdowns."""
    names = {**TOOL_NAMES, **(tool_names or {})}
    gate = result.quality_gate
    return {
        "report_type":     "analysis_result",
        "id":              result.id,
        "name":            result.name,
        "title":           title(result),
        "aggregation":     ", ".join(names.get(t, t) for t in result.tools),
        "reference_build": result.reference_build or 0,
        "total":           result.total,
        "new":             result.new_size,
        "fixed":           result.fixed_size,
        "outstanding":     result.outstanding_size,
        "quality_gate":    gate.to_dict() if gate is not None else None,
        **_breakdowns(result.issues),
    }


def build_record_summary(record: BuildRecord, tool_names: dict[str, str] | None = None) -> dict:
    return {
        "report_type":      "analysis_build",
        "job":              record.job,
        "build":            record.number,
        "generated_at":     datetime.now(timezone.utc).isoformat(),
        "outcome":          record.outcome.value,
        "step_result":      record.step_result.value,
        "total":            record.total,
        "new":              issues_count(record, delta_type=DeltaType.NEW),
        "fixed":            issues_count(record, delta_type=DeltaType.FIXED),
        "not_displayed":    record.hidden_summaries,
        "results":          [build_summary(r, tool_names) for r in record.results.values()],
    }


def issues_count(record: BuildRecord, tool: str | None = None,
                 delta_type: DeltaType | str = DeltaType.ALL) -> int:
    """Number of issues of *delta_type*, for one tool or the whole build.

    A tool that was rolled into an aggregate is counted from its share of
    the aggregated result. Unknown tools count zero.
    """
    delta_type = DeltaType(str(getattr(delta_type, "value", delta_type)).upper())
    results = record.results.values()
    if tool is None:
        return sum(len(r.issues_of(delta_type)) for r in results)

    if tool in record.results:
        return len(record.results[tool].issues_of(delta_type))
    for result in results:
        if tool in result.tools:
            return len(result.issues_of(delta_type).for_tool(tool))
    return 0


def history_summary(records: list[BuildRecord]) -> dict:
    return {
        "report_type": "analysis_history",
        "builds": [
            {
                "build":       r.number,
                "total":       r.total,
                "new":         issues_count(r, delta_type=DeltaType.NEW),
                "fixed":       issues_count(r, delta_type=DeltaType.FIXED),
                "outcome":     r.outcome.value,
            }
            for r in records
        ],
    }


def title(result: BuildResult) -> str:
    """Summary title, e.g. ``Static Analysis: 25 warnings``."""
    if result.total == 0:
        count = "No warnings"
    elif result.total == 1:
        count = "One warning"
    else:
        count = f"{result.total} warnings"
    return f"{result.name}: {count}"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _breakdowns(issues: IssueSet) -> dict:
    by_severity = {s.value: 0 for s in Severity}
    by_severity.update(Counter(i.severity.value for i in issues))
    return {
        "by_severity": by_severity,
        "by_category": dict(Counter(i.category for i in issues)),
        "by_type":     dict(Counter(i.type for i in issues)),
        "by_file":     dict(Counter(i.file for i in issues)),
        "by_package":  dict(Counter(_package(i.file) for i in issues)),
    }


def _package(path: str) -> str:
    parent = str(PurePosixPath(path.replace("\\", "/")).parent)
    return "-" if parent == "." else parent
