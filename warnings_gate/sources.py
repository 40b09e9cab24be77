"""Normalized issue report sources.

Each tool's report reaches the engine through a ``NormalizedIssueSource``:
a local JSON file (``JsonReportSource``) or a CI server endpoint
(``RemoteReportSource``). ``load_report`` turns the raw records of a source
into a fingerprinted ``IssueSet``, dropping malformed records with a warning.

Accepted record keys (snake case or CI server camel case):
    file / fileName, line / lineStart, line_end / lineEnd,
    category, type, severity, message
"""

import json
import warnings
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from warnings_gate.analysis.fingerprint import SourceContext, assign_fingerprints
from warnings_gate.client import ReportClient
from warnings_gate.models import Issue, IssueSet, Severity

#: Built-in tool ids and their display names; config may add more
TOOL_NAMES: dict[str, str] = {
    "checkstyle": "CheckStyle",
    "pmd":        "PMD",
    "findbugs":   "FindBugs",
    "spotbugs":   "SpotBugs",
    "cpd":        "CPD",
    "pep8":       "Pep8",
    "pylint":     "Pylint",
    "maven":      "Maven",
    "java":       "Java Compiler",
}


class ReportError(Exception):
    """Raised when a report file cannot be read at all."""


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

class NormalizedIssueSource(ABC):
    """Supplies the raw, already normalized issue records of one tool."""

    def __init__(self, tool: str) -> None:
        self.tool = tool

    @abstractmethod
    def records(self) -> list[dict[str, Any]]:
        ...


class JsonReportSource(NormalizedIssueSource):

    def __init__(self, tool: str, path: str | Path) -> None:
        super().__init__(tool)
        self.path = Path(path)

    def records(self) -> list[dict[str, Any]]:
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except OSError as exc:
            raise ReportError(f"Cannot read report '{self.path}': {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ReportError(f"Failed to parse report '{self.path}': {exc}") from exc

        if isinstance(data, dict):
            data = data.get("issues", [])
        if not isinstance(data, list):
            raise ReportError(f"'{self.path}' must hold a list of issues")
        return data


class RemoteReportSource(NormalizedIssueSource):

    def __init__(self, tool: str, client: ReportClient, endpoint: str) -> None:
        super().__init__(tool)
        self.client = client
        self.endpoint = endpoint

    def records(self) -> list[dict[str, Any]]:
        return self.client.get_issues(self.endpoint)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

@dataclass
class LoadedReport:
    tool: str
    issues: IssueSet
    dropped: int = 0
    duplicates: int = 0
    messages: list[str] = field(default_factory=list)


def load_report(source: NormalizedIssueSource,
                context: SourceContext | None = None) -> LoadedReport:
    """Read *source* and return its fingerprinted issues."""
    return normalize_records(source.tool, source.records(), context)


def normalize_records(tool: str, records: list[Any],
                      context: SourceContext | None = None) -> LoadedReport:
    parsed: list[Issue] = []
    messages: list[str] = []
    for index, raw in enumerate(records):
        try:
            parsed.append(_to_issue(tool, raw))
        except (KeyError, TypeError, ValueError) as exc:
            text = f"Skipping malformed {tool} record #{index}: {exc}"
            warnings.warn(text, UserWarning, stacklevel=2)
            messages.append(text)

    issues = IssueSet()
    seen: set[Issue] = set()
    occurrences: Counter[str] = Counter()
    duplicates = 0
    for issue in assign_fingerprints(parsed, context):
        if issue in seen:
            duplicates += 1
            continue
        seen.add(issue)
        # distinct findings sharing a fingerprint are numbered in report order
        occurrences[issue.fingerprint] += 1
        count = occurrences[issue.fingerprint]
        if count > 1:
            issue = issue.with_fingerprint(f"{issue.fingerprint}:{count}", issue.approximate)
        issues.add(issue)
    if duplicates:
        messages.append(f"Dropped {duplicates} duplicate {tool} issues")

    approximate = sum(1 for i in issues if i.approximate)
    if approximate:
        messages.append(
            f"{approximate} {tool} issues matched approximately (source not available)"
        )

    return LoadedReport(
        tool=tool,
        issues=issues,
        dropped=len(records) - len(parsed),
        duplicates=duplicates,
        messages=messages,
    )


def _to_issue(tool: str, raw: dict[str, Any]) -> Issue:
    if not isinstance(raw, dict):
        raise TypeError(f"expected an object, got {type(raw).__name__}")

    file = _first(raw, "file", "fileName")
    if not file:
        raise ValueError("missing file name")
    message = _first(raw, "message")
    if message is None:
        raise ValueError("missing message")

    line_start = int(_first(raw, "line", "lineStart", "line_start") or 0)
    line_end = int(_first(raw, "line_end", "lineEnd") or line_start)
    if line_start < 0 or line_end < line_start:
        raise ValueError(f"invalid line range {line_start}-{line_end}")

    return Issue(
        tool=tool,
        file=str(file),
        line_start=line_start,
        line_end=line_end,
        category=str(_first(raw, "category") or ""),
        type=str(_first(raw, "type") or ""),
        severity=Severity.parse(_first(raw, "severity") or "NORMAL"),
        message=str(message),
    )


def _first(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None
