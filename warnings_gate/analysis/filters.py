"""Include / exclude filters applied to an issue set.

Usage:
    filters = [IssueFilter.parse("Exclude categories", "Checks"),
               IssueFilter.parse("Include types", "JavadocMethodCheck")]
    result  = apply_filters(issues, filters)
    result.summary  # "Applying 2 filters on the set of 4 issues (...)"
"""

import re
from dataclasses import dataclass, field
from enum import Enum

from warnings_gate.models import Issue, IssueSet


class FilterKind(Enum):
    INCLUDE_FILE = ("include", "file")
    EXCLUDE_FILE = ("exclude", "file")
    INCLUDE_CATEGORY = ("include", "category")
    EXCLUDE_CATEGORY = ("exclude", "category")
    INCLUDE_TYPE = ("include", "type")
    EXCLUDE_TYPE = ("exclude", "type")
    INCLUDE_SEVERITY = ("include", "severity")
    EXCLUDE_SEVERITY = ("exclude", "severity")

    @property
    def is_include(self) -> bool:
        return self.value[0] == "include"

    @property
    def family(self) -> str:
        return self.value[1]

    @classmethod
    def parse(cls, label: str) -> "FilterKind":
        """Accept "Exclude categories", "include type", "include_file", ..."""
        words = re.split(r"[\s_]+", str(label).strip().lower())
        if len(words) == 2:
            mode, family = words
            family = _PLURALS.get(family, family)
            for kind in cls:
                if kind.value == (mode, family):
                    return kind
        raise ValueError(f"Unknown filter kind '{label}'")


_PLURALS = {
    "files": "file",
    "categories": "category",
    "types": "type",
    "severities": "severity",
}


@dataclass(frozen=True)
class IssueFilter:
    kind: FilterKind
    pattern: str
    _regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        try:
            compiled = re.compile(self.pattern)
        except re.error as exc:
            raise ValueError(f"Invalid filter pattern '{self.pattern}': {exc}") from exc
        object.__setattr__(self, "_regex", compiled)

    @classmethod
    def parse(cls, kind: str, pattern: str) -> "IssueFilter":
        return cls(FilterKind.parse(kind), pattern)

    def matches(self, issue: Issue) -> bool:
        return self._regex.fullmatch(_property(issue, self.kind.family)) is not None


@dataclass
class FilterResult:
    kept: IssueSet
    removed: int
    summary: str


def apply_filters(issues: IssueSet, filters: list[IssueFilter]) -> FilterResult:
    """Keep the issues that pass every include family and no exclude rule."""
    total = len(issues)
    if not filters:
        return FilterResult(
            kept=IssueSet(issues),
            removed=0,
            summary=f"Applying 0 filters on the set of {total} issues",
        )

    includes: dict[str, list[IssueFilter]] = {}
    excludes: list[IssueFilter] = []
    for f in filters:
        if f.kind.is_include:
            includes.setdefault(f.kind.family, []).append(f)
        else:
            excludes.append(f)

    kept = IssueSet(
        issue for issue in issues
        if all(any(f.matches(issue) for f in group) for group in includes.values())
        and not any(f.matches(issue) for f in excludes)
    )
    removed = total - len(kept)
    return FilterResult(
        kept=kept,
        removed=removed,
        summary=(
            f"Applying {len(filters)} filters on the set of {total} issues "
            f"({removed} issues have been removed, {len(kept)} issues will be published)"
        ),
    )


def _property(issue: Issue, family: str) -> str:
    if family == "severity":
        return issue.severity.value
    return getattr(issue, family)
