"""Classification of a build's issues against a reference build.

Issues are matched by their tool-qualified fingerprint first. Issues left over
on either side are then matched on the degraded projection whenever one side
of the pair carries an approximate fingerprint. The degraded projection
includes the line number, so an approximate issue that moved is reported as
one NEW and one FIXED issue.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field

from warnings_gate.models import Issue, IssueSet


@dataclass
class Delta:
    new: IssueSet = field(default_factory=IssueSet)
    fixed: IssueSet = field(default_factory=IssueSet)
    outstanding: IssueSet = field(default_factory=IssueSet)


def classify(current: IssueSet, reference: IssueSet | None) -> Delta:
    """Label every current issue NEW or OUTSTANDING and collect FIXED ones.

    A missing reference (first build of a job) is the empty set.
    """
    if reference is None:
        reference = IssueSet()

    reference_keys = {i.key: i for i in reference if not i.approximate}
    matched_reference: set[tuple[str, str]] = set()
    outstanding: list[Issue] = []
    unmatched: list[Issue] = []

    for issue in current:
        if not issue.approximate and issue.key in reference_keys:
            matched_reference.add(issue.key)
            outstanding.append(issue)
        else:
            unmatched.append(issue)

    leftovers = [i for i in reference if i.key not in matched_reference]
    pool: dict[tuple, deque[Issue]] = defaultdict(deque)
    for ref in leftovers:
        pool[ref.degraded_key].append(ref)

    new: list[Issue] = []
    for issue in unmatched:
        candidates = pool.get(issue.degraded_key)
        match = _take_match(candidates, issue) if candidates else None
        if match is None:
            new.append(issue)
        else:
            matched_reference.add(match.key)
            outstanding.append(issue)

    return Delta(
        new=IssueSet(new),
        fixed=IssueSet(i for i in leftovers if i.key not in matched_reference),
        outstanding=IssueSet(outstanding),
    )


def _take_match(candidates: deque[Issue], issue: Issue) -> Issue | None:
    for ref in candidates:
        if issue.approximate or ref.approximate:
            candidates.remove(ref)
            return ref
    return None
