"""Stable issue identities.

Functions:
    fingerprint(issue, context)   -> Fingerprint
    assign_fingerprints(issues, context) -> list[Issue]

A full fingerprint hashes the file path, category, type, message template and
a window of the surrounding source text, so an issue keeps its identity when
unrelated edits move it up or down the file. When the source is unavailable a
degraded fingerprint over (file, line, category, type) is used instead and the
issue is flagged as approximate.
"""

import hashlib
import re
from dataclasses import dataclass
from pathlib import Path

from warnings_gate.models import Issue

#: Non-blank lines taken above and below the reported line
CONTEXT_LINES = 3

_DIGITS_RE = re.compile(r"\d+")
_SPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class Fingerprint:
    value: str
    degraded: bool = False


class SourceContext:
    """Read access to the workspace sources referenced by issues.

    Files are looked up below *root*, or in the *files* mapping
    (path -> text) when given. Lines are cached per path.
    """

    def __init__(self, root: str | Path | None = None,
                 files: dict[str, str] | None = None) -> None:
        self._root = Path(root) if root is not None else None
        self._files = files or {}
        self._cache: dict[str, list[str] | None] = {}

    def lines(self, path: str) -> list[str] | None:
        """Return the lines of *path*, or None if it cannot be read."""
        if path not in self._cache:
            self._cache[path] = self._read(path)
        return self._cache[path]

    def _read(self, path: str) -> list[str] | None:
        if path in self._files:
            return self._files[path].splitlines()
        if self._root is None:
            return None
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self._root / candidate
        try:
            return candidate.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError:
            return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def fingerprint(issue: Issue, context: SourceContext | None) -> Fingerprint:
    lines = context.lines(issue.file) if context is not None else None
    window = _context_window(lines, issue.line_start) if lines is not None else None
    if window is None:
        return Fingerprint(_degraded(issue), degraded=True)

    return Fingerprint(_hash(
        issue.file,
        issue.category,
        issue.type,
        message_template(issue.message),
        "\n".join(window),
    ))


def assign_fingerprints(issues, context: SourceContext | None) -> list[Issue]:
    """Return copies of *issues* carrying their fingerprint."""
    result = []
    for issue in issues:
        fp = fingerprint(issue, context)
        result.append(issue.with_fingerprint(fp.value, approximate=fp.degraded))
    return result


def message_template(message: str) -> str:
    """Strip the variable parts of a message (numbers, whitespace runs)."""
    return _SPACE_RE.sub(" ", _DIGITS_RE.sub("#", message)).strip()


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _context_window(lines: list[str], line: int) -> list[str] | None:
    if not lines:
        return None
    # line 0 marks a file-level issue
    index = max(line, 1) - 1
    if index >= len(lines):
        return None

    normalized = [_SPACE_RE.sub(" ", text).strip() for text in lines]
    before = [t for t in normalized[:index] if t][-CONTEXT_LINES:]
    after = [t for t in normalized[index + 1:] if t][:CONTEXT_LINES]
    return before + [normalized[index]] + after


def _degraded(issue: Issue) -> str:
    return _hash(issue.file, str(issue.line_start), issue.category, issue.type)


def _hash(*parts: str) -> str:
    digest = hashlib.sha256("\x00".join(parts).encode("utf-8"))
    return digest.hexdigest()[:32]
