"""Tests for warnings_gate/sources.py"""

import json

import pytest

from warnings_gate.analysis.fingerprint import SourceContext
from warnings_gate.client import ReportClient
from warnings_gate.models import Severity
from warnings_gate.sources import (
    JsonReportSource,
    NormalizedIssueSource,
    RemoteReportSource,
    ReportError,
    load_report,
    normalize_records,
)

BASE = "https://ci.example.com"


def _record(**overrides) -> dict:
    record = {
        "file": "src/Main.java", "line": 2, "category": "Design",
        "type": "FinalParametersCheck", "severity": "NORMAL",
        "message": "Parameter args should be final.",
    }
    record.update(overrides)
    return record


# ---------------------------------------------------------------------------
# normalize_records
# ---------------------------------------------------------------------------

def test_snake_case_record():
    report = normalize_records("checkstyle", [_record()])
    issue = next(iter(report.issues))
    assert issue.tool == "checkstyle"
    assert (issue.line_start, issue.line_end) == (2, 2)
    assert issue.severity == Severity.NORMAL
    assert issue.fingerprint


def test_camel_case_record():
    raw = {"fileName": "a.py", "lineStart": 3, "lineEnd": 5, "severity": "WARNING_HIGH",
           "category": "E501", "type": "", "message": "line too long"}
    issue = next(iter(normalize_records("pep8", [raw]).issues))
    assert (issue.file, issue.line_start, issue.line_end) == ("a.py", 3, 5)
    assert issue.severity == Severity.HIGH


def test_malformed_records_are_dropped_with_warning():
    records = [_record(), _record(file=None), _record(severity="URGENT"), "garbage"]
    with pytest.warns(UserWarning, match="Skipping malformed"):
        report = normalize_records("checkstyle", records)
    assert len(report.issues) == 1
    assert report.dropped == 3
    assert len([m for m in report.messages if m.startswith("Skipping")]) == 3


def test_duplicates_are_dropped():
    report = normalize_records("checkstyle", [_record(), _record()])
    assert len(report.issues) == 1
    assert report.duplicates == 1
    assert "Dropped 1 duplicate checkstyle issues" in report.messages


def test_distinct_findings_with_same_fingerprint_are_kept():
    context = SourceContext(files={"src/Main.java": "class Main {\n  int x = 42 * 7;\n}\n"})
    records = [
        _record(category="Coding", type="MagicNumberCheck", message="'42' is a magic number."),
        _record(category="Coding", type="MagicNumberCheck", message="'7' is a magic number."),
    ]

    report = normalize_records("checkstyle", records, context)

    assert len(report.issues) == 2
    assert report.duplicates == 0
    assert not any(m.startswith("Dropped") for m in report.messages)
    first, second = sorted(report.issues, key=lambda i: len(i.fingerprint))
    assert second.fingerprint == first.fingerprint + ":2"
    assert normalize_records("checkstyle", records, context).issues.keys() == report.issues.keys()


def test_distinct_findings_with_same_degraded_fingerprint_are_kept():
    records = [
        _record(category="Javadoc", type="JavadocMethodCheck", message="Missing @param args."),
        _record(category="Javadoc", type="JavadocMethodCheck", message="Missing @return tag."),
        _record(category="Javadoc", type="JavadocMethodCheck", message="Missing @return tag."),
    ]

    report = normalize_records("checkstyle", records)

    assert len(report.issues) == 2
    assert report.duplicates == 1
    assert {i.message for i in report.issues} == {"Missing @param args.", "Missing @return tag."}


def test_approximate_matches_are_reported():
    report = normalize_records("checkstyle", [_record()], SourceContext(files={}))
    assert next(iter(report.issues)).approximate is True
    assert any("approximately" in m for m in report.messages)


def test_full_fingerprint_with_sources():
    context = SourceContext(files={"src/Main.java": "a\nb\nc\n"})
    report = normalize_records("checkstyle", [_record()], context)
    assert next(iter(report.issues)).approximate is False


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

def test_json_report_source_list(tmp_path):
    path = tmp_path / "checkstyle.json"
    path.write_text(json.dumps([_record(), _record(line=3)]), encoding="utf-8")
    report = load_report(JsonReportSource("checkstyle", path))
    assert len(report.issues) == 2


def test_json_report_source_issues_object(tmp_path):
    path = tmp_path / "pmd.json"
    path.write_text(json.dumps({"issues": [_record()]}), encoding="utf-8")
    assert len(load_report(JsonReportSource("pmd", path)).issues) == 1


def test_json_report_source_missing_file(tmp_path):
    with pytest.raises(ReportError, match="Cannot read"):
        JsonReportSource("pmd", tmp_path / "nope.json").records()


def test_json_report_source_invalid_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ReportError, match="Failed to parse"):
        JsonReportSource("pmd", path).records()


def test_remote_report_source(requests_mock):
    requests_mock.get(f"{BASE}/job/j/1/pmd/all/api/json", json={"issues": [_record()]})
    source = RemoteReportSource("pmd", ReportClient(BASE, "me", "tok"), "/job/j/1/pmd/all/api/json")
    report = load_report(source)
    assert next(iter(report.issues)).tool == "pmd"


def test_source_must_implement_records():
    class Incomplete(NormalizedIssueSource):
        pass

    with pytest.raises(TypeError):
        Incomplete("pmd")
