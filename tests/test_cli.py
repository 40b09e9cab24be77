"""Tests for warnings_gate/cli.py, driven through click's CliRunner."""

import json
import textwrap

import pytest
from click.testing import CliRunner

from warnings_gate.cli import cli


def _issue(fp: str, **extra) -> dict:
    issue = {"file": f"src/{fp}.java", "line": 1, "category": "Design",
             "type": "Check", "severity": "NORMAL", "message": f"issue {fp}"}
    issue.update(extra)
    return issue


@pytest.fixture
def workspace(tmp_path):
    config = tmp_path / "warnings-gate.yaml"
    config.write_text(textwrap.dedent(f"""\
        store: "{tmp_path / 'store'}"
        source_root: "{tmp_path}"
        jobs:
          web:
            analyses:
              - tools: [checkstyle, pmd]
                aggregate: true
                quality_gates:
                  - {{threshold: 3, type: TOTAL, result: FAILED}}
        """), encoding="utf-8")
    return tmp_path


def _report(workspace, name, issues):
    path = workspace / name
    path.write_text(json.dumps(issues), encoding="utf-8")
    return str(path)


def _run(workspace, *args):
    return CliRunner().invoke(cli, ["--config", str(workspace / "warnings-gate.yaml"), *args])


def _record(workspace, checkstyle, pmd):
    out = workspace / "summary.json"
    result = CliRunner().invoke(cli, [
        "--config", str(workspace / "warnings-gate.yaml"), "--output", str(out),
        "record", "web",
        "--report", "checkstyle=" + _report(workspace, "cs.json", checkstyle),
        "--report", "pmd=" + _report(workspace, "pmd.json", pmd),
    ])
    summary = json.loads(out.read_text()) if out.exists() else None
    return result, summary


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

def test_init_writes_template(tmp_path):
    target = tmp_path / "warnings-gate.yaml"
    result = CliRunner().invoke(cli, ["init", "--output", str(target)])
    assert result.exit_code == 0
    assert "jobs:" in target.read_text()


def test_init_refuses_to_overwrite(tmp_path):
    target = tmp_path / "warnings-gate.yaml"
    target.write_text("keep me")
    result = CliRunner().invoke(cli, ["init", "--output", str(target)])
    assert result.exit_code == 1
    assert target.read_text() == "keep me"


# ---------------------------------------------------------------------------
# record
# ---------------------------------------------------------------------------

def test_record_first_build(workspace):
    result, summary = _record(workspace, [_issue("a")], [_issue("b")])

    assert result.exit_code == 0, result.output
    assert summary["build"] == 1
    assert summary["total"] == 2
    assert summary["new"] == 0
    assert summary["outcome"] == "SUCCESS"
    assert summary["not_displayed"] == 2
    assert summary["results"][0]["title"] == "Static Analysis: 2 warnings"


def test_record_failed_gate_exits_non_zero(workspace):
    _record(workspace, [_issue("a")], [_issue("b")])
    result, summary = _record(workspace, [_issue("a"), _issue("c")], [_issue("d")])

    assert result.exit_code == 1
    assert summary["build"] == 2
    assert (summary["total"], summary["new"], summary["fixed"]) == (3, 2, 1)
    assert summary["step_result"] == "FAILED"
    assert "Some quality gates have been missed" in result.output


def test_record_ignores_unknown_tool(workspace):
    result = _run(workspace, "record", "web",
                  "--report", "pep8=" + _report(workspace, "pep8.json", [_issue("p")]))
    assert result.exit_code == 0
    assert "tool 'pep8' is not recorded by job 'web'" in result.output


def test_record_unknown_job(workspace):
    result = _run(workspace, "record", "nope",
                  "--report", "pmd=" + _report(workspace, "pmd.json", []))
    assert result.exit_code == 1
    assert "Job error" in result.output


def test_record_unreadable_report(workspace):
    result = _run(workspace, "record", "web",
                  "--report", f"pmd={workspace / 'missing.json'}")
    assert result.exit_code == 1
    assert "Report error" in result.output


def test_record_bad_report_option(workspace):
    result = _run(workspace, "record", "web", "--report", "pmd")
    assert result.exit_code == 2
    assert "TOOL=LOCATION" in result.output


def test_record_remote_report(workspace, requests_mock):
    requests_mock.get("https://ci.example.com/job/web/1/pmd.json", json={"issues": [_issue("r")]})
    result = _run(workspace, "record", "web",
                  "--report", "pmd=https://ci.example.com/job/web/1/pmd.json")
    assert result.exit_code == 0, result.output
    assert requests_mock.called


def test_missing_config_file(tmp_path):
    result = CliRunner().invoke(cli, ["--config", str(tmp_path / "none.yaml"),
                                      "count", "web"])
    assert result.exit_code == 1
    assert "Configuration error" in result.output


# ---------------------------------------------------------------------------
# count / show / history
# ---------------------------------------------------------------------------

def test_count(workspace):
    _record(workspace, [_issue("a")], [_issue("b")])
    _record(workspace, [_issue("a"), _issue("c")], [_issue("d")])

    assert _run(workspace, "count", "web").output.strip() == "3"
    assert _run(workspace, "count", "web", "--type", "new").output.strip() == "2"
    assert _run(workspace, "count", "web", "--tool", "pmd", "--type", "FIXED").output.strip() == "1"
    assert _run(workspace, "count", "web", "--build", "1").output.strip() == "2"


def test_count_without_builds(workspace):
    result = _run(workspace, "count", "web")
    assert result.exit_code == 1
    assert "has no committed builds" in result.output


def test_show_unknown_build(workspace):
    _record(workspace, [], [])
    result = _run(workspace, "show", "web", "--build", "7")
    assert result.exit_code == 1
    assert "has no build #7" in result.output


def test_show_and_history(workspace):
    _record(workspace, [_issue("a")], [])
    _record(workspace, [_issue("a")], [_issue("b")])

    out = workspace / "show.json"
    assert _run(workspace, "--output", str(out), "show", "web", "--build", "1").exit_code == 0
    assert json.loads(out.read_text())["total"] == 1

    out = workspace / "history.json"
    assert _run(workspace, "--output", str(out), "history", "web").exit_code == 0
    builds = json.loads(out.read_text())["builds"]
    assert [(b["build"], b["total"], b["new"]) for b in builds] == [(1, 1, 0), (2, 2, 1)]
