"""Configuration loading and validation.

Usage:
    config = load("warnings-gate.yaml")      # raises ConfigError on bad config
    job = config.resolve_job("my-job")       # returns the JobConfig
    generate_template("warnings-gate.yaml")  # writes example file to disk

Filters and quality gates are parsed here, once, so an invalid regex or a
negative threshold is reported before any build is evaluated.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from warnings_gate.analysis.aggregation import DEFAULT_GROUP_ID, DEFAULT_GROUP_NAME
from warnings_gate.analysis.filters import IssueFilter
from warnings_gate.analysis.quality_gate import QualityGateRule
from warnings_gate.sources import TOOL_NAMES

DEFAULT_CONFIG = "warnings-gate.yaml"
DEFAULT_STORE = ".warnings-gate"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""


class JobNotFoundError(ConfigError):
    """Raised when a job name is not found in the config."""


# ---------------------------------------------------------------------------
# Config dataclasses
# ---------------------------------------------------------------------------

@dataclass
class AnalysisConfig:
    """One recording step: the tools it reads and how their issues are judged."""

    tools: list[str]
    id: str = DEFAULT_GROUP_ID
    name: str = DEFAULT_GROUP_NAME
    aggregate: bool = False
    filters: list[IssueFilter] = field(default_factory=list)
    quality_gates: list[QualityGateRule] = field(default_factory=list)
    ignore_quality_gate: bool = False


@dataclass
class JobConfig:
    name: str
    analyses: list[AnalysisConfig] = field(default_factory=list)

    @property
    def tools(self) -> list[str]:
        return [t for a in self.analyses for t in a.tools]


@dataclass
class Config:
    store: str = DEFAULT_STORE
    source_root: str = "."
    url: str = ""
    user: str = ""
    token: str = ""
    tools: dict[str, str] = field(default_factory=lambda: dict(TOOL_NAMES))
    jobs: dict[str, JobConfig] = field(default_factory=dict)

    def resolve_job(self, name: str) -> JobConfig:
        if name in self.jobs:
            return self.jobs[name]
        available = ", ".join(self.jobs.keys()) or "(none configured)"
        raise JobNotFoundError(f"Job '{name}' not found. Available jobs: {available}")


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load(config_path: str = DEFAULT_CONFIG) -> Config:
    """Load and validate configuration from a YAML file.

    Environment variables WARNINGS_GATE_STORE, WARNINGS_GATE_URL,
    WARNINGS_GATE_USER and WARNINGS_GATE_TOKEN override file values.

    Raises:
        ConfigError: if the file is missing, malformed, or any job definition
                     is invalid. The message lists every problem found.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(
            f"Config file not found: '{config_path}'\n"
            "Run `python -m warnings_gate init` to generate a template."
        )

    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse '{config_path}': {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"'{config_path}' must be a YAML mapping at the top level.")

    return parse(raw)


def parse(raw: dict[str, Any]) -> Config:
    """Build a Config from an already decoded mapping."""
    errors: list[str] = []
    server = raw.get("server") or {}

    tools = dict(TOOL_NAMES)
    extra_tools = raw.get("tools") or {}
    if isinstance(extra_tools, dict):
        tools.update({str(k): str(v) for k, v in extra_tools.items()})
    else:
        errors.append("  - 'tools' must be a mapping of tool id to display name")

    config = Config(
        store=str(os.environ.get("WARNINGS_GATE_STORE") or raw.get("store") or DEFAULT_STORE),
        source_root=str(raw.get("source_root") or "."),
        url=str(os.environ.get("WARNINGS_GATE_URL") or server.get("url", "")).strip(),
        user=str(os.environ.get("WARNINGS_GATE_USER") or server.get("user", "")).strip(),
        token=str(os.environ.get("WARNINGS_GATE_TOKEN") or server.get("token", "")).strip(),
        tools=tools,
    )

    jobs = raw.get("jobs") or {}
    if not isinstance(jobs, dict) or not jobs:
        errors.append("  - 'jobs' mapping is empty - add at least one job")
        jobs = {}
    for name, job_raw in jobs.items():
        config.jobs[str(name)] = _parse_job(str(name), job_raw, tools, errors)

    if errors:
        raise ConfigError("Invalid configuration:\n" + "\n".join(errors))
    return config


def _parse_job(name: str, raw: Any, tools: dict[str, str], errors: list[str]) -> JobConfig:
    job = JobConfig(name=name)
    analyses = (raw or {}).get("analyses") if isinstance(raw, dict) else None
    if not analyses or not isinstance(analyses, list):
        errors.append(f"  - job '{name}': 'analyses' must be a non-empty list")
        return job

    seen_tools: set[str] = set()
    seen_ids: set[str] = set()
    for index, analysis_raw in enumerate(analyses):
        where = f"job '{name}', analysis #{index + 1}"
        analysis = _parse_analysis(analysis_raw, where, tools, errors)
        if analysis is None:
            continue

        for tool in analysis.tools:
            if tool in seen_tools:
                errors.append(f"  - {where}: tool '{tool}' is recorded twice")
            seen_tools.add(tool)
        if analysis.aggregate:
            if analysis.id in seen_ids or analysis.id in tools:
                errors.append(f"  - {where}: duplicate analysis id '{analysis.id}'")
            seen_ids.add(analysis.id)
        job.analyses.append(analysis)
    return job


def _parse_analysis(raw: Any, where: str, tools: dict[str, str],
                    errors: list[str]) -> AnalysisConfig | None:
    if not isinstance(raw, dict):
        errors.append(f"  - {where}: must be a mapping")
        return None

    tool_ids = raw.get("tools")
    if isinstance(raw.get("tool"), str):
        tool_ids = [raw["tool"]]
    if not tool_ids or not isinstance(tool_ids, list):
        errors.append(f"  - {where}: 'tools' must list at least one tool id")
        return None
    tool_ids = [str(t) for t in tool_ids]
    for tool in tool_ids:
        if tool not in tools:
            errors.append(f"  - {where}: unknown tool '{tool}'")

    filters: list[IssueFilter] = []
    for spec in raw.get("filters") or []:
        try:
            filters.append(IssueFilter.parse(spec["kind"], str(spec["pattern"])))
        except (KeyError, TypeError) as exc:
            errors.append(f"  - {where}: filter needs 'kind' and 'pattern' ({exc})")
        except ValueError as exc:
            errors.append(f"  - {where}: {exc}")

    gates: list[QualityGateRule] = []
    for spec in raw.get("quality_gates") or []:
        try:
            gates.append(QualityGateRule.parse(
                spec.get("type", "TOTAL"), spec["threshold"], spec.get("result", "UNSTABLE")
            ))
        except (KeyError, AttributeError) as exc:
            errors.append(f"  - {where}: quality gate needs a 'threshold' ({exc})")
        except ValueError as exc:
            errors.append(f"  - {where}: {exc}")

    return AnalysisConfig(
        tools=tool_ids,
        id=str(raw.get("id") or DEFAULT_GROUP_ID),
        name=str(raw.get("name") or DEFAULT_GROUP_NAME),
        aggregate=bool(raw.get("aggregate", False)),
        filters=filters,
        quality_gates=gates,
        ignore_quality_gate=bool(raw.get("ignore_quality_gate", False)),
    )


# ---------------------------------------------------------------------------
# Template generator (used by `init` command)
# ---------------------------------------------------------------------------

TEMPLATE = """\
store: ".warnings-gate"           # where build results are kept
source_root: "."                  # workspace used to fingerprint issues

server:                           # only needed for http(s) report locations
  url: "https://ci.example.com"
  user: "me"
  token: "xxxxxxxxxxxx"

tools:
  # Extra tool id: display name (checkstyle, pmd, findbugs, cpd, pep8 ... are built in)
  eslint: "ESLint"

jobs:
  my-job:
    analyses:
      - id: analysis
        name: Static Analysis
        tools: [findbugs, cpd, checkstyle, pmd]
        aggregate: true
        filters:
          - {kind: "Exclude categories", pattern: "Checks"}
        quality_gates:
          - {threshold: 10, type: TOTAL, result: UNSTABLE}
          - {threshold: 1, type: NEW_HIGH, result: FAILED}
        ignore_quality_gate: false
"""


def generate_template(output_path: str = DEFAULT_CONFIG) -> None:
    """Write a template warnings-gate.yaml to *output_path*.

    Raises:
        ConfigError: if the file already exists.
    """
    path = Path(output_path)
    if path.exists():
        raise ConfigError(
            f"'{output_path}' already exists. Remove it first or choose a different path."
        )
    path.write_text(TEMPLATE, encoding="utf-8")
