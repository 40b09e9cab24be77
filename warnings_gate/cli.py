"""CLI entry point - command definitions using Click.

Commands:
    init      Generate a template config file
    record    Evaluate and commit a build from per-tool reports
    count     Issues count of a build (optionally per tool / delta type)
    show      JSON summary of a committed build
    history   Totals and outcomes of all committed builds of a job
"""

import json
import sys
from typing import Any

import click

from warnings_gate import __version__


# ---------------------------------------------------------------------------
# Helpers shared by all data commands
# ---------------------------------------------------------------------------

def _load_config(ctx: click.Context):
    """Load the config file. Exits on error."""
    from warnings_gate.config import ConfigError, load

    try:
        config = load(ctx.obj["config_path"])
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    if ctx.obj["verbose"]:
        click.echo(f"[verbose] Using result store '{config.store}'", err=True)
    return config


def _make_store(config):
    from warnings_gate.store import ResultStore
    return ResultStore(config.store)


def _emit_json(data: Any, ctx: click.Context) -> None:
    """Write JSON to stdout or to the file specified by --output."""
    obj = ctx.obj
    indent = 2 if obj["pretty"] else None
    text = json.dumps(data, indent=indent, ensure_ascii=False)

    output_path: str | None = obj["output_path"]
    if output_path:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(text)
        click.echo(f"Report written to '{output_path}'", err=True)
    else:
        click.echo(text)


def _find_build(store, job: str, build: int | None):
    record = store.get(job, build) if build is not None else store.latest(job)
    if record is None:
        what = f"build #{build}" if build is not None else "committed builds"
        click.echo(f"Not found: job '{job}' has no {what}", err=True)
        sys.exit(1)
    return record


def _parse_report_option(value: str) -> tuple[str, str]:
    tool, sep, location = value.partition("=")
    if not sep or not tool or not location:
        raise click.BadParameter(f"expected TOOL=LOCATION, got '{value}'")
    return tool.strip(), location.strip()


def _handle_errors(func):
    """Decorator that catches known exceptions and exits cleanly."""
    import functools

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from warnings_gate.client import (
            AuthenticationError,
            NetworkError,
            NotFoundError,
            ReportClientError,
        )
        from warnings_gate.config import JobNotFoundError
        from warnings_gate.sources import ReportError
        from warnings_gate.store import StoreError

        try:
            return func(*args, **kwargs)
        except JobNotFoundError as exc:
            click.echo(f"Job error: {exc}", err=True)
            sys.exit(1)
        except ReportError as exc:
            click.echo(f"Report error: {exc}", err=True)
            sys.exit(1)
        except StoreError as exc:
            click.echo(f"Store error: {exc}", err=True)
            sys.exit(1)
        except AuthenticationError as exc:
            click.echo(f"Authentication error: {exc}", err=True)
            sys.exit(1)
        except NotFoundError as exc:
            click.echo(f"Not found: {exc}", err=True)
            sys.exit(1)
        except NetworkError as exc:
            click.echo(f"Network error: {exc}", err=True)
            sys.exit(1)
        except ReportClientError as exc:
            click.echo(f"Server error: {exc}", err=True)
            sys.exit(1)

    return wrapper


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", "config_path", default="warnings-gate.yaml", show_default=True,
              help="Path to the configuration file.")
@click.option("--output", "output_path", default=None,
              help="Write JSON output to a file instead of stdout.")
@click.option("--pretty", is_flag=True, default=False,
              help="Pretty-print the JSON output.")
@click.option("--verbose", is_flag=True, default=False,
              help="Enable verbose logging.")
@click.version_option(__version__, prog_name="warnings-gate")
@click.pass_context
def cli(ctx: click.Context, config_path: str, output_path: str | None,
        pretty: bool, verbose: bool) -> None:
    """Static-analysis issue aggregation with per-build deltas and quality gates."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["output_path"] = output_path
    ctx.obj["pretty"] = pretty
    ctx.obj["verbose"] = verbose


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@cli.command("init")
@click.option("--output", "output_path", default="warnings-gate.yaml", show_default=True,
              help="Path where the template config file will be written.")
def init_command(output_path: str) -> None:
    """Generate a template warnings-gate.yaml file."""
    from warnings_gate.config import ConfigError, generate_template
    try:
        generate_template(output_path)
        click.echo(f"Template written to '{output_path}'.")
        click.echo("Edit it with your jobs, tools, filters and quality gates.")
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# record
# ---------------------------------------------------------------------------

@cli.command("record")
@click.argument("job")
@click.option("--report", "reports", multiple=True, required=True,
              help="TOOL=LOCATION, a JSON report file or an http(s) URL. Repeatable.")
@click.option("--build", "build_number", type=int, default=None,
              help="Build number (defaults to the next one).")
@click.option("--reference", "reference_build", type=int, default=None,
              help="Pin the reference build instead of using the latest one.")
@click.option("--source-root", default=None,
              help="Workspace used to fingerprint issues (overrides config).")
@click.pass_context
@_handle_errors
def record_command(ctx: click.Context, job: str, reports: tuple[str, ...],
                   build_number: int | None, reference_build: int | None,
                   source_root: str | None) -> None:
    """Evaluate a build of JOB and commit it as the new reference."""
    from warnings_gate.analysis.fingerprint import SourceContext
    from warnings_gate.client import ReportClient
    from warnings_gate.models import BuildOutcome
    from warnings_gate.pipeline import record_build
    from warnings_gate.reports.summary import build_record_summary
    from warnings_gate.sources import JsonReportSource, RemoteReportSource, load_report

    config = _load_config(ctx)
    job_config = config.resolve_job(job)
    context = SourceContext(source_root or config.source_root)

    client = None
    loaded = {}
    for value in reports:
        try:
            tool, location = _parse_report_option(value)
        except click.BadParameter as exc:
            click.echo(f"Error: {exc.message}", err=True)
            sys.exit(2)
        if tool not in job_config.tools:
            click.echo(f"Warning: tool '{tool}' is not recorded by job '{job}' - ignored",
                       err=True)
            continue
        if location.startswith(("http://", "https://")):
            client = client or ReportClient(config.url or location, config.user, config.token)
            source = RemoteReportSource(tool, client, location)
        else:
            source = JsonReportSource(tool, location)

        if ctx.obj["verbose"]:
            click.echo(f"[verbose] Reading {tool} issues from {location}", err=True)
        report = load_report(source, context)
        for line in report.messages:
            click.echo(f"[{config.tools.get(tool, tool)}] {line}", err=True)
        loaded[tool] = report.issues

    record = record_build(
        _make_store(config), job, job_config.analyses, loaded,
        build_number=build_number,
        reference_build=reference_build,
        tool_names=config.tools,
    )

    for line in record.messages:
        click.echo(line, err=True)
    _emit_json(build_record_summary(record, config.tools), ctx)

    if record.step_result == BuildOutcome.FAILED:
        sys.exit(1)


# ---------------------------------------------------------------------------
# count
# ---------------------------------------------------------------------------

@cli.command("count")
@click.argument("job")
@click.option("--build", "build_number", type=int, default=None,
              help="Build number (defaults to the latest one).")
@click.option("--tool", default=None, help="Only count issues of this tool id.")
@click.option("--type", "delta_type", default="ALL", show_default=True,
              type=click.Choice(["ALL", "NEW", "FIXED", "OUTSTANDING"], case_sensitive=False),
              help="Delta type to count.")
@click.pass_context
@_handle_errors
def count_command(ctx: click.Context, job: str, build_number: int | None,
                  tool: str | None, delta_type: str) -> None:
    """Print the number of issues of a build of JOB."""
    from warnings_gate.reports.summary import issues_count

    config = _load_config(ctx)
    record = _find_build(_make_store(config), job, build_number)
    click.echo(str(issues_count(record, tool=tool, delta_type=delta_type.upper())))


# ---------------------------------------------------------------------------
# show
# ---------------------------------------------------------------------------

@cli.command("show")
@click.argument("job")
@click.option("--build", "build_number", type=int, default=None,
              help="Build number (defaults to the latest one).")
@click.pass_context
@_handle_errors
def show_command(ctx: click.Context, job: str, build_number: int | None) -> None:
    """JSON summary of a committed build of JOB."""
    from warnings_gate.reports.summary import build_record_summary

    config = _load_config(ctx)
    record = _find_build(_make_store(config), job, build_number)
    _emit_json(build_record_summary(record, config.tools), ctx)


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------

@cli.command("history")
@click.argument("job")
@click.pass_context
@_handle_errors
def history_command(ctx: click.Context, job: str) -> None:
    """Totals and outcomes of every committed build of JOB."""
    from warnings_gate.reports.summary import history_summary

    config = _load_config(ctx)
    _emit_json(history_summary(_make_store(config).builds(job)), ctx)
