from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import NoReturn

import typer
from pydantic import ValidationError
from rich.console import Console
from typer.main import get_command

from agent_bench.core.orchestrator import Orchestrator
from agent_bench.core.storage import load_results_bundle
from agent_bench.errors import ConfigError, HarnessError, ReportError
from agent_bench.evaluators import default_registry
from agent_bench.hooks import post_evaluation_registry, pre_execution_registry
from agent_bench.loaders.test_case import format_validation_error, load_test_case
from agent_bench.models.settings import HarnessSettings, load_env
from agent_bench.models.run_params import RunParams
from agent_bench.ui.reporting import (
    REPORT_FORMATS,
    render_error,
    render_report_md,
    render_summary,
    save_report_md,
)
from agent_bench.utils.logging import configure_logging

cli = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()
err_console = Console(stderr=True)


@cli.callback()
def root() -> None:
	"""
	Root callback for the agent-bench CLI.

	Sets up the Typer application with no-args-is-help behavior.
	"""
	return None


def _load_settings() -> HarnessSettings:
	load_env()
	try:
		settings = HarnessSettings()
	except ValidationError as exc:
		raise ConfigError(format_validation_error(exc), path=".env") from exc
	configure_logging(settings.log_level)
	return settings


def _fail(error: HarnessError) -> NoReturn:
	err_console.print(render_error(error))
	raise typer.Exit(code=1)


def run_impl(
    config_file: Path,
    label: str | None = None,
    timeout: int | None = None,
    workspace_dir: str | None = None,
    keep_workspace: bool | None = None,
    stream_output: bool | None = None,
    report: Path | None = None,
) -> None:
	"""
	Run one test case end to end and print its summary.

	Loads settings and the test case, provisions the workspace, runs the
	agent and every evaluator, then shows the results bundle.

	Parameters:
		config_file: YAML or JSON test case.
		label: Prefix for the run id.
		timeout: Override for the agent timeout in seconds.
		workspace_dir: Override for the workspace root.
		keep_workspace: Whether to retain the workspace after the run.
		stream_output: Whether to echo agent output while capturing.
		report: Optional path for a markdown report.

	Raises:
		HarnessError: When the run cannot be set up.
	"""
	settings = _load_settings()
	try:
		params = RunParams(
		    config_file=config_file,
		    label=label,
		    timeout=timeout,
		    workspace_dir=workspace_dir,
		    keep_workspace=keep_workspace,
		    stream_output=stream_output,
		)
	except ValidationError as exc:
		raise ConfigError(format_validation_error(exc),
		                  path=config_file) from exc
	settings.apply_overrides(params)
	test_case = load_test_case(params.config_file)
	console.print(
	    f"Running {test_case.name} with agent={test_case.agent.type}, "
	    f"evaluators={len(test_case.evaluators)}, "
	    f"workspace_root={settings.workspace_root}, "
	    f"keep_workspace={settings.keep_workspace}")

	def progress_cb(stage: str, msg: str) -> None:
		style = "red" if stage == "aborted" else "dim"
		console.print(f"[{style}]{stage}[/{style}] {msg}")

	orchestrator = Orchestrator(settings, progress_cb=progress_cb)
	outcome = asyncio.run(
	    orchestrator.run(test_case, params.config_file, run_params=params))

	console.print(render_summary(outcome.bundle, outcome.bundle_path))
	for res in outcome.post_evaluation_results:
		console.print(f"post-evaluation {res.name}: {res.status.value} "
		              f"{res.message}")
	if outcome.workspace_retained:
		console.print(f"workspace: {outcome.workspace.paths.run_dir}",
		              style="dim")
	if report:
		save_report_md(report, render_report_md(outcome.bundle))
		console.print(f"report: {report}", style="dim")


@cli.command()
def run(
    config_file: Path = typer.Argument(..., help="Test case YAML or JSON"),
    label: str = typer.Option(None, "--label", help="Run id prefix"),
    timeout: int = typer.Option(None, "--timeout",
                                help="Override agent timeout seconds"),
    workspace_dir: str = typer.Option(None, "--workspace-dir",
                                      help="Override workspace root"),
    keep_workspace: bool = typer.Option(
        None,
        "--keep-workspace/--no-keep-workspace",
        help="Retain the workspace after the run",
    ),
    stream_output: bool = typer.Option(
        None,
        "--stream/--no-stream",
        help="Echo agent output to the console",
    ),
    report: Path = typer.Option(None, "--report",
                                help="Write a markdown report to this path"),
) -> None:
	"""
	Run a test case: agent, evaluators and hooks.

	Exits 0 when the run completes, whatever the evaluators decided.
	"""
	try:
		run_impl(config_file, label, timeout, workspace_dir, keep_workspace,
		         stream_output, report)
	except HarnessError as exc:
		_fail(exc)


def report_impl(results: Path, fmt: str = "markdown",
                output: Path | None = None) -> Path:
	"""
	Render a report from an existing results bundle.

	Parameters:
		results: Path to a results.json written by a run.
		fmt: Report format, json or markdown.
		output: Destination; defaults to report.<ext> next to the bundle.

	Returns:
		Path of the written report.

	Raises:
		ReportError: When the format is unknown or the bundle is unreadable.
	"""
	if fmt not in REPORT_FORMATS:
		raise ReportError(f"Unknown report format: {fmt}",
		                  details="Supported formats: json, markdown")
	suffix, render = REPORT_FORMATS[fmt]
	try:
		bundle = load_results_bundle(results)
	except OSError as exc:
		raise ReportError(f"Cannot read results bundle {results}",
		                  details=str(exc)) from exc
	except ValidationError as exc:
		raise ReportError(f"Invalid results bundle format: {results}",
		                  details=format_validation_error(exc)) from exc
	path = output or Path(results).parent / f"report{suffix}"
	save_report_md(path, render(bundle))
	return path


@cli.command()
def report(
    results: Path = typer.Option(..., "--from",
                                 help="Path to a results.json file"),
    fmt: str = typer.Option("markdown", "--format",
                            help="Report format: json or markdown"),
    output: Path = typer.Option(
        None, "--output",
        help="Report path (defaults to the artifacts directory)"),
) -> None:
	"""Generate a report from an existing results bundle."""
	try:
		_load_settings()
		path = report_impl(results, fmt, output)
	except HarnessError as exc:
		_fail(exc)
	console.print(f"Report generated: {path}")


@cli.command()
def validate(config_file: Path = typer.Argument(
    ..., help="Test case YAML or JSON")) -> None:
	"""Validate a test case without running it."""
	try:
		_load_settings()
		test_case = load_test_case(config_file)
	except HarnessError as exc:
		_fail(exc)
	evaluators = default_registry()
	pre_hooks = pre_execution_registry()
	post_hooks = post_evaluation_registry()
	for entry in test_case.evaluators:
		if entry.name not in evaluators:
			console.print(f"warning: unknown evaluator '{entry.name}' "
			              f"will be skipped", style="yellow")
	for entry in test_case.pre_execution:
		if entry.name not in pre_hooks:
			_fail(ConfigError(f"unknown pre-execution type: {entry.name}",
			                  path=config_file))
	for entry in test_case.post_evaluation:
		if entry.name not in post_hooks:
			console.print(f"warning: unknown post-evaluation "
			              f"'{entry.name}' will be skipped", style="yellow")
	console.print(f"Config valid: {test_case.name} "
	              f"(agent={test_case.agent.type}, "
	              f"evaluators={len(test_case.evaluators)}, "
	              f"hash={test_case.config_hash()})")


def entrypoint(argv=None, *, standalone_mode: bool = True):
	"""
	Typer entrypoint that defaults to `run` when appropriate.

	Allows calling 'agent-bench case.yaml' without explicitly specifying
	the 'run' subcommand.

	Parameters:
		argv: Command-line arguments. Defaults to sys.argv[1:].
		standalone_mode: If True, Click handles exit codes.

	Returns:
		Result of the Click application main invocation.
	"""
	args = sys.argv[1:] if argv is None else list(argv)

	_click_app = get_command(cli)
	commands = getattr(_click_app, "commands", {}).keys()
	if args and not args[0].startswith("-") and args[0] not in commands:
		args = ["run"] + args
	return _click_app.main(
	    args=args,
	    prog_name="agent-bench",
	    standalone_mode=standalone_mode,
	)


if __name__ == "__main__":
	entrypoint()
