"""
Report rendering and persistence utilities.

Renders a ResultsBundle as a rich summary table or as markdown, and
renders HarnessErrors as an actionable panel.
"""

from __future__ import annotations

from pathlib import Path
from string import Template
from typing import Callable

from rich import box
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from agent_bench.errors import HarnessError
from agent_bench.models.evaluation import EvaluationStatus
from agent_bench.models.results import ResultsBundle

STATUS_STYLES = {
    EvaluationStatus.PASSED: "green",
    EvaluationStatus.FAILED: "red",
    EvaluationStatus.SKIPPED: "yellow",
}

OVERALL_STYLES = {"passed": "bold green", "failed": "bold red",
                  "partial": "bold yellow"}

REPORT_TEMPLATE = Template("""# Evaluation Report: ${name}

## Summary

| Item           | Value              |
| -------------- | ------------------ |
| Repository     | ${repo}            |
| Branch         | ${branch}          |
| Commit         | ${commit}          |
| Agent          | ${agent}           |
| Agent Status   | ${agent_status}    |
| Exit Code      | ${exit_code}       |
| Overall Status | ${overall_status}  |
| Evaluators     | ${counts}          |
| Duration       | ${duration}        |
| Started        | ${started_at}      |

## Evaluators

| Evaluator | Status | Message |
| --------- | ------ | ------- |
${evaluator_rows}
""")


def format_duration(ms: int) -> str:
	"""Format milliseconds as ``1m 05s`` or ``3.2s``."""
	seconds = ms / 1000
	if seconds < 60:
		return f"{seconds:.1f}s"
	minutes, secs = divmod(int(seconds), 60)
	return f"{minutes}m {secs:02d}s"


def _md_cell(text: str) -> str:
	return text.replace("|", "\\|").replace("\n", " ")


def render_report_md(bundle: ResultsBundle) -> str:
	"""
	Render a markdown report from a ResultsBundle.

	Parameters:
		bundle: The bundle to render.

	Returns:
		Rendered markdown string.
	"""
	s = bundle.summary
	rows = "\n".join(
	    f"| {_md_cell(r.evaluator)} | {r.status.value} | {_md_cell(r.message)} |"
	    for r in bundle.evaluators)
	data = {
	    "name": bundle.test_case.name,
	    "repo": bundle.test_case.repo,
	    "branch": bundle.test_case.branch,
	    "commit": bundle.test_case.commit[:12],
	    "agent": bundle.agent.type,
	    "agent_status": bundle.agent.status.value,
	    "exit_code": bundle.agent.exit_code,
	    "overall_status": s.overall_status,
	    "counts": (f"{s.passed} passed, {s.failed} failed, "
	               f"{s.skipped} skipped"),
	    "duration": format_duration(bundle.execution.duration_ms),
	    "started_at": bundle.execution.started_at,
	    "evaluator_rows": rows,
	}
	return REPORT_TEMPLATE.safe_substitute(**data)


def render_report_json(bundle: ResultsBundle) -> str:
	"""Render a ResultsBundle as pretty-printed JSON."""
	return bundle.model_dump_json(indent=2, exclude_none=True)


# format name -> (file suffix, renderer)
REPORT_FORMATS: dict[str, tuple[str, Callable[[ResultsBundle], str]]] = {
    "json": (".json", render_report_json),
    "markdown": (".md", render_report_md),
    "md": (".md", render_report_md),
}


def save_report_md(path: Path | str, content: str) -> None:
	"""
	Persist report content to disk, ensuring parent directories.

	Parameters:
		path: Destination file path.
		content: Markdown or JSON content to write.
	"""
	Path(path).parent.mkdir(parents=True, exist_ok=True)
	Path(path).write_text(content, encoding="utf-8")


def render_summary(bundle: ResultsBundle, bundle_path: str | None = None) -> Group:
	"""Build the rich summary shown after a run."""
	table = Table(box=box.ROUNDED, expand=True, show_header=True)
	table.add_column("Evaluator")
	table.add_column("Status")
	table.add_column("Duration", justify="right")
	table.add_column("Message")
	for res in bundle.evaluators:
		table.add_row(
		    res.evaluator,
		    Text(res.status.value, style=STATUS_STYLES[res.status]),
		    format_duration(res.duration_ms),
		    res.message,
		)

	s = bundle.summary
	header = Text()
	header.append(f"{bundle.test_case.name}\n", style="bold")
	header.append(f"agent: {bundle.agent.type} ({bundle.agent.status.value}, "
	              f"exit {bundle.agent.exit_code})\n")
	if bundle.agent.truncated:
		header.append("agent output was truncated\n", style="yellow")
	header.append("overall: ")
	header.append(s.overall_status, style=OVERALL_STYLES[s.overall_status])
	header.append(f"  ({s.passed} passed, {s.failed} failed, "
	              f"{s.skipped} skipped)")
	if bundle_path:
		header.append(f"\nresults: {bundle_path}", style="dim")
	return Group(header, table)


def render_error(error: HarnessError) -> Panel:
	"""Render a HarnessError with its suggested actions."""
	body = Text(error.message)
	if error.actions:
		body.append("\n\nWhat to do:\n", style="bold")
		for i, action in enumerate(error.actions, start=1):
			body.append(f"  {i}. {action}\n")
	if error.details:
		body.append("\nTechnical details:\n", style="bold")
		body.append(f"  {error.details}", style="dim")
	return Panel(body, title=error.title, border_style="red", expand=False)


__all__ = [
    "format_duration",
    "REPORT_FORMATS",
    "render_report_md",
    "render_report_json",
    "save_report_md",
    "render_summary",
    "render_error",
]
