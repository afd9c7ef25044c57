from rich.console import Console

from agent_bench.errors import WorkspaceErrorCode, WorkspaceError
from agent_bench.ui.reporting import (
	format_duration,
	render_error,
	render_report_md,
	render_summary,
	save_report_md,
)


def _render(renderable) -> str:
	console = Console(record=True, width=120)
	console.print(renderable)
	return console.export_text()


def test_format_duration():
	assert format_duration(3200) == "3.2s"
	assert format_duration(65000) == "1m 05s"
	assert format_duration(0) == "0.0s"


def test_render_report_md(make_bundle):
	md = render_report_md(make_bundle(("passed", "failed")))
	assert md.startswith("# Evaluation Report: demo")
	assert "https://example.com/r.git" in md
	assert "| Overall Status | failed" in md
	assert "1 passed, 1 failed, 0 skipped" in md
	assert "| eval-1 | failed | failed result |" in md
	assert "1m 05s" in md


def test_render_report_md_escapes_pipes(make_bundle):
	bundle = make_bundle()
	bundle.evaluators[0].message = "a | b\nc"
	md = render_report_md(bundle)
	assert "a \\| b c" in md


def test_save_report_md(tmp_path):
	path = tmp_path / "nested" / "report.md"
	save_report_md(path, "# hi\n")
	assert path.read_text() == "# hi\n"


def test_render_summary(make_bundle):
	text = _render(render_summary(make_bundle(("passed", "skipped")),
	                              "/ws/r1/artifacts/results.json"))
	assert "demo" in text
	assert "overall: partial" in text
	assert "eval-0" in text and "eval-1" in text
	assert "results: /ws/r1/artifacts/results.json" in text


def test_render_error_lists_actions():
	err = WorkspaceError(WorkspaceErrorCode.CLONE_FAILED, "clone failed",
	                     details="fatal: repository not found")
	text = _render(render_error(err))
	assert "Workspace setup failed" in text
	assert "What to do:" in text
	assert "1. Verify the repository URL" in text
	assert "fatal: repository not found" in text
