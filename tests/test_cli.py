import json

import pytest

from agent_bench.core.storage import save_results_bundle
from agent_bench.core.workspace import WorkspaceStore
from agent_bench.errors import ConfigError, ReportError
from agent_bench.main import entrypoint, report_impl, run_impl
from agent_bench.models.evaluation import HookStatus, PostEvaluationResult
from agent_bench.models.results import RunOutcome
from agent_bench.models.run_progress import RunStage
from agent_bench.models.workspace import SourceRef, Workspace

CASE = """\
name: cli-demo
repo: https://example.com/org/repo.git
agent:
  type: claude-code
  prompt: Fix it
evaluators:
  - name: git-diff
"""


def _make_fake_run_impl():
	"""Return a (fake_run_impl, seen_dict) pair for monkeypatching."""
	seen = {}

	def fake_run_impl(
	    config_file,
	    label=None,
	    timeout=None,
	    workspace_dir=None,
	    keep_workspace=None,
	    stream_output=None,
	    report=None,
	):
		seen["config_file"] = str(config_file)
		seen["label"] = label
		seen["timeout"] = timeout
		seen["workspace_dir"] = workspace_dir
		seen["keep_workspace"] = keep_workspace
		seen["stream_output"] = stream_output
		seen["report"] = report

	return fake_run_impl, seen


def test_cli_entrypoint_defaults_to_run(monkeypatch):
	fake_run_impl, seen = _make_fake_run_impl()
	monkeypatch.setattr("agent_bench.main.run_impl", fake_run_impl)
	entrypoint(
	    [
	        "cases/fix.yaml",
	        "--label",
	        "nightly",
	        "--timeout",
	        "10",
	        "--workspace-dir",
	        "/tmp/ws",
	        "--no-keep-workspace",
	        "--stream",
	    ],
	    standalone_mode=False,
	)
	assert seen["config_file"] == "cases/fix.yaml"
	assert seen["label"] == "nightly"
	assert seen["timeout"] == 10
	assert seen["workspace_dir"] == "/tmp/ws"
	assert seen["keep_workspace"] is False
	assert seen["stream_output"] is True
	assert seen["report"] is None


def test_cli_entrypoint_explicit_run(monkeypatch):
	fake_run_impl, seen = _make_fake_run_impl()
	monkeypatch.setattr("agent_bench.main.run_impl", fake_run_impl)
	entrypoint(["run", "case.yaml"], standalone_mode=False)
	assert seen["config_file"] == "case.yaml"
	assert seen["timeout"] is None


def test_cli_entrypoint_help_does_not_crash():
	"""--help should exit cleanly (SystemExit with code 0)."""
	with pytest.raises(SystemExit) as exc_info:
		entrypoint(["--help"], standalone_mode=True)
	assert exc_info.value.code == 0


def test_cli_run_harness_error_exits_1(monkeypatch, capsys):

	def failing_run_impl(*args, **kwargs):
		raise ConfigError("agent.prompt: field required", path="case.yaml")

	monkeypatch.setattr("agent_bench.main.run_impl", failing_run_impl)
	with pytest.raises(SystemExit) as exc_info:
		entrypoint(["case.yaml"], standalone_mode=True)
	assert exc_info.value.code == 1
	assert "What to do" in capsys.readouterr().err


def test_validate_valid_config(tmp_path, monkeypatch, capsys):
	monkeypatch.chdir(tmp_path)
	(tmp_path / "case.yaml").write_text(CASE)
	with pytest.raises(SystemExit) as exc_info:
		entrypoint(["validate", "case.yaml"], standalone_mode=True)
	assert exc_info.value.code == 0
	assert "Config valid: cli-demo" in capsys.readouterr().out


def test_validate_warns_about_unknown_evaluator(tmp_path, monkeypatch,
                                               capsys):
	monkeypatch.chdir(tmp_path)
	(tmp_path / "case.yaml").write_text(
	    CASE.replace("git-diff", "mystery"))
	with pytest.raises(SystemExit) as exc_info:
		entrypoint(["validate", "case.yaml"], standalone_mode=True)
	assert exc_info.value.code == 0
	assert "unknown evaluator 'mystery'" in capsys.readouterr().out


def test_validate_rejects_unknown_pre_execution(tmp_path, monkeypatch):
	monkeypatch.chdir(tmp_path)
	(tmp_path / "case.yaml").write_text(CASE +
	                                    "pre_execution:\n  - name: teleport\n")
	with pytest.raises(SystemExit) as exc_info:
		entrypoint(["validate", "case.yaml"], standalone_mode=True)
	assert exc_info.value.code == 1


def test_validate_invalid_config(tmp_path, monkeypatch):
	monkeypatch.chdir(tmp_path)
	(tmp_path / "case.yaml").write_text("name: broken\n")
	with pytest.raises(SystemExit) as exc_info:
		entrypoint(["validate", "case.yaml"], standalone_mode=True)
	assert exc_info.value.code == 1


def test_run_impl_applies_overrides_and_writes_report(tmp_path, monkeypatch,
                                                      make_bundle):
	monkeypatch.chdir(tmp_path)
	(tmp_path / "case.yaml").write_text(CASE)
	seen = {}

	class FakeOrchestrator:

		def __init__(self, settings, progress_cb=None):
			seen["settings"] = settings
			self.progress_cb = progress_cb

		async def run(self, test_case, config_file, *, run_params=None):
			seen["test_case"] = test_case
			seen["run_params"] = run_params
			self.progress_cb("finalized", "done")
			paths = WorkspaceStore(tmp_path / "ws").plan_paths("r1")
			return RunOutcome(
			    bundle=make_bundle(("passed", "skipped")),
			    bundle_path=str(paths.artifacts_dir / "results.json"),
			    workspace=Workspace(run_id="r1", paths=paths,
			                        source=SourceRef(repo=test_case.repo),
			                        modified_commit="a" * 40),
			    stage=RunStage.FINALIZED,
			    post_evaluation_results=[
			        PostEvaluationResult(name="database",
			                             status=HookStatus.SUCCESS,
			                             message="exported")
			    ],
			)

	monkeypatch.setattr("agent_bench.main.Orchestrator", FakeOrchestrator)
	report = tmp_path / "out" / "report.md"
	run_impl(tmp_path / "case.yaml", label="ci", timeout=30,
	         workspace_dir=str(tmp_path / "ws"), keep_workspace=False,
	         report=report)

	assert seen["settings"].workspace_root == str(tmp_path / "ws")
	assert seen["settings"].keep_workspace is False
	assert seen["test_case"].name == "cli-demo"
	assert seen["run_params"].timeout == 30
	assert seen["run_params"].label == "ci"
	assert "# Evaluation Report: demo" in report.read_text()


def test_run_impl_rejects_bad_suffix(tmp_path, monkeypatch):
	monkeypatch.chdir(tmp_path)
	with pytest.raises(ConfigError, match="config_file"):
		run_impl(tmp_path / "case.txt")


def test_report_defaults_to_markdown_next_to_bundle(tmp_path, monkeypatch,
                                                    make_bundle, capsys):
	monkeypatch.chdir(tmp_path)
	bundle_path = save_results_bundle(make_bundle(("passed", "failed")),
	                                  tmp_path / "artifacts")
	with pytest.raises(SystemExit) as exc_info:
		entrypoint(["report", "--from", str(bundle_path)],
		           standalone_mode=True)
	assert exc_info.value.code == 0
	report = tmp_path / "artifacts" / "report.md"
	assert report.read_text().startswith("# Evaluation Report: demo")
	assert "Report generated" in capsys.readouterr().out


def test_report_json_to_explicit_output(tmp_path, make_bundle):
	bundle_path = save_results_bundle(make_bundle(), tmp_path / "artifacts")
	out = tmp_path / "reports" / "demo.json"
	assert report_impl(bundle_path, "json", out) == out
	data = json.loads(out.read_text())
	assert data["test_case"]["name"] == "demo"
	assert data["summary"]["overall_status"] == "passed"


def test_report_json_default_path(tmp_path, make_bundle):
	bundle_path = save_results_bundle(make_bundle(), tmp_path / "artifacts")
	assert report_impl(bundle_path, "json") == (tmp_path / "artifacts" /
	                                            "report.json")


def test_report_unknown_format_exits_1(tmp_path, monkeypatch, make_bundle,
                                       capsys):
	monkeypatch.chdir(tmp_path)
	bundle_path = save_results_bundle(make_bundle(), tmp_path / "artifacts")
	with pytest.raises(SystemExit) as exc_info:
		entrypoint(["report", "--from", str(bundle_path), "--format", "html"],
		           standalone_mode=True)
	assert exc_info.value.code == 1
	err = capsys.readouterr().err
	assert "Unknown report format: html" in err
	assert "What to do" in err


def test_report_rejects_invalid_bundle(tmp_path):
	bad = tmp_path / "results.json"
	bad.write_text(json.dumps({"version": "1.0.0"}))
	with pytest.raises(ReportError, match="Invalid results bundle format"):
		report_impl(bad)
	with pytest.raises(ReportError, match="Cannot read results bundle"):
		report_impl(tmp_path / "missing.json")
