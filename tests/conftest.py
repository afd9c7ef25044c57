import shutil
import subprocess
from pathlib import Path

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None,
                                  reason="git is not installed")


def git(cwd: Path, *args: str) -> str:
	"""Run git with a fixed identity and return stdout."""
	result = subprocess.run(
	    [
	        "git", "-c", "user.name=Test", "-c", "user.email=test@example.com",
	        "-c", "commit.gpgsign=false", *args
	    ],
	    cwd=cwd,
	    check=True,
	    capture_output=True,
	    text=True,
	)
	return result.stdout.strip()


@pytest.fixture
def source_repo(tmp_path):
	"""
	A local repository with two commits on ``main`` and an ``expected``
	branch holding the reference solution.
	"""
	if shutil.which("git") is None:
		pytest.skip("git is not installed")
	repo = tmp_path / "origin"
	repo.mkdir()
	git(repo, "init", "--quiet", "-b", "main")
	(repo / "app.py").write_text("def add(a, b):\n    return a - b\n")
	(repo / "README.md").write_text("# demo\n")
	git(repo, "add", ".")
	git(repo, "commit", "--quiet", "-m", "initial")
	first = git(repo, "rev-parse", "HEAD")
	(repo / "notes.txt").write_text("todo\n")
	git(repo, "add", ".")
	git(repo, "commit", "--quiet", "-m", "notes")
	git(repo, "checkout", "--quiet", "-b", "expected")
	(repo / "app.py").write_text("def add(a, b):\n    return a + b\n")
	git(repo, "commit", "--quiet", "-am", "fix")
	git(repo, "checkout", "--quiet", "main")
	return {"path": repo, "url": repo.as_uri(), "first_commit": first}


@pytest.fixture
def make_test_case():
	"""Factory for a minimal valid TestCaseConfig."""
	from agent_bench.models.test_case import TestCaseConfig

	def _make(**overrides):
		data = {
		    "name": "demo",
		    "repo": "https://example.com/org/repo.git",
		    "agent": {
		        "type": "claude-code",
		        "prompt": "Fix the add function"
		    },
		    "evaluators": [{
		        "name": "git-diff"
		    }],
		}
		data.update(overrides)
		return TestCaseConfig.model_validate(data)

	return _make


@pytest.fixture
def agent_log():
	from agent_bench.core.normalizer import NormalizeRequest, normalize
	from agent_bench.models.execution import ExecutionOutcome, ExecutionStatus
	from datetime import datetime, timezone

	now = datetime(2024, 1, 1, tzinfo=timezone.utc)
	outcome = ExecutionOutcome(exit_code=0, status=ExecutionStatus.SUCCESS,
	                           output="done", started_at=now,
	                           completed_at=now, duration_ms=0)
	return normalize(outcome, NormalizeRequest(agent_name="claude-code"))


@pytest.fixture
def make_eval_context(tmp_path, agent_log, make_test_case):
	"""Factory for an EvaluationContext rooted in tmp_path."""
	from agent_bench.core.fanout import EvaluationContext
	from agent_bench.models.settings import HarnessSettings

	def _make(modified_dir=None, expected_dir=None, **settings):
		modified = modified_dir or tmp_path / "src-modified"
		modified.mkdir(parents=True, exist_ok=True)
		artifacts = tmp_path / "artifacts"
		(artifacts / "evaluators").mkdir(parents=True, exist_ok=True)
		return EvaluationContext(
		    modified_dir=modified,
		    expected_dir=expected_dir,
		    artifacts_dir=artifacts,
		    evaluator_artifacts_dir=artifacts / "evaluators",
		    agent_log=agent_log,
		    config=HarnessSettings(**settings),
		    test_case=make_test_case(),
		)

	return _make


@pytest.fixture
def make_bundle():
	"""Factory for a ResultsBundle with the given evaluator results."""
	from agent_bench.models.evaluation import EvaluationResult, EvaluationStatus
	from agent_bench.models.execution import ExecutionStatus
	from agent_bench.models.results import (
	    AgentExecution,
	    ArtifactsManifest,
	    BundleEnvironment,
	    ExecutionMetadata,
	    ResultsBundle,
	    TestCaseMetadata,
	    build_summary,
	)

	def _make(statuses=("passed", )):
		results = [
		    EvaluationResult(evaluator=f"eval-{i}",
		                     status=EvaluationStatus(s),
		                     message=f"{s} result",
		                     assertions={"limit": 1})
		    for i, s in enumerate(statuses)
		]
		return ResultsBundle(
		    test_case=TestCaseMetadata(name="demo", description="",
		                               config_file="case.yaml",
		                               config_hash="0" * 16,
		                               repo="https://example.com/r.git",
		                               branch="main", commit="a" * 40),
		    execution=ExecutionMetadata(
		        started_at="2024-01-01T00:00:00+00:00",
		        completed_at="2024-01-01T00:01:05+00:00",
		        duration_ms=65000,
		        harness_version="0.1.0",
		        environment=BundleEnvironment(os="Linux",
		                                      python_version="3.12.0",
		                                      workspace_dir="/tmp/ws"),
		    ),
		    agent=AgentExecution(type="claude-code",
		                         log_path="claude-code.log.json",
		                         status=ExecutionStatus.SUCCESS, exit_code=0),
		    evaluators=results,
		    summary=build_summary(results),
		    artifacts=ArtifactsManifest(agent_log="claude-code.log.json"),
		)

	return _make


@pytest.fixture
def make_post_context(tmp_path, make_bundle):
	"""Factory for a PostEvaluationContext whose bundle is on disk."""
	from agent_bench.core.fanout import PostEvaluationContext
	from agent_bench.core.storage import save_results_bundle
	from agent_bench.models.settings import HarnessSettings

	def _make(statuses=("passed", )):
		bundle = make_bundle(statuses)
		artifacts = tmp_path / "run" / "artifacts"
		path = save_results_bundle(bundle, artifacts)
		return PostEvaluationContext(bundle=bundle, bundle_path=path,
		                             artifacts_dir=artifacts,
		                             workspace_dir=tmp_path / "run",
		                             config=HarnessSettings())

	return _make
