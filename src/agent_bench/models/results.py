"""
Results bundle models.

The bundle is the final persisted artifact of a run. It is written once,
after every evaluator has settled, and never modified afterwards.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from .evaluation import (
    EvaluationResult,
    EvaluationStatus,
    PostEvaluationResult,
    PreExecutionResult,
)
from .execution import ErrorRecord, ExecutionStatus
from .run_progress import RunStage
from .workspace import Workspace

BUNDLE_VERSION = "1.0.0"


class TestCaseMetadata(BaseModel):
	__test__ = False

	name: str
	description: str
	config_file: str
	config_hash: str
	repo: str
	branch: str
	commit: str
	expected_branch: Optional[str] = None


class BundleEnvironment(BaseModel):
	os: str
	python_version: str
	workspace_dir: str


class ExecutionMetadata(BaseModel):
	started_at: str
	completed_at: str
	duration_ms: int = Field(ge=0)
	harness_version: str
	environment: BundleEnvironment


class AgentExecution(BaseModel):
	type: str
	log_path: str = Field(description="Normalized log, relative path")
	status: ExecutionStatus
	exit_code: int
	truncated: bool = False
	errors: list[ErrorRecord] = Field(default_factory=list)


class BundleSummary(BaseModel):
	total_evaluators: int = Field(ge=0)
	passed: int = Field(ge=0)
	failed: int = Field(ge=0)
	skipped: int = Field(ge=0)
	overall_status: Literal["passed", "failed", "partial"]


class ArtifactsManifest(BaseModel):
	agent_log: str
	terminal_log: Optional[str] = None
	reports: list[str] = Field(default_factory=list)
	evaluator_artifacts: list[str] = Field(default_factory=list)


class ResultsBundle(BaseModel):
	"""Complete record of one evaluation run."""

	version: Literal["1.0.0"] = BUNDLE_VERSION
	test_case: TestCaseMetadata
	execution: ExecutionMetadata
	agent: AgentExecution
	evaluators: list[EvaluationResult]
	summary: BundleSummary
	artifacts: ArtifactsManifest


def build_summary(results: list[EvaluationResult]) -> BundleSummary:
	"""
	Aggregate evaluator results into a summary.

	Any failure makes the run ``failed``; all passing makes it
	``passed``; any other mix (skips included) is ``partial``.

	Parameters:
		results: Evaluator results in configuration order.

	Returns:
		BundleSummary with counts and overall status.
	"""
	passed = sum(1 for r in results if r.status == EvaluationStatus.PASSED)
	failed = sum(1 for r in results if r.status == EvaluationStatus.FAILED)
	skipped = sum(1 for r in results if r.status == EvaluationStatus.SKIPPED)
	if failed:
		overall = "failed"
	elif results and passed == len(results):
		overall = "passed"
	else:
		overall = "partial"
	return BundleSummary(
	    total_evaluators=len(results),
	    passed=passed,
	    failed=failed,
	    skipped=skipped,
	    overall_status=overall,
	)


class RunOutcome(BaseModel):
	"""What the orchestrator returns for a completed run."""

	bundle: ResultsBundle
	bundle_path: str
	workspace: Workspace
	stage: RunStage
	pre_execution_results: list[PreExecutionResult] = Field(
	    default_factory=list)
	post_evaluation_results: list[PostEvaluationResult] = Field(
	    default_factory=list)
	workspace_retained: bool = True


__all__ = [
    "BUNDLE_VERSION",
    "TestCaseMetadata",
    "BundleEnvironment",
    "ExecutionMetadata",
    "AgentExecution",
    "BundleSummary",
    "ArtifactsManifest",
    "ResultsBundle",
    "build_summary",
    "RunOutcome",
]
