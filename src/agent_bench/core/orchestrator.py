"""
Run orchestrator.

Drives one evaluation run through its stages: workspace, pre-execution
hooks, agent, normalization, evaluator fan-out, bundle, post-evaluation
fan-out and cleanup. Only setup failures (workspace, pre-execution,
agent availability) raise; once the agent has run, every outcome is
recorded in the results bundle instead.
"""

from __future__ import annotations

import platform
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping

from agent_bench import __version__
from agent_bench.adapters import AgentAdapter, AgentRunContext, get_adapter
from agent_bench.core.fanout import (
    EvaluationContext,
    PostEvaluationContext,
    TaskRegistry,
    run_all,
    run_post_stage,
)
from agent_bench.core.storage import (
    POST_EVALUATIONS_FILE_NAME,
    artifact_manifest,
    save_agent_log,
    save_artifact,
    save_results_bundle,
)
from agent_bench.core.workspace import (
    EVALUATOR_ARTIFACTS_DIR_NAME,
    WorkspaceStore,
)
from agent_bench.errors import ConfigError, PreExecutionError
from agent_bench.evaluators import default_registry
from agent_bench.hooks import (
    PreExecutionContext,
    post_evaluation_registry,
    pre_execution_registry,
)
from agent_bench.models.agent_log import NormalizedLog
from agent_bench.models.evaluation import (
    EvaluationResult,
    HookStatus,
    PreExecutionResult,
)
from agent_bench.models.execution import ExecutionOutcome
from agent_bench.models.results import (
    AgentExecution,
    ArtifactsManifest,
    BundleEnvironment,
    ExecutionMetadata,
    ResultsBundle,
    RunOutcome,
    TestCaseMetadata,
    build_summary,
)
from agent_bench.models.run_params import RunParams
from agent_bench.models.run_progress import RunProgress, RunStage
from agent_bench.models.settings import HarnessSettings
from agent_bench.models.test_case import TestCaseConfig
from agent_bench.models.workspace import SourceRef, Workspace
from agent_bench.utils.logging import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[str, str], None]

PRE_EXECUTIONS_FILE_NAME = "pre-executions.json"


def _iso(dt: datetime) -> str:
	return dt.isoformat()


class Orchestrator:
	"""
	Runs test cases end to end.

	Parameters:
		settings: Harness settings (CLI overrides already applied).
		workspace_store: Store to provision workspaces with; built from
			settings per run when omitted.
		adapters: Agent adapters by type; the built-in registry is used
			when omitted.
		evaluators: Evaluator registry.
		pre_hooks: Pre-execution hook registry.
		post_hooks: Post-evaluation hook registry.
		progress_cb: Called with (stage, message) on every transition.
	"""

	def __init__(
	    self,
	    settings: HarnessSettings,
	    *,
	    workspace_store: WorkspaceStore | None = None,
	    adapters: Mapping[str, AgentAdapter] | None = None,
	    evaluators: TaskRegistry[Any] | None = None,
	    pre_hooks: TaskRegistry[Any] | None = None,
	    post_hooks: TaskRegistry[Any] | None = None,
	    progress_cb: ProgressCallback | None = None,
	) -> None:
		self.settings = settings
		self.workspace_store = workspace_store
		self.adapters = adapters
		self.evaluators = evaluators or default_registry()
		self.pre_hooks = pre_hooks or pre_execution_registry()
		self.post_hooks = post_hooks or post_evaluation_registry()
		self.progress_cb = progress_cb

	def _advance(self, progress: RunProgress, stage: RunStage,
	             msg: str | None = None) -> None:
		progress.advance(stage, msg)
		logger.info("stage %s%s", stage.value, f": {msg}" if msg else "")
		if self.progress_cb:
			self.progress_cb(stage.value, progress.last_event or stage.value)

	def _store_for(self, test_case: TestCaseConfig,
	               run_params: RunParams | None) -> WorkspaceStore:
		if self.workspace_store is not None:
			return self.workspace_store
		root = self.settings.workspace_root
		cli_root = run_params.workspace_dir if run_params else None
		if test_case.workspace_dir and not cli_root:
			root = test_case.workspace_dir
		return WorkspaceStore(root, self.settings.git_timeout_seconds)

	def _adapter(self, agent_type: str) -> AgentAdapter:
		try:
			if self.adapters is not None:
				return self.adapters[agent_type]
			return get_adapter(agent_type)
		except KeyError:
			raise ConfigError(f"unknown agent type: {agent_type}") from None

	def _agent_timeout_ms(self, test_case: TestCaseConfig,
	                      run_params: RunParams | None) -> int:
		if run_params and run_params.timeout:
			return run_params.timeout * 1000
		if test_case.timeout:
			return test_case.timeout
		return self.settings.agent_timeout_seconds * 1000

	def _finish_workspace(self, store: WorkspaceStore,
	                      workspace: Workspace) -> bool:
		"""Release or remove the workspace; return True when retained."""
		if self.settings.keep_workspace:
			store.release_lock(workspace)
			logger.info("workspace retained at %s", workspace.paths.run_dir)
			return True
		store.cleanup(workspace)
		return False

	async def _run_pre_execution(
	        self, test_case: TestCaseConfig,
	        workspace: Workspace) -> list[PreExecutionResult]:
		"""Run pre-execution hooks one by one; the first failure aborts."""
		context = PreExecutionContext(
		    workspace_dir=workspace.paths.modified_dir,
		    repo_dir=workspace.paths.modified_dir,
		    artifacts_dir=workspace.paths.artifacts_dir,
		    test_case_name=test_case.name,
		    repo_url=test_case.repo,
		    branch=test_case.branch,
		)
		results: list[PreExecutionResult] = []
		for entry in test_case.pre_execution:
			hook = self.pre_hooks.resolve(entry.name)
			if hook is None:
				raise PreExecutionError(
				    entry.name, f"Unknown pre-execution type: {entry.name}")
			try:
				reason = hook.check_preconditions(context, entry.config)
			except Exception as exc:
				raise PreExecutionError(entry.name, str(exc)) from exc
			if reason:
				logger.info("pre-execution %s skipped: %s", entry.name, reason)
				results.append(PreExecutionResult.skipped(entry.name, reason))
				continue
			try:
				raw = await hook.run(context, entry.config)
			except Exception as exc:
				raise PreExecutionError(entry.name, str(exc)) from exc
			result = PreExecutionResult.model_validate({
			    **raw.model_dump(), "name": entry.name
			})
			results.append(result)
			if result.status == HookStatus.FAILED:
				raise PreExecutionError(entry.name, result.message)
			logger.info("pre-execution %s: %s", entry.name, result.message)
		save_artifact([r.model_dump(mode="json", exclude_none=True)
		               for r in results], PRE_EXECUTIONS_FILE_NAME,
		              workspace.paths.artifacts_dir)
		return results

	def _agent_execution(self, adapter: AgentAdapter,
	                     outcome: ExecutionOutcome,
	                     log_path: Path) -> AgentExecution:
		return AgentExecution(
		    type=adapter.name,
		    log_path=log_path.name,
		    status=outcome.status,
		    exit_code=outcome.exit_code,
		    truncated=outcome.truncated,
		    errors=list(outcome.errors),
		)

	def _build_bundle(
	    self,
	    test_case: TestCaseConfig,
	    config_file: Path | str,
	    workspace: Workspace,
	    agent: AgentExecution,
	    outcome: ExecutionOutcome,
	    evaluator_results: list[EvaluationResult],
	    started_at: datetime,
	) -> ResultsBundle:
		completed_at = datetime.now(timezone.utc)
		artifacts_dir = workspace.paths.artifacts_dir
		manifest = artifact_manifest(artifacts_dir)
		prefix = f"{EVALUATOR_ARTIFACTS_DIR_NAME}/"
		terminal_log = None
		if outcome.terminal_log_path:
			log_file = Path(outcome.terminal_log_path)
			if log_file.is_relative_to(artifacts_dir):
				terminal_log = log_file.relative_to(artifacts_dir).as_posix()
		return ResultsBundle(
		    test_case=TestCaseMetadata(
		        name=test_case.name,
		        description=test_case.description,
		        config_file=str(config_file),
		        config_hash=test_case.config_hash(),
		        repo=test_case.repo,
		        branch=test_case.branch or "unknown",
		        commit=workspace.modified_commit,
		        expected_branch=test_case.expected_branch,
		    ),
		    execution=ExecutionMetadata(
		        started_at=_iso(started_at),
		        completed_at=_iso(completed_at),
		        duration_ms=max(
		            int((completed_at - started_at).total_seconds() * 1000),
		            0),
		        harness_version=__version__,
		        environment=BundleEnvironment(
		            os=f"{platform.system()} {platform.release()}",
		            python_version=platform.python_version(),
		            workspace_dir=str(workspace.paths.run_dir),
		        ),
		    ),
		    agent=agent,
		    evaluators=evaluator_results,
		    summary=build_summary(evaluator_results),
		    artifacts=ArtifactsManifest(
		        agent_log=agent.log_path,
		        terminal_log=terminal_log,
		        reports=[
		            m for m in manifest if not m.startswith(prefix) and
		            m not in (agent.log_path, terminal_log)
		        ],
		        evaluator_artifacts=[m for m in manifest if m.startswith(prefix)],
		    ),
		)

	async def run(self,
	              test_case: TestCaseConfig,
	              config_file: Path | str,
	              *,
	              run_params: RunParams | None = None) -> RunOutcome:
		"""
		Run one test case end to end.

		Parameters:
			test_case: Validated test case with its prompt resolved.
			config_file: Path the test case was loaded from.
			run_params: CLI parameters (label, timeout, workspace root).

		Returns:
			RunOutcome with the persisted bundle and hook results.

		Raises:
			WorkspaceError: Workspace could not be provisioned.
			PreExecutionError: A pre-execution hook failed.
			AgentUnavailableError: The agent is not installed or authorized.
		"""
		started_at = datetime.now(timezone.utc)
		progress = RunProgress()
		store = self._store_for(test_case, run_params)
		logger.info("run start test_case=%s agent=%s", test_case.name,
		            test_case.agent.type)

		try:
			workspace = await store.create_workspace(
			    SourceRef(
			        repo=test_case.repo,
			        branch=test_case.branch,
			        commit=test_case.commit,
			        expected_branch=test_case.expected_branch,
			    ),
			    label=run_params.label if run_params else None,
			)
		except BaseException:
			self._advance(progress, RunStage.ABORTED, "workspace setup failed")
			raise
		self._advance(progress, RunStage.WORKSPACE_READY, workspace.run_id)
		paths = workspace.paths

		try:
			pre_results: list[PreExecutionResult] = []
			if test_case.pre_execution:
				pre_results = await self._run_pre_execution(
				    test_case, workspace)
				self._advance(progress, RunStage.PRE_EXECUTED,
				              f"{len(pre_results)} pre-execution hook(s)")

			adapter = self._adapter(test_case.agent.type)
			await adapter.check_availability()
			run_ctx = AgentRunContext(
			    workspace_dir=paths.modified_dir,
			    artifacts_dir=paths.artifacts_dir,
			    prompt=test_case.agent.prompt or "",
			    spec=test_case.agent,
			    timeout_ms=self._agent_timeout_ms(test_case, run_params),
			    stream=self.settings.stream_output,
			)
			outcome = await adapter.execute(run_ctx)
			self._advance(
			    progress, RunStage.AGENT_EXECUTED,
			    f"{outcome.status.value} (exit {outcome.exit_code})")

			agent_log: NormalizedLog = adapter.normalize_log(outcome, run_ctx)
			log_path = save_agent_log(agent_log, paths.artifacts_dir,
			                          adapter.name)

			eval_ctx = EvaluationContext(
			    modified_dir=paths.modified_dir,
			    expected_dir=paths.expected_dir,
			    artifacts_dir=paths.artifacts_dir,
			    evaluator_artifacts_dir=paths.evaluator_artifacts_dir,
			    agent_log=agent_log,
			    config=self.settings,
			    test_case=test_case,
			)
			evaluator_results = await run_all(
			    test_case.evaluators,
			    eval_ctx,
			    registry=self.evaluators,
			    timeout=self.settings.evaluator_timeout_seconds,
			    max_parallel=self.settings.max_parallel_evaluators,
			)
			self._advance(progress, RunStage.EVALUATED,
			              f"{len(evaluator_results)} evaluator(s)")

			bundle = self._build_bundle(
			    test_case,
			    config_file,
			    workspace,
			    self._agent_execution(adapter, outcome, log_path),
			    outcome,
			    evaluator_results,
			    started_at,
			)
			bundle_path = save_results_bundle(bundle, paths.artifacts_dir)
			self._advance(progress, RunStage.BUNDLE_BUILT,
			              bundle.summary.overall_status)

			post_results = []
			if test_case.post_evaluation:
				post_ctx = PostEvaluationContext(
				    bundle=bundle,
				    bundle_path=bundle_path,
				    artifacts_dir=paths.artifacts_dir,
				    workspace_dir=paths.run_dir,
				    config=self.settings,
				)
				post_results = await run_post_stage(
				    test_case.post_evaluation,
				    post_ctx,
				    registry=self.post_hooks,
				    timeout=self.settings.evaluator_timeout_seconds,
				)
				save_artifact([
				    r.model_dump(mode="json", exclude_none=True)
				    for r in post_results
				], POST_EVALUATIONS_FILE_NAME, paths.artifacts_dir)
				self._advance(progress, RunStage.POST_EVALUATED,
				              f"{len(post_results)} post-evaluation(s)")
		except BaseException as exc:
			logger.error("run aborted: %s", exc)
			self._advance(progress, RunStage.ABORTED, str(exc) or
			              type(exc).__name__)
			self._finish_workspace(store, workspace)
			raise

		retained = self._finish_workspace(store, workspace)
		self._advance(progress, RunStage.FINALIZED)
		logger.info("run done test_case=%s status=%s", test_case.name,
		            bundle.summary.overall_status)
		return RunOutcome(
		    bundle=bundle,
		    bundle_path=str(bundle_path),
		    workspace=workspace,
		    stage=progress.stage,
		    pre_execution_results=pre_results,
		    post_evaluation_results=post_results,
		    workspace_retained=retained,
		)


__all__ = ["Orchestrator", "ProgressCallback"]
