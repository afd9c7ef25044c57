"""
Script hooks.

Run a configured command before the agent (setup, fixtures) or after the
bundle is written (notifications, exports). Placeholders such as
``${WORKSPACE_DIR}`` in the arguments are expanded, the command runs
under the process supervisor without a shell, and the child only sees a
small allow-listed environment plus the configured ``env``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from agent_bench.core.fanout import PostEvaluationContext
from agent_bench.core.supervisor import execute as supervise
from agent_bench.models.evaluation import (
    HookResult,
    HookStatus,
    PostEvaluationResult,
    PreExecutionResult,
)
from agent_bench.models.execution import ExecutionOutcome, ExecutionStatus
from agent_bench.utils.logging import get_logger

from .base import Hook, PreExecutionContext

logger = get_logger(__name__)

DEFAULT_SCRIPT_TIMEOUT_MS = 30_000
METADATA_OUTPUT_CHARS = 1000
INHERITED_ENV = ("PATH", "HOME", "USER", "LANG", "SYSTEMROOT", "TMPDIR")


class ScriptConfig(BaseModel):
	model_config = ConfigDict(extra="forbid")

	command: str = Field(min_length=1)
	args: list[str] = Field(default_factory=list)
	env: dict[str, str] = Field(default_factory=dict)
	timeout_ms: int = Field(DEFAULT_SCRIPT_TIMEOUT_MS, gt=0)
	working_dir: Optional[str] = None


def expand_placeholders(args: list[str],
                        variables: Mapping[str, str]) -> list[str]:
	"""Replace every ``${NAME}`` occurrence with its value."""
	out = []
	for arg in args:
		for key, value in variables.items():
			arg = arg.replace("${" + key + "}", value)
		out.append(arg)
	return out


def restricted_env(variables: Mapping[str, str],
                   extra: Mapping[str, str]) -> dict[str, str]:
	"""Allow-listed parent variables, then hook variables, then ``extra``."""
	env = {k: os.environ[k] for k in INHERITED_ENV if k in os.environ}
	env.update(variables)
	env.update(extra)
	return env


class _ScriptHook(Hook):
	name = "script"
	config_model = ScriptConfig

	def check_preconditions(self, context: Any,
	                        config: Mapping[str, Any]) -> Optional[str]:
		if not str(config.get("command") or "").strip():
			return "Script command is empty"
		return None

	def variables(self, context: Any) -> dict[str, str]:
		raise NotImplementedError

	def default_working_dir(self, context: Any) -> Path:
		raise NotImplementedError

	def _summary(self, config: ScriptConfig,
	             outcome: ExecutionOutcome) -> dict[str, Any]:
		return {
		    "command": config.command,
		    "exit_code": outcome.exit_code,
		    "output": outcome.output[:METADATA_OUTPUT_CHARS],
		}

	async def execute(self, context: Any, config: ScriptConfig) -> HookResult:
		variables = self.variables(context)
		args = expand_placeholders(config.args, variables)
		cwd = (Path(config.working_dir)
		       if config.working_dir else self.default_working_dir(context))
		logger.info("running %s hook: %s %s", self.name, config.command,
		            " ".join(args))
		outcome = await supervise(
		    config.command,
		    args,
		    cwd,
		    restricted_env(variables, config.env),
		    config.timeout_ms,
		)
		metadata = self._summary(config, outcome)
		if outcome.status == ExecutionStatus.SUCCESS:
			return self.result(HookStatus.SUCCESS,
			                   "Script completed successfully",
			                   metadata=metadata)
		if outcome.status == ExecutionStatus.TIMEOUT:
			message = f"Script timed out after {config.timeout_ms}ms"
		else:
			message = f"Script exited with code {outcome.exit_code}"
		details = "\n".join(e.message for e in outcome.errors)
		return self.result(HookStatus.FAILED, message, metadata=metadata,
		                   error=message, stack_trace=details or None)


class ScriptPreExecution(_ScriptHook):
	"""Runs a command in the modified clone before the agent starts."""

	description = "Executes a custom script before agent execution"
	result_model = PreExecutionResult

	def variables(self, context: PreExecutionContext) -> dict[str, str]:
		return {
		    "WORKSPACE_DIR": str(context.workspace_dir),
		    "REPO_DIR": str(context.repo_dir),
		    "ARTIFACTS_DIR": str(context.artifacts_dir),
		    "TEST_CASE_NAME": context.test_case_name,
		    "REPO_URL": context.repo_url,
		    "BRANCH": context.branch or "",
		}

	def default_working_dir(self, context: PreExecutionContext) -> Path:
		return context.workspace_dir


class ScriptPostEvaluation(_ScriptHook):
	"""Runs a command in the run directory after the bundle is written."""

	description = "Executes a custom script with the evaluation results"
	result_model = PostEvaluationResult

	def variables(self, context: PostEvaluationContext) -> dict[str, str]:
		return {
		    "RESULTS_PATH": str(context.bundle_path),
		    "ARTIFACTS_DIR": str(context.artifacts_dir),
		    "WORKSPACE_DIR": str(context.workspace_dir),
		    "TEST_CASE_NAME": context.bundle.test_case.name,
		    "OVERALL_STATUS": context.bundle.summary.overall_status,
		}

	def default_working_dir(self, context: PostEvaluationContext) -> Path:
		return context.workspace_dir


__all__ = [
    "ScriptConfig",
    "ScriptPreExecution",
    "ScriptPostEvaluation",
    "expand_placeholders",
    "restricted_env",
]
