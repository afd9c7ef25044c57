"""
Agentic judge evaluator.

Runs a coding agent in the modified clone with a review prompt built
from the configured assertions, then reads a JSON verdict
``{status, metrics, message}`` out of its output. An agent that fails,
times out or produces no usable verdict gives a skipped result.
"""

from __future__ import annotations

from typing import Any, Callable, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    model_validator,
)

from agent_bench.adapters import AgentAdapter, AgentRunContext, get_adapter
from agent_bench.core.fanout import EvaluationContext
from agent_bench.errors import AgentUnavailableError
from agent_bench.loaders.prompts import load_instructions, load_prompt
from agent_bench.models.evaluation import EvaluationResult, EvaluationStatus
from agent_bench.models.execution import ExecutionStatus
from agent_bench.models.test_case import AgentSpec
from agent_bench.utils.logging import get_logger
from agent_bench.utils.parsing import iter_json_candidates

from .base import Evaluator

logger = get_logger(__name__)

DEFAULT_TEMPLATE = "agentic_judge.md"
DEFAULT_TIMEOUT_MS = 300_000
PREVIEW_CHARS = 500

Assertions = Union[list[str], dict[str, str]]

_AGENT_SPEC = TypeAdapter(AgentSpec)


class AgenticJudgeConfig(BaseModel):
	model_config = ConfigDict(extra="forbid", populate_by_name=True)

	type: str = Field(description="Agent type running the review")
	assertions: Optional[Assertions] = None
	criteria: Optional[Assertions] = Field(
	    default=None, description="Older name for assertions")
	instructions_file: Optional[str] = Field(default=None,
	                                         alias="instructions-file")
	agent_name: Optional[str] = None
	model: Optional[str] = None
	timeout: int = Field(DEFAULT_TIMEOUT_MS, gt=0,
	                     description="Judge timeout in milliseconds")

	@model_validator(mode="after")
	def check_assertions(self):
		if not (self.assertions or self.criteria):
			raise ValueError("assertions must be a non-empty list or map")
		return self

	@property
	def resolved_assertions(self) -> Assertions:
		return self.assertions or self.criteria


class JudgeVerdict(BaseModel):
	status: Literal["passed", "failed"]
	metrics: dict[str, Any]
	message: str


def format_assertions(assertions: Assertions) -> str:
	"""Render assertions as a numbered list or a keyed bullet list."""
	if isinstance(assertions, dict):
		return "\n".join(f"- **{k}**: {v}" for k, v in assertions.items())
	return "\n".join(f"{i}. {a}" for i, a in enumerate(assertions, start=1))


def build_prompt(config: AgenticJudgeConfig) -> str:
	"""Fill the instructions template with the formatted assertions."""
	listing = format_assertions(config.resolved_assertions)
	if config.instructions_file:
		template = load_instructions(config.instructions_file)
	elif config.agent_name:
		# the named agent carries its own instructions
		return f"Evaluation Assertions:\n{listing}"
	else:
		template = load_prompt(DEFAULT_TEMPLATE)
	return template.replace("{{ASSERTIONS}}",
	                        listing).replace("{{CRITERIA}}", listing)


def parse_verdict(output: str) -> Optional[JudgeVerdict]:
	"""Return the first well-formed verdict, trying fenced blocks first."""
	for candidate in iter_json_candidates(output or ""):
		if not candidate:
			continue
		try:
			return JudgeVerdict.model_validate_json(candidate)
		except ValidationError:
			continue
	return None


class AgenticJudgeEvaluator(Evaluator):
	name = "agentic-judge"
	description = ("Uses a coding agent to judge the changes against "
	               "custom assertions.")
	config_model = AgenticJudgeConfig

	def __init__(self,
	             adapter_factory: Callable[[str],
	                                       AgentAdapter] = get_adapter) -> None:
		self.adapter_factory = adapter_factory

	def _skip(self, message: str, **metrics: Any) -> EvaluationResult:
		result = EvaluationResult.skipped(self.name, message)
		return result.model_copy(update={"metrics": metrics})

	def _agent_context(self, context: EvaluationContext,
	                   config: AgenticJudgeConfig,
	                   prompt: str) -> AgentRunContext:
		spec: dict[str, Any] = {"type": config.type, "prompt": prompt}
		if config.model:
			spec["model"] = config.model
		if config.agent_name:
			spec["agent_name"] = config.agent_name
		return AgentRunContext(
		    workspace_dir=context.modified_dir,
		    artifacts_dir=context.evaluator_artifacts_dir,
		    prompt=prompt,
		    spec=_AGENT_SPEC.validate_python(spec),
		    timeout_ms=config.timeout,
		)

	async def evaluate(self, context: EvaluationContext,
	                   config: AgenticJudgeConfig) -> EvaluationResult:
		try:
			adapter = self.adapter_factory(config.type)
		except KeyError:
			return self._skip(f"Unknown adapter type: {config.type}")
		try:
			await adapter.check_availability()
		except AgentUnavailableError as exc:
			return self._skip(f"Judge agent not available: {exc}")

		run_ctx = self._agent_context(context, config, build_prompt(config))
		outcome = await adapter.execute(run_ctx)
		if outcome.status == ExecutionStatus.TIMEOUT:
			return self._skip("Agent execution timed out",
			                  agent_duration_ms=outcome.duration_ms)
		if outcome.status == ExecutionStatus.FAILED:
			reasons = "; ".join(e.message for e in outcome.errors)
			return self._skip(f"Agent execution failed: {reasons}",
			                  agent_duration_ms=outcome.duration_ms)

		verdict = parse_verdict(outcome.output)
		if verdict is None:
			preview = outcome.output[:PREVIEW_CHARS].replace("\n", " ")
			return self._skip(
			    "Agent output is not valid JSON or missing required fields "
			    f"(status, metrics, message). Output preview: \"{preview}\"",
			    agent_duration_ms=outcome.duration_ms,
			)
		logger.debug("judge verdict: %s", verdict.status)
		return self.result(
		    EvaluationStatus(verdict.status),
		    verdict.message,
		    metrics={
		        "agent_type": config.type,
		        "agent_duration_ms": outcome.duration_ms,
		    },
		    assertions=verdict.metrics,
		)


__all__ = [
    "AgenticJudgeEvaluator",
    "AgenticJudgeConfig",
    "JudgeVerdict",
    "format_assertions",
    "build_prompt",
    "parse_verdict",
]
