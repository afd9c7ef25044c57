"""
Evaluator base class.

An evaluator inspects a finished run through an EvaluationContext and
returns an EvaluationResult. Its open ``config`` map is validated
against the evaluator's own ``config_model`` before it runs; a
validation error propagates and the fan-out engine records it as a
skipped result.
"""

from __future__ import annotations

import time
from typing import Any, ClassVar, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from agent_bench.core.fanout import EvaluationContext
from agent_bench.core.storage import save_artifact
from agent_bench.models.evaluation import (
    EvaluationArtifact,
    EvaluationResult,
    EvaluationStatus,
)


class EvaluatorSettings(BaseModel):
	"""Config model for evaluators that take no options."""

	model_config = ConfigDict(extra="forbid")


class Evaluator:
	"""Base class for pluggable evaluators."""

	name: ClassVar[str] = "evaluator"
	description: ClassVar[str] = ""
	requires_expected_reference: ClassVar[bool] = False
	config_model: ClassVar[type[BaseModel]] = EvaluatorSettings

	def parse_config(self, raw: Mapping[str, Any] | None) -> Any:
		return self.config_model.model_validate(dict(raw or {}))

	def check_preconditions(
	    self,
	    context: EvaluationContext,
	    config: Mapping[str, Any] | None = None,
	) -> Optional[str]:
		"""Return a reason when the evaluator cannot run, else None."""
		if self.requires_expected_reference and context.expected_dir is None:
			return "Expected reference not configured"
		if not context.modified_dir.is_dir():
			return f"Modified directory not found: {context.modified_dir}"
		return None

	async def run(self, context: EvaluationContext,
	              config: Mapping[str, Any]) -> EvaluationResult:
		t0 = time.monotonic()
		result = await self.evaluate(context, self.parse_config(config))
		if not result.duration_ms:
			result = result.model_copy(update={
			    "duration_ms": int((time.monotonic() - t0) * 1000)})
		return result

	async def evaluate(self, context: EvaluationContext,
	                   config: Any) -> EvaluationResult:
		raise NotImplementedError

	def save_artifact(self, context: EvaluationContext, filename: str,
	                  content: str | dict[str, Any], *, type: str,
	                  description: str) -> EvaluationArtifact:
		"""Write ``filename`` under the evaluator artifacts directory."""
		subdir = context.evaluator_artifacts_dir.relative_to(
		    context.artifacts_dir).as_posix()
		rel = f"{subdir}/{filename}"
		save_artifact(content, rel, context.artifacts_dir)
		return EvaluationArtifact(type=type, path=rel,
		                          description=description)

	def result(
	    self,
	    status: EvaluationStatus,
	    message: str,
	    *,
	    metrics: dict[str, Any] | None = None,
	    assertions: dict[str, Any] | None = None,
	    artifacts: list[EvaluationArtifact] | None = None,
	) -> EvaluationResult:
		return EvaluationResult(
		    evaluator=self.name,
		    status=status,
		    message=message,
		    metrics=metrics or {},
		    assertions=assertions,
		    artifacts=artifacts or None,
		)


__all__ = ["Evaluator", "EvaluatorSettings"]
