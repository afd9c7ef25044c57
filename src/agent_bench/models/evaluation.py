"""
Evaluation result models.

Defines EvaluationResult and the pre/post hook result models shared by
both fan-out stages.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


def utc_timestamp() -> str:
	"""Current UTC time as an ISO 8601 string."""
	return datetime.now(timezone.utc).isoformat()


class EvaluationStatus(str, Enum):
	PASSED = "passed"
	FAILED = "failed"
	SKIPPED = "skipped"


class HookStatus(str, Enum):
	SUCCESS = "success"
	FAILED = "failed"
	SKIPPED = "skipped"


class ResultError(BaseModel):
	"""Error captured from a task that raised."""

	message: str
	stack_trace: Optional[str] = None


class EvaluationArtifact(BaseModel):
	"""A file written by an evaluator, relative to the artifacts dir."""

	type: str
	path: str
	description: str


class EvaluationResult(BaseModel):
	"""One evaluator's verdict."""

	evaluator: str = Field(description="Evaluator name as configured")
	status: EvaluationStatus
	metrics: dict[str, Any] = Field(default_factory=dict)
	message: str = ""
	duration_ms: int = Field(default=0, ge=0)
	timestamp: str = Field(default_factory=utc_timestamp)
	assertions: Optional[dict[str, Any]] = Field(
	    default=None, description="Configured assertions and thresholds")
	artifacts: Optional[list[EvaluationArtifact]] = None
	error: Optional[ResultError] = None

	@classmethod
	def skipped(cls, evaluator: str, message: str, *,
	            error: ResultError | None = None,
	            duration_ms: int = 0) -> "EvaluationResult":
		return cls(evaluator=evaluator, status=EvaluationStatus.SKIPPED,
		           message=message, error=error, duration_ms=duration_ms)


class HookResult(BaseModel):
	"""Result of a pre-execution or post-evaluation hook."""

	name: str
	status: HookStatus
	message: str = ""
	duration_ms: int = Field(default=0, ge=0)
	timestamp: str = Field(default_factory=utc_timestamp)
	metadata: Optional[dict[str, Any]] = None
	error: Optional[ResultError] = None

	@classmethod
	def skipped(cls, name: str, message: str, *,
	            error: ResultError | None = None,
	            duration_ms: int = 0):
		return cls(name=name, status=HookStatus.SKIPPED, message=message,
		           error=error, duration_ms=duration_ms)


class PreExecutionResult(HookResult):
	"""Result of a pre-execution hook."""


class PostEvaluationResult(HookResult):
	"""Result of a post-evaluation hook."""


__all__ = [
    "utc_timestamp",
    "EvaluationStatus",
    "HookStatus",
    "ResultError",
    "EvaluationArtifact",
    "EvaluationResult",
    "HookResult",
    "PreExecutionResult",
    "PostEvaluationResult",
]
