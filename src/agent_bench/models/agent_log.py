"""
Normalized agent log models.

Canonical, agent-independent record of one agent execution. Produced by
the output normalizer and persisted as ``<agent-name>.log.json``.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .execution import ErrorRecord, ExecutionStatus

LOG_SCHEMA_VERSION = "1.0.0"


class _Frozen(BaseModel):
	model_config = ConfigDict(frozen=True)


class ToolFunction(_Frozen):
	name: str
	arguments: str = Field(description="JSON-encoded arguments")


class ToolCall(_Frozen):
	id: str
	type: str = "function"
	function: ToolFunction


class LogMessage(_Frozen):
	role: Literal["system", "user", "assistant", "tool"]
	content: str
	timestamp: str
	tool_calls: Optional[list[ToolCall]] = None
	tool_call_id: Optional[str] = None


class AgentInfo(_Frozen):
	name: str
	version: str
	adapter_version: str


class ModelInfo(_Frozen):
	name: str
	provider: str
	parameters: dict[str, Any] = Field(default_factory=dict)


class ExecutionInfo(_Frozen):
	started_at: str
	completed_at: str
	duration_ms: int = Field(ge=0)
	exit_code: int
	status: ExecutionStatus
	truncated: bool = False


class UsageInfo(_Frozen):
	prompt_tokens: int = Field(ge=0)
	completion_tokens: int = Field(ge=0)
	total_tokens: int = Field(ge=0)
	estimated_cost_usd: Optional[float] = Field(default=None, ge=0)


class EnvironmentInfo(_Frozen):
	os: str
	python_version: str
	harness_version: str
	working_directory: str


class NormalizedLog(_Frozen):
	"""Canonical log of one agent execution."""

	version: Literal["1.0.0"] = LOG_SCHEMA_VERSION
	agent: AgentInfo
	model: ModelInfo
	execution: ExecutionInfo
	messages: list[LogMessage] = Field(min_length=1)
	usage: UsageInfo
	errors: list[ErrorRecord] = Field(default_factory=list)
	environment: EnvironmentInfo


__all__ = [
    "LOG_SCHEMA_VERSION",
    "ToolFunction",
    "ToolCall",
    "LogMessage",
    "AgentInfo",
    "ModelInfo",
    "ExecutionInfo",
    "UsageInfo",
    "EnvironmentInfo",
    "NormalizedLog",
]
