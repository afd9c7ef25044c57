"""
Execution outcome models.

The supervisor produces exactly one ExecutionOutcome per agent process.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ExecutionStatus(str, Enum):
	"""Coarse outcome of a supervised process."""

	SUCCESS = "success"
	FAILED = "failed"
	TIMEOUT = "timeout"


class ErrorRecord(BaseModel):
	"""A structured error attached to an execution or log."""

	model_config = ConfigDict(frozen=True)

	message: str
	timestamp: str
	stack_trace: Optional[str] = None


class ExecutionOutcome(BaseModel):
	"""Result of supervising one external process."""

	model_config = ConfigDict(frozen=True)

	exit_code: int = Field(description="Raw exit code, negative for signals")
	status: ExecutionStatus
	output: str = Field(default="", description="Captured combined output")
	truncated: bool = False
	started_at: datetime
	completed_at: datetime
	duration_ms: int = Field(ge=0)
	errors: tuple[ErrorRecord, ...] = ()
	terminal_log_path: Optional[str] = None

	@property
	def succeeded(self) -> bool:
		return self.status == ExecutionStatus.SUCCESS


__all__ = ["ExecutionStatus", "ErrorRecord", "ExecutionOutcome"]
