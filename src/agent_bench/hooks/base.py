"""
Hook base class.

Pre-execution hooks run one after another before the agent starts;
post-evaluation hooks run concurrently once the results bundle has been
written. Both validate their open ``config`` map against ``config_model``
and report a HookResult.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, ClassVar, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from agent_bench.models.evaluation import HookResult, HookStatus, ResultError


class PreExecutionContext(BaseModel):
	"""What a pre-execution hook may see and touch."""

	model_config = ConfigDict(frozen=True)

	workspace_dir: Path
	repo_dir: Path
	artifacts_dir: Path
	test_case_name: str
	repo_url: str
	branch: Optional[str] = None


class Hook:
	"""Base class for pre-execution and post-evaluation hooks."""

	name: ClassVar[str] = "hook"
	description: ClassVar[str] = ""
	config_model: ClassVar[type[BaseModel]]
	result_model: ClassVar[type[HookResult]] = HookResult

	def parse_config(self, raw: Mapping[str, Any] | None) -> Any:
		return self.config_model.model_validate(dict(raw or {}))

	def check_preconditions(self, context: Any,
	                        config: Mapping[str, Any]) -> Optional[str]:
		return None

	async def run(self, context: Any, config: Mapping[str, Any]) -> HookResult:
		t0 = time.monotonic()
		result = await self.execute(context, self.parse_config(config))
		if not result.duration_ms:
			result = result.model_copy(update={
			    "duration_ms": int((time.monotonic() - t0) * 1000)})
		return result

	async def execute(self, context: Any, config: Any) -> HookResult:
		raise NotImplementedError

	def result(
	    self,
	    status: HookStatus,
	    message: str,
	    *,
	    metadata: dict[str, Any] | None = None,
	    error: str | None = None,
	    stack_trace: str | None = None,
	) -> HookResult:
		return self.result_model(
		    name=self.name,
		    status=status,
		    message=message,
		    metadata=metadata,
		    error=(ResultError(message=error, stack_trace=stack_trace)
		           if error else None),
		)


__all__ = ["Hook", "PreExecutionContext"]
