"""
Agent adapter base class.

An adapter knows how to check that an agent CLI is usable, how to turn a
test case's typed agent options into an argument vector and which
patterns its output follows. Running and bounding the process is left to
the supervisor.
"""

from __future__ import annotations

import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from agent_bench.core.normalizer import (
    NormalizerProfile,
    NormalizeRequest,
    normalize,
)
from agent_bench.core.supervisor import execute as supervise
from agent_bench.errors import AgentNotInstalledError
from agent_bench.models.agent_log import NormalizedLog
from agent_bench.models.execution import ExecutionOutcome
from agent_bench.models.test_case import AgentSpecBase
from agent_bench.utils.logging import get_logger

logger = get_logger(__name__)


class AgentRunContext(BaseModel):
	"""Everything an adapter needs to start its agent once."""

	model_config = ConfigDict(frozen=True)

	workspace_dir: Path = Field(description="Clone the agent works in")
	artifacts_dir: Path
	prompt: str
	spec: AgentSpecBase
	timeout_ms: int = Field(description="0 disables the timeout")
	env: dict[str, str] = Field(default_factory=dict,
	                            description="Added to the inherited environment")
	stream: bool = False


class AgentAdapter:
	"""Base class for agent CLI adapters."""

	name: ClassVar[str] = "agent"
	version: ClassVar[str] = "1.0.0"
	executable: ClassVar[str] = ""
	profile: ClassVar[NormalizerProfile] = NormalizerProfile()

	def __init__(self, executable: str | None = None) -> None:
		if executable:
			self.executable = executable

	async def check_availability(self) -> None:
		"""
		Verify the agent can be started.

		Raises:
			AgentNotInstalledError: The executable is not on PATH.
			AgentNotAuthorizedError: Credentials are missing.
		"""
		if shutil.which(self.executable) is None:
			raise AgentNotInstalledError(self.name, self.executable)
		await self.check_credentials()

	async def check_credentials(self) -> None:
		"""Raise AgentNotAuthorizedError when the agent lacks credentials."""
		return None

	def build_command(self, context: AgentRunContext) -> tuple[str, list[str]]:
		raise NotImplementedError

	def build_env(self, context: AgentRunContext) -> dict[str, str]:
		return {**os.environ, **context.env}

	def terminal_log_path(self, context: AgentRunContext) -> Path:
		stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
		return (context.artifacts_dir / f"{self.name}-logs" /
		        f"terminal-output-{stamp}.log")

	async def execute(self, context: AgentRunContext) -> ExecutionOutcome:
		"""Start the agent under the supervisor and return its outcome."""
		command, args = self.build_command(context)
		log_path = self.terminal_log_path(context)
		logger.info("running %s in %s (timeout=%dms)", self.name,
		            context.workspace_dir, context.timeout_ms)
		logger.debug("command: %s %s", command, args)
		return await supervise(
		    command,
		    args,
		    context.workspace_dir,
		    self.build_env(context),
		    context.timeout_ms,
		    log_path=log_path,
		    stream=context.stream,
		)

	def normalize_log(self, outcome: ExecutionOutcome,
	                  context: AgentRunContext) -> NormalizedLog:
		request = NormalizeRequest(
		    agent_name=self.name,
		    adapter_version=self.version,
		    model=context.spec.model,
		    working_directory=str(context.workspace_dir),
		)
		return normalize(outcome, request, profile=self.profile)


__all__ = ["AgentRunContext", "AgentAdapter"]
