"""OpenAI Codex CLI adapter."""

from __future__ import annotations

import os
import re

from agent_bench.core.normalizer import NormalizerProfile
from agent_bench.errors import AgentNotAuthorizedError

from .base import AgentAdapter, AgentRunContext

CODEX_PROFILE = NormalizerProfile(
    provider="OpenAI",
    default_model="gpt-4",
    started_message="Codex CLI started",
    model_patterns=(re.compile(r"[Mm]odel:\s*([\w.-]+)"), ),
    version_patterns=(re.compile(r"[Vv]ersion[:\s]+(\d+\.\d+(?:\.\d+)?)"), ),
    input_cost_per_million=30.0,
    output_cost_per_million=60.0,
    sampling_parameters={"temperature": 0.7, "top_p": 1.0},
)


class CodexCliAdapter(AgentAdapter):
	"""Runs ``codex exec [--model M] PROMPT``."""

	name = "codex-cli"
	executable = "codex"
	profile = CODEX_PROFILE

	async def check_credentials(self) -> None:
		if not os.environ.get("OPENAI_API_KEY"):
			raise AgentNotAuthorizedError(
			    self.name,
			    "OPENAI_API_KEY is not set",
			    actions=["Export OPENAI_API_KEY before running the harness"],
			)

	def build_command(self, context: AgentRunContext) -> tuple[str, list[str]]:
		args = ["exec"]
		if context.spec.model:
			args += ["--model", context.spec.model]
		args.append(context.prompt)
		return self.executable, args


__all__ = ["CodexCliAdapter", "CODEX_PROFILE"]
