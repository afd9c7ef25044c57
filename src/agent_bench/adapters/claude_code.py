"""Claude Code CLI adapter."""

from __future__ import annotations

import asyncio
import re

from agent_bench.core.normalizer import NormalizerProfile, TOOL_LINE_RE
from agent_bench.errors import AgentNotAuthorizedError
from agent_bench.models.test_case import ClaudeCodeAgentSpec

from .base import AgentAdapter, AgentRunContext

VERSION_CHECK_TIMEOUT_SECONDS = 30

CLAUDE_PROFILE = NormalizerProfile(
    provider="Anthropic",
    default_model="claude-sonnet-4",
    started_message="Claude Code CLI started",
    model_patterns=(
        re.compile(r"[Mm]odel:\s*(claude-[\w\-.]+)"),
        re.compile(r"(claude-(?:sonnet|opus|haiku)-[\d.-]+)", re.I),
    ),
    version_patterns=(
        re.compile(r"[Vv]ersion[:\s]+(\d+\.\d+\.\d+)"),
        re.compile(r"claude[_\s-]?code[_\s]?v?(\d+\.\d+\.\d+)", re.I),
    ),
    tool_patterns=(TOOL_LINE_RE, ),
    input_cost_per_million=3.0,
    output_cost_per_million=15.0,
    sampling_parameters={"temperature": 0.0},
)


class ClaudeCodeAdapter(AgentAdapter):
	"""Runs ``claude -p PROMPT`` in print mode."""

	name = "claude-code"
	executable = "claude"
	profile = CLAUDE_PROFILE

	async def check_credentials(self) -> None:
		proc = await asyncio.create_subprocess_exec(
		    self.executable,
		    "--version",
		    stdout=asyncio.subprocess.PIPE,
		    stderr=asyncio.subprocess.PIPE,
		)
		try:
			_, stderr = await asyncio.wait_for(
			    proc.communicate(), timeout=VERSION_CHECK_TIMEOUT_SECONDS)
		except asyncio.TimeoutError:
			proc.kill()
			await proc.wait()
			return
		err = stderr.decode(errors="replace")
		if "auth" in err or "API key" in err:
			raise AgentNotAuthorizedError(
			    self.name,
			    err.strip()[:300],
			    actions=[
			        "Run 'claude /login' to authenticate",
			        "Or set the ANTHROPIC_API_KEY environment variable",
			    ],
			)

	def build_command(self, context: AgentRunContext) -> tuple[str, list[str]]:
		spec = context.spec
		args = ["-p", context.prompt]
		if spec.model:
			args += ["--model", spec.model]
		if isinstance(spec, ClaudeCodeAgentSpec):
			if spec.agent_name:
				args += ["--agents", spec.agent_name]
			if spec.append_system_prompt:
				args += ["--append-system-prompt", spec.append_system_prompt]
			if spec.permission_mode:
				args += ["--permission-mode", spec.permission_mode]
			if spec.allowed_tools:
				args += ["--allowedTools", ",".join(spec.allowed_tools)]
			if spec.max_tokens is not None:
				args += ["--max-tokens", str(spec.max_tokens)]
		return self.executable, args


__all__ = ["ClaudeCodeAdapter", "CLAUDE_PROFILE"]
