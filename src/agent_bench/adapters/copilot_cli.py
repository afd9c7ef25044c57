"""GitHub Copilot CLI adapter."""

from __future__ import annotations

import re

from agent_bench.core.normalizer import NormalizerProfile, TOOL_LINE_RE
from agent_bench.models.test_case import CopilotCliAgentSpec

from .base import AgentAdapter, AgentRunContext

COPILOT_PROFILE = NormalizerProfile(
    provider="GitHub",
    default_model="gpt-4",
    started_message="GitHub Copilot CLI started",
    model_patterns=(re.compile(r"using\s+model:\s*([\w.-]+)", re.I), ),
    version_patterns=(
        re.compile(r"copilot[_\s-]cli[_\s]version?:\s*(\d+(?:\.\d+)*)", re.I),
    ),
    tool_patterns=(re.compile(r"\[TOOL_CALL\]\s+(\w+):\s*(.+)"),
                   TOOL_LINE_RE),
    response_pattern=re.compile(r"^\[RESPONSE\]\s*(.*)"),
    input_cost_per_million=30.0,
    output_cost_per_million=60.0,
    sampling_parameters={"temperature": 0.7},
)


class CopilotCliAdapter(AgentAdapter):
	"""Runs ``copilot -p PROMPT`` with all tools and paths allowed."""

	name = "copilot-cli"
	executable = "copilot"
	profile = COPILOT_PROFILE

	def build_command(self, context: AgentRunContext) -> tuple[str, list[str]]:
		spec = context.spec
		args = ["-p", context.prompt]
		if spec.model:
			args += ["--model", spec.model]
		if isinstance(spec, CopilotCliAgentSpec):
			if spec.agent_name:
				args += ["--agent", spec.agent_name]
			if spec.allow_all_tools:
				args.append("--allow-all-tools")
			if spec.allow_all_paths:
				args.append("--allow-all-paths")
		log_dir = context.artifacts_dir / f"{self.name}-logs"
		args += ["--log-level", "all", "--log-dir", str(log_dir)]
		args += ["--add-dir", str(context.workspace_dir)]
		return self.executable, args


__all__ = ["CopilotCliAdapter", "COPILOT_PROFILE"]
