"""
Agent CLI adapters.

Key modules:
    - base: AgentAdapter base class and AgentRunContext
    - claude_code: Claude Code CLI
    - copilot_cli: GitHub Copilot CLI
    - codex_cli: OpenAI Codex CLI
"""

from __future__ import annotations

from .base import AgentAdapter, AgentRunContext
from .claude_code import ClaudeCodeAdapter
from .codex_cli import CodexCliAdapter
from .copilot_cli import CopilotCliAdapter

ADAPTERS: dict[str, type[AgentAdapter]] = {
    ClaudeCodeAdapter.name: ClaudeCodeAdapter,
    CopilotCliAdapter.name: CopilotCliAdapter,
    CodexCliAdapter.name: CodexCliAdapter,
}


def get_adapter(agent_type: str) -> AgentAdapter:
	"""
	Return a fresh adapter instance for ``agent_type``.

	Raises:
		KeyError: If no adapter is registered under that name.
	"""
	try:
		return ADAPTERS[agent_type]()
	except KeyError:
		raise KeyError(f"unknown agent type: {agent_type}") from None


__all__ = [
    "ADAPTERS",
    "AgentAdapter",
    "AgentRunContext",
    "ClaudeCodeAdapter",
    "CodexCliAdapter",
    "CopilotCliAdapter",
    "get_adapter",
]
