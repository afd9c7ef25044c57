"""
Setup-stage error types.

Only these errors unwind an evaluation run. Each one carries a short
title and a list of concrete actions so the CLI can tell the user how to
unblock without reading the source.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class HarnessError(Exception):
	"""Base class for errors that abort an evaluation run."""

	title: str = "Evaluation aborted"

	def __init__(self, message: str, *, actions: list[str] | None = None,
	             details: str | None = None) -> None:
		super().__init__(message)
		self.message = message
		self.actions = list(actions or [])
		self.details = details


class ConfigError(HarnessError):
	"""Raised when a test case or the harness settings are invalid."""

	title = "Invalid test case configuration"

	def __init__(self, reason: str, *, path: Path | str | None = None) -> None:
		self.path = str(path) if path else None
		where = f" ({self.path})" if self.path else ""
		super().__init__(
		    f"Failed to load config{where}: {reason}",
		    actions=[
		        "Review the errors above and update the config file",
		        "Exactly one of agent.prompt or agent.prompt_file must be set",
		    ],
		)


class WorkspaceErrorCode(str, Enum):
	"""Failure categories for workspace provisioning."""

	WORKSPACE_LOCKED = "WORKSPACE_LOCKED"
	CLONE_FAILED = "CLONE_FAILED"
	EXPECTED_BRANCH_NOT_FOUND = "EXPECTED_BRANCH_NOT_FOUND"
	CHECKOUT_FAILED = "CHECKOUT_FAILED"
	INVALID_CONFIG = "INVALID_CONFIG"


_WORKSPACE_ACTIONS: dict[WorkspaceErrorCode, list[str]] = {
    WorkspaceErrorCode.CLONE_FAILED: [
        "Verify the repository URL is correct and reachable",
        "For private repositories check your git credentials",
        "Try cloning the repository manually with git clone",
    ],
    WorkspaceErrorCode.EXPECTED_BRANCH_NOT_FOUND: [
        "Verify the expected branch exists (git ls-remote --heads)",
        "Remove expected_branch if no comparison is needed",
    ],
    WorkspaceErrorCode.CHECKOUT_FAILED: [
        "Verify the commit SHA exists on the configured branch",
    ],
    WorkspaceErrorCode.INVALID_CONFIG: [
        "Check the repo, branch and commit fields of the test case",
    ],
}


class WorkspaceError(HarnessError):
	"""Raised when a workspace cannot be provisioned."""

	title = "Workspace setup failed"

	def __init__(self, code: WorkspaceErrorCode, message: str, *,
	             details: str | None = None,
	             actions: list[str] | None = None) -> None:
		super().__init__(
		    message,
		    actions=actions
		    if actions is not None else _WORKSPACE_ACTIONS.get(code, []),
		    details=details,
		)
		self.code = code


class WorkspaceLockedError(WorkspaceError):
	"""Raised when a live process holds the workspace lock."""

	title = "Workspace is locked"

	def __init__(self, lock_file: Path, pid: int) -> None:
		self.lock_file = Path(lock_file)
		self.pid = pid
		super().__init__(
		    WorkspaceErrorCode.WORKSPACE_LOCKED,
		    f"Workspace is locked by PID {pid} (lock file: {lock_file})",
		    actions=[
		        f"Wait for process {pid} to finish, or stop it",
		        "Use a different --label or workspace root for this run",
		    ],
		)


class AgentUnavailableError(HarnessError):
	"""Raised when the agent cannot be started at all."""

	title = "Agent unavailable"

	def __init__(self, agent_type: str, message: str, *,
	             actions: list[str] | None = None) -> None:
		super().__init__(message, actions=actions)
		self.agent_type = agent_type


class AgentNotInstalledError(AgentUnavailableError):
	"""Raised when the agent executable is not on PATH."""

	title = "Agent not installed"

	def __init__(self, agent_type: str, executable: str) -> None:
		self.executable = executable
		super().__init__(
		    agent_type,
		    f"Agent '{agent_type}' is not installed: "
		    f"'{executable}' was not found on PATH",
		    actions=[
		        f"Install {agent_type} following its documentation",
		        f"Make sure '{executable}' is on PATH "
		        f"(verify with: {executable} --version)",
		    ],
		)


class AgentNotAuthorizedError(AgentUnavailableError):
	"""Raised when the agent is installed but lacks credentials."""

	title = "Agent not authorized"

	def __init__(self, agent_type: str, reason: str,
	             actions: list[str] | None = None) -> None:
		super().__init__(
		    agent_type,
		    f"Agent '{agent_type}' is installed but not authorized: {reason}",
		    actions=actions,
		)


class PreExecutionError(HarnessError):
	"""Raised when a pre-execution hook fails."""

	title = "Pre-execution hook failed"

	def __init__(self, hook: str, message: str) -> None:
		super().__init__(
		    f"Pre-execution '{hook}' failed: {message}",
		    actions=["Check the hook command and its output in the logs"],
		)
		self.hook = hook


class ReportError(HarnessError):
	"""Raised when a report cannot be produced from a results bundle."""

	title = "Report generation failed"

	def __init__(self, message: str, *, details: str | None = None) -> None:
		super().__init__(
		    message,
		    actions=[
		        "Point --from at a results.json written by agent-bench run",
		        "Use --format json or --format markdown",
		    ],
		    details=details,
		)


def format_user_error(error: HarnessError) -> str:
	"""Render a HarnessError as plain multi-line text."""
	lines = [error.title, "", error.message]
	if error.actions:
		lines += ["", "What to do:"]
		lines += [f"  {i}. {a}" for i, a in enumerate(error.actions, start=1)]
	if error.details:
		lines += ["", "Technical details:", f"  {error.details}"]
	return "\n".join(lines)


__all__ = [
    "HarnessError",
    "ConfigError",
    "WorkspaceErrorCode",
    "WorkspaceError",
    "WorkspaceLockedError",
    "AgentUnavailableError",
    "AgentNotInstalledError",
    "AgentNotAuthorizedError",
    "PreExecutionError",
    "ReportError",
    "format_user_error",
]
