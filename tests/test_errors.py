from agent_bench.errors import (
	AgentNotAuthorizedError,
	AgentNotInstalledError,
	AgentUnavailableError,
	ConfigError,
	HarnessError,
	PreExecutionError,
	ReportError,
	WorkspaceError,
	WorkspaceErrorCode,
	WorkspaceLockedError,
	format_user_error,
)


def test_config_error_message_names_path():
	err = ConfigError("bad field", path="case.yaml")
	assert err.message == "Failed to load config (case.yaml): bad field"
	assert err.path == "case.yaml"
	assert str(err) == err.message
	assert err.actions


def test_workspace_error_default_actions():
	err = WorkspaceError(WorkspaceErrorCode.CLONE_FAILED, "clone failed")
	assert err.code == WorkspaceErrorCode.CLONE_FAILED
	assert any("git clone" in a for a in err.actions)


def test_workspace_locked_error():
	err = WorkspaceLockedError("/ws/r1/.lock", 4242)
	assert isinstance(err, WorkspaceError)
	assert err.code == WorkspaceErrorCode.WORKSPACE_LOCKED
	assert "4242" in err.message
	assert err.title == "Workspace is locked"


def test_agent_errors_share_base():
	missing = AgentNotInstalledError("claude-code", "claude")
	unauthorized = AgentNotAuthorizedError("codex-cli", "OPENAI_API_KEY not set")
	for err in (missing, unauthorized):
		assert isinstance(err, AgentUnavailableError)
		assert isinstance(err, HarnessError)
	assert "'claude' was not found on PATH" in missing.message
	assert missing.executable == "claude"
	assert unauthorized.agent_type == "codex-cli"


def test_pre_execution_error():
	err = PreExecutionError("script", "Script exited with code 1")
	assert err.message == "Pre-execution 'script' failed: Script exited with code 1"
	assert err.hook == "script"


def test_report_error():
	err = ReportError("Unknown report format: html",
	                  details="Supported formats: json, markdown")
	assert isinstance(err, HarnessError)
	assert err.title == "Report generation failed"
	assert "Use --format json or --format markdown" in err.actions
	assert err.details == "Supported formats: json, markdown"


def test_format_user_error():
	err = HarnessError("Something broke", actions=["Do this", "Then that"],
	                   details="trace")
	assert format_user_error(err) == "\n".join([
	    "Evaluation aborted",
	    "",
	    "Something broke",
	    "",
	    "What to do:",
	    "  1. Do this",
	    "  2. Then that",
	    "",
	    "Technical details:",
	    "  trace",
	])


def test_format_user_error_without_actions():
	text = format_user_error(HarnessError("plain"))
	assert "What to do" not in text
	assert "Technical details" not in text
