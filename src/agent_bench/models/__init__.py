"""
Agent bench models.

This subpackage contains Pydantic models for settings, test case
configuration, workspaces, executions, normalized logs and results.

Key models:
    - HarnessSettings: Harness settings loaded from environment
    - RunParams: Parameters for one CLI invocation
    - TestCaseConfig: Validated test case document
    - Workspace: Provisioned per-run directory tree
    - ExecutionOutcome: Result of supervising the agent process
    - NormalizedLog: Canonical agent log
    - EvaluationResult: One evaluator's verdict
    - ResultsBundle: Final persisted record of a run
"""

from .settings import HarnessSettings, load_env
from .run_params import RunParams
from .test_case import (
    AgentSpec,
    AgentSpecBase,
    ClaudeCodeAgentSpec,
    CodexCliAgentSpec,
    CopilotCliAgentSpec,
    EvaluatorConfig,
    HookConfig,
    TestCaseConfig,
)
from .workspace import LockInfo, SourceRef, Workspace, WorkspacePaths
from .execution import ErrorRecord, ExecutionOutcome, ExecutionStatus
from .agent_log import (
    LOG_SCHEMA_VERSION,
    AgentInfo,
    EnvironmentInfo,
    ExecutionInfo,
    LogMessage,
    ModelInfo,
    NormalizedLog,
    ToolCall,
    ToolFunction,
    UsageInfo,
)
from .evaluation import (
    EvaluationArtifact,
    EvaluationResult,
    EvaluationStatus,
    HookResult,
    HookStatus,
    PostEvaluationResult,
    PreExecutionResult,
    ResultError,
    utc_timestamp,
)
from .run_progress import RunProgress, RunStage
from .results import (
    BUNDLE_VERSION,
    AgentExecution,
    ArtifactsManifest,
    BundleEnvironment,
    BundleSummary,
    ExecutionMetadata,
    ResultsBundle,
    RunOutcome,
    TestCaseMetadata,
    build_summary,
)

__all__ = [
    "HarnessSettings",
    "load_env",
    "RunParams",
    "AgentSpec",
    "AgentSpecBase",
    "ClaudeCodeAgentSpec",
    "CodexCliAgentSpec",
    "CopilotCliAgentSpec",
    "EvaluatorConfig",
    "HookConfig",
    "TestCaseConfig",
    "LockInfo",
    "SourceRef",
    "Workspace",
    "WorkspacePaths",
    "ErrorRecord",
    "ExecutionOutcome",
    "ExecutionStatus",
    "LOG_SCHEMA_VERSION",
    "AgentInfo",
    "EnvironmentInfo",
    "ExecutionInfo",
    "LogMessage",
    "ModelInfo",
    "NormalizedLog",
    "ToolCall",
    "ToolFunction",
    "UsageInfo",
    "EvaluationArtifact",
    "EvaluationResult",
    "EvaluationStatus",
    "HookResult",
    "HookStatus",
    "PostEvaluationResult",
    "PreExecutionResult",
    "ResultError",
    "utc_timestamp",
    "RunProgress",
    "RunStage",
    "BUNDLE_VERSION",
    "AgentExecution",
    "ArtifactsManifest",
    "BundleEnvironment",
    "BundleSummary",
    "ExecutionMetadata",
    "ResultsBundle",
    "RunOutcome",
    "TestCaseMetadata",
    "build_summary",
]
