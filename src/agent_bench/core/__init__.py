"""Core harness logic.

This subpackage contains the workspace store, the process supervisor,
the output normalizer, the evaluation fan-out engine and artifact
storage. The run orchestrator lives in ``core.orchestrator`` and is
imported from there directly, since evaluators and hooks depend on the
modules re-exported here.

Key modules:
    - workspace: Per-run workspace provisioning via WorkspaceStore
    - supervisor: Bounded execution of the agent process
    - normalizer: Raw agent output to NormalizedLog
    - fanout: Concurrent evaluator and post-evaluation execution
    - storage: Results bundle and artifact persistence
    - orchestrator: End-to-end run driver
"""

from agent_bench.core.workspace import GitCommandError, WorkspaceStore, run_git
from agent_bench.core.supervisor import execute
from agent_bench.core.normalizer import NormalizerProfile, normalize
from agent_bench.core.fanout import (
    EvaluationContext,
    PostEvaluationContext,
    TaskRegistry,
    run_all,
    run_post_stage,
)
from agent_bench.core.storage import (
    artifact_manifest,
    load_results_bundle,
    save_agent_log,
    save_artifact,
    save_results_bundle,
)

__all__ = [
    # workspace
    "GitCommandError",
    "WorkspaceStore",
    "run_git",
    # supervisor
    "execute",
    # normalizer
    "NormalizerProfile",
    "normalize",
    # fanout
    "EvaluationContext",
    "PostEvaluationContext",
    "TaskRegistry",
    "run_all",
    "run_post_stage",
    # storage
    "artifact_manifest",
    "load_results_bundle",
    "save_agent_log",
    "save_artifact",
    "save_results_bundle",
]
