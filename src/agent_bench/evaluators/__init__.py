"""
Pluggable evaluators.

Key modules:
    - base: Evaluator base class
    - git_diff: Change scope metrics from git
    - expected_diff: Similarity against the reference clone
    - agentic_judge: Agent-driven review against assertions
"""

from __future__ import annotations

from agent_bench.core.fanout import TaskRegistry

from .agentic_judge import AgenticJudgeEvaluator
from .base import Evaluator, EvaluatorSettings
from .expected_diff import ExpectedDiffEvaluator
from .git_diff import GitDiffEvaluator


def default_registry() -> TaskRegistry[Evaluator]:
	"""
	Build the registry of built-in evaluators.

	``agentic-judge-<x>`` and ``agentic-judge:<x>`` resolve to the agentic
	judge so several judges can run side by side under distinct names.
	"""
	registry: TaskRegistry[Evaluator] = TaskRegistry()
	registry.register(GitDiffEvaluator.name, GitDiffEvaluator)
	registry.register(ExpectedDiffEvaluator.name, ExpectedDiffEvaluator)
	registry.register(AgenticJudgeEvaluator.name, AgenticJudgeEvaluator)
	registry.register_prefix("agentic-judge-", AgenticJudgeEvaluator)
	registry.register_prefix("agentic-judge:", AgenticJudgeEvaluator)
	return registry


__all__ = [
    "Evaluator",
    "EvaluatorSettings",
    "GitDiffEvaluator",
    "ExpectedDiffEvaluator",
    "AgenticJudgeEvaluator",
    "default_registry",
]
