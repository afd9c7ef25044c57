"""
Pre-execution and post-evaluation hooks.

Key modules:
    - base: Hook base class and PreExecutionContext
    - script: Command hooks for both phases
    - webhook: HTTP delivery of the results bundle
    - database: JSON-lines export of the results bundle
"""

from __future__ import annotations

from agent_bench.core.fanout import TaskRegistry

from .base import Hook, PreExecutionContext
from .database import DatabasePostEvaluation
from .script import ScriptPostEvaluation, ScriptPreExecution
from .webhook import WebhookPostEvaluation


def pre_execution_registry() -> TaskRegistry[Hook]:
	"""Hooks available before the agent runs."""
	registry: TaskRegistry[Hook] = TaskRegistry()
	registry.register(ScriptPreExecution.name, ScriptPreExecution)
	return registry


def post_evaluation_registry() -> TaskRegistry[Hook]:
	"""Hooks available after the bundle is written."""
	registry: TaskRegistry[Hook] = TaskRegistry()
	registry.register(ScriptPostEvaluation.name, ScriptPostEvaluation)
	registry.register(WebhookPostEvaluation.name, WebhookPostEvaluation)
	registry.register(DatabasePostEvaluation.name, DatabasePostEvaluation)
	return registry


__all__ = [
    "Hook",
    "PreExecutionContext",
    "ScriptPreExecution",
    "ScriptPostEvaluation",
    "WebhookPostEvaluation",
    "DatabasePostEvaluation",
    "pre_execution_registry",
    "post_evaluation_registry",
]
