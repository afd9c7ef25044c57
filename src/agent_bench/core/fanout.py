"""
Evaluation fan-out engine.

Runs every configured evaluator (or post-evaluation hook) concurrently
against a shared read-only context and joins them all. A task that
raises, times out or whose preconditions are unmet becomes a ``skipped``
result in place, so each batch returns exactly one result per entry in
configuration order.
"""

from __future__ import annotations

import asyncio
import time
import traceback
from pathlib import Path
from typing import (
    Any,
    Awaitable,
    Callable,
    Generic,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    TypeVar,
    Union,
)

from pydantic import BaseModel, ConfigDict

from agent_bench.models.agent_log import NormalizedLog
from agent_bench.models.evaluation import (
    EvaluationResult,
    HookResult,
    PostEvaluationResult,
    ResultError,
)
from agent_bench.models.results import ResultsBundle
from agent_bench.models.settings import HarnessSettings
from agent_bench.models.test_case import (
    EvaluatorConfig,
    HookConfig,
    TestCaseConfig,
)
from agent_bench.utils.logging import get_logger

logger = get_logger(__name__)

C = TypeVar("C")
R = TypeVar("R")
T = TypeVar("T")


class EvaluationContext(BaseModel):
	"""Read-only view of a finished agent run handed to every evaluator."""

	model_config = ConfigDict(frozen=True)

	modified_dir: Path
	expected_dir: Optional[Path] = None
	artifacts_dir: Path
	evaluator_artifacts_dir: Path
	agent_log: NormalizedLog
	config: HarnessSettings
	test_case: TestCaseConfig


class PostEvaluationContext(BaseModel):
	"""Read-only view of a persisted bundle handed to post-evaluation hooks."""

	model_config = ConfigDict(frozen=True)

	bundle: ResultsBundle
	bundle_path: Path
	artifacts_dir: Path
	workspace_dir: Path
	config: HarnessSettings


class FanoutTask(Protocol[C, R]):
	"""Shape shared by evaluators and post-evaluation hooks."""

	def check_preconditions(self, context: C,
	                        config: Mapping[str, Any]) -> Optional[str]:
		...

	async def run(self, context: C, config: Mapping[str, Any]) -> R:
		...


class TaskRegistry(Generic[T]):
	"""
	Name to factory mapping with optional prefix matches.

	Exact names win over prefixes; prefixes are tried longest first so
	``agentic-judge-x`` style families can share one implementation.
	"""

	def __init__(self) -> None:
		self._exact: dict[str, Callable[[], T]] = {}
		self._prefixes: dict[str, Callable[[], T]] = {}

	def register(self, name: str, factory: Callable[[], T]) -> None:
		self._exact[name] = factory

	def register_prefix(self, prefix: str, factory: Callable[[], T]) -> None:
		self._prefixes[prefix] = factory

	def resolve(self, name: str) -> Optional[T]:
		"""Return a fresh task for ``name`` or None when unknown."""
		factory = self._exact.get(name)
		if factory is None:
			for prefix in sorted(self._prefixes, key=len, reverse=True):
				if name.startswith(prefix) and len(name) > len(prefix):
					factory = self._prefixes[prefix]
					break
		return factory() if factory is not None else None

	def names(self) -> list[str]:
		return sorted(self._exact) + sorted(f"{p}*" for p in self._prefixes)

	def __contains__(self, name: str) -> bool:
		return self.resolve(name) is not None


SkipFactory = Callable[[str, str, Optional[ResultError], int], Any]


def _elapsed_ms(t0: float) -> int:
	return max(int((time.monotonic() - t0) * 1000), 0)


async def _run_guarded(
    entry: Union[EvaluatorConfig, HookConfig],
    context: Any,
    registry: TaskRegistry[Any],
    skip: SkipFactory,
    stamp: Callable[[Any, str, int], Any],
    kind: str,
    timeout: Optional[float],
) -> Any:
	"""Run one entry; every failure mode becomes a skipped result."""
	t0 = time.monotonic()
	task = registry.resolve(entry.name)
	if task is None:
		logger.warning("unknown %s: %s", kind, entry.name)
		return skip(entry.name, f"Unknown {kind} type: {entry.name}", None, 0)
	try:
		reason = task.check_preconditions(context, entry.config)
		if reason:
			logger.info("%s %s skipped: %s", kind, entry.name, reason)
			return skip(entry.name, reason, None, _elapsed_ms(t0))
		coro: Awaitable[Any] = task.run(context, entry.config)
		if timeout:
			try:
				result = await asyncio.wait_for(coro, timeout=timeout)
			except asyncio.TimeoutError:
				msg = f"{kind} {entry.name} timed out after {timeout}s"
				logger.warning(msg)
				return skip(entry.name, msg, ResultError(message=msg),
				            _elapsed_ms(t0))
		else:
			result = await coro
		return stamp(result, entry.name, _elapsed_ms(t0))
	except Exception as exc:
		logger.warning("%s %s raised: %s", kind, entry.name, exc,
		               exc_info=True)
		err = ResultError(message=str(exc) or type(exc).__name__,
		                  stack_trace=traceback.format_exc())
		return skip(entry.name, f"{kind} error: {exc}", err, _elapsed_ms(t0))


def _skip_evaluation(name: str, message: str, error: Optional[ResultError],
                     duration_ms: int) -> EvaluationResult:
	return EvaluationResult.skipped(name, message, error=error,
	                                duration_ms=duration_ms)


def _stamp_evaluation(result: EvaluationResult, name: str,
                      duration_ms: int) -> EvaluationResult:
	if not isinstance(result, EvaluationResult):
		raise TypeError(f"expected EvaluationResult, got "
		                f"{type(result).__name__}")
	update: dict[str, Any] = {"evaluator": name}
	if not result.duration_ms:
		update["duration_ms"] = duration_ms
	return result.model_copy(update=update)


def _skip_post(name: str, message: str, error: Optional[ResultError],
               duration_ms: int) -> PostEvaluationResult:
	return PostEvaluationResult.skipped(name, message, error=error,
	                                    duration_ms=duration_ms)


def _stamp_post(result: HookResult, name: str,
                duration_ms: int) -> PostEvaluationResult:
	if not isinstance(result, HookResult):
		raise TypeError(f"expected HookResult, got {type(result).__name__}")
	data = result.model_dump()
	data["name"] = name
	if not result.duration_ms:
		data["duration_ms"] = duration_ms
	return PostEvaluationResult.model_validate(data)


async def _gather(
    entries: Sequence[Any],
    run_one: Callable[[Any], Awaitable[T]],
    max_parallel: Optional[int],
) -> list[T]:
	sem = asyncio.Semaphore(max_parallel or max(len(entries), 1))

	async def bounded(entry: Any) -> T:
		async with sem:
			return await run_one(entry)

	return list(await asyncio.gather(*(bounded(e) for e in entries)))


async def run_all(
    configs: Sequence[EvaluatorConfig],
    context: EvaluationContext,
    *,
    registry: TaskRegistry[Any],
    timeout: Optional[float] = None,
    max_parallel: Optional[int] = None,
) -> list[EvaluationResult]:
	"""
	Run all evaluators concurrently and wait for every one to settle.

	Parameters:
		configs: Evaluator entries in configuration order.
		context: Shared read-only evaluation context.
		registry: Evaluator registry used to resolve names.
		timeout: Optional per-evaluator bound in seconds.
		max_parallel: Optional cap on concurrently running evaluators.

	Returns:
		One EvaluationResult per entry, in configuration order.
	"""
	logger.info("running %d evaluator(s)", len(configs))

	async def run_one(entry: EvaluatorConfig) -> EvaluationResult:
		return await _run_guarded(entry, context, registry, _skip_evaluation,
		                          _stamp_evaluation, "evaluator", timeout)

	results = await _gather(configs, run_one, max_parallel)
	for res in results:
		logger.info("evaluator %s: %s %s", res.evaluator, res.status.value,
		            res.message)
	return results


async def run_post_stage(
    configs: Sequence[HookConfig],
    context: PostEvaluationContext,
    *,
    registry: TaskRegistry[Any],
    timeout: Optional[float] = None,
) -> list[PostEvaluationResult]:
	"""
	Run all post-evaluation hooks concurrently against a persisted bundle.

	Parameters:
		configs: Post-evaluation entries in configuration order.
		context: Shared read-only post-evaluation context.
		registry: Hook registry used to resolve names.
		timeout: Optional per-hook bound in seconds.

	Returns:
		One PostEvaluationResult per entry, in configuration order.
	"""
	if not configs:
		return []
	logger.info("running %d post-evaluation hook(s)", len(configs))

	async def run_one(entry: HookConfig) -> PostEvaluationResult:
		return await _run_guarded(entry, context, registry, _skip_post,
		                          _stamp_post, "post-evaluation", timeout)

	return await _gather(configs, run_one, None)


__all__ = [
    "EvaluationContext",
    "PostEvaluationContext",
    "FanoutTask",
    "TaskRegistry",
    "run_all",
    "run_post_stage",
]
