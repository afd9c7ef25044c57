"""
Output normalizer.

Turns the raw text an agent CLI printed into a NormalizedLog. Parsing is
best effort: each extractor is independent and falls back to a default,
so a log is always produced. ``normalize`` is a pure function of its
inputs; two calls with the same arguments give identical logs.
"""

from __future__ import annotations

import json
import math
import platform
import re
import sys
from typing import Callable, Optional, Pattern, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from agent_bench import __version__
from agent_bench.models.agent_log import (
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
from agent_bench.models.execution import ExecutionOutcome
from agent_bench.utils.logging import get_logger
from agent_bench.utils.parsing import strip_ansi

logger = get_logger(__name__)

T = TypeVar("T")

NO_OUTPUT = "No output captured"

TOOL_LINE_RE = re.compile(r"\[TOOL:\s*(\w+)\]\s*(.*)")
INPUT_TOKENS_RE = re.compile(r"(?:[Ii]nput|[Pp]rompt)[_\s]+tokens?:\s*(\d+)")
OUTPUT_TOKENS_RE = re.compile(
    r"(?:[Oo]utput|[Cc]ompletion)[_\s]+tokens?:\s*(\d+)")


class NormalizerProfile(BaseModel):
	"""Agent-specific parsing patterns and defaults."""

	model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

	provider: str = "unknown"
	default_model: str = "unknown"
	started_message: str = "Agent CLI started"
	model_patterns: tuple[Pattern[str], ...] = ()
	version_patterns: tuple[Pattern[str], ...] = ()
	tool_patterns: tuple[Pattern[str], ...] = (TOOL_LINE_RE, )
	response_pattern: Optional[Pattern[str]] = None
	input_cost_per_million: Optional[float] = None
	output_cost_per_million: Optional[float] = None
	sampling_parameters: dict[str, float] = Field(default_factory=dict)


class NormalizeRequest(BaseModel):
	"""The parts of the original request the log records."""

	model_config = ConfigDict(frozen=True)

	agent_name: str
	adapter_version: str = "1.0.0"
	model: Optional[str] = None
	working_directory: str = ""


def _first_group(text: str, patterns: tuple[Pattern[str], ...]) -> str | None:
	for pattern in patterns:
		m = pattern.search(text)
		if m:
			return m.group(1)
	return None


def extract_model(text: str, patterns: tuple[Pattern[str], ...],
                  fallback: str) -> str:
	"""Return the first model id matched by ``patterns``, else ``fallback``."""
	return _first_group(text, patterns) or fallback


def extract_version(text: str, patterns: tuple[Pattern[str], ...]) -> str:
	"""Return the first version matched by ``patterns``, else ``unknown``."""
	return _first_group(text, patterns) or "unknown"


def extract_token_counts(text: str) -> tuple[int | None, int | None]:
	"""
	Find reported token counts.

	Recognises ``Input tokens: N`` / ``Prompt tokens: N`` and
	``Output tokens: N`` / ``Completion tokens: N``.

	Returns:
		``(prompt_tokens, completion_tokens)``, each None when absent.
	"""
	m_in = INPUT_TOKENS_RE.search(text)
	m_out = OUTPUT_TOKENS_RE.search(text)
	return (int(m_in.group(1)) if m_in else None,
	        int(m_out.group(1)) if m_out else None)


def estimate_tokens(text: str) -> tuple[int, int]:
	"""Character-count heuristic: len/4 prompt, len/8 completion."""
	return math.ceil(len(text) / 4), math.ceil(len(text) / 8)


def extract_tool_calls(
    text: str,
    patterns: tuple[Pattern[str], ...] = (TOOL_LINE_RE, )
) -> tuple[list[ToolCall], list[str]]:
	"""
	Split output lines into tool invocations and remaining content.

	Parameters:
		text: ANSI-free output.
		patterns: Regexes capturing ``(name, arguments)``.

	Returns:
		``(tool_calls, content_lines)``; call ids are ``call_<n>`` in
		order of appearance.
	"""
	calls: list[ToolCall] = []
	content: list[str] = []
	for line in text.split("\n"):
		stripped = line.strip()
		if not stripped:
			continue
		match = None
		for pattern in patterns:
			match = pattern.search(stripped)
			if match:
				break
		if match:
			calls.append(
			    ToolCall(
			        id=f"call_{len(calls) + 1}",
			        function=ToolFunction(
			            name=match.group(1),
			            arguments=json.dumps({"input": match.group(2).strip()}),
			        ),
			    ))
		else:
			content.append(line.rstrip())
	return calls, content


def _safe(label: str, fn: Callable[[], T], default: T) -> T:
	try:
		return fn()
	except Exception:
		logger.debug("extractor %s failed, using default", label,
		             exc_info=True)
		return default


def _build_messages(text: str, raw: str, outcome: ExecutionOutcome,
                    profile: NormalizerProfile) -> list[LogMessage]:
	started = outcome.started_at.isoformat()
	completed = outcome.completed_at.isoformat()
	system = LogMessage(role="system", content=profile.started_message,
	                    timestamp=started)

	def _parse() -> list[LogMessage]:
		body = text
		responses: list[str] = []
		if profile.response_pattern is not None:
			kept = []
			for line in text.split("\n"):
				m = profile.response_pattern.search(line.strip())
				if m:
					responses.append(m.group(1).strip())
				else:
					kept.append(line)
			body = "\n".join(kept)
		calls, lines = extract_tool_calls(body, profile.tool_patterns)
		content = "\n".join(lines).strip()
		if not content and not calls:
			return []
		out = [
		    LogMessage(
		        role="assistant",
		        content=content or raw or NO_OUTPUT,
		        timestamp=completed,
		        tool_calls=calls or None,
		    )
		]
		for i, resp in enumerate(responses):
			call_id = calls[i].id if i < len(calls) else None
			out.append(
			    LogMessage(role="tool", content=resp, timestamp=completed,
			               tool_call_id=call_id))
		return out

	parsed = _safe("messages", _parse, [])
	if not parsed:
		parsed = [
		    LogMessage(role="assistant", content=raw or NO_OUTPUT,
		               timestamp=completed)
		]
	return [system, *parsed]


def _usage(text: str, profile: NormalizerProfile) -> UsageInfo:
	reported_in, reported_out = _safe("tokens",
	                                  lambda: extract_token_counts(text),
	                                  (None, None))
	est_in, est_out = estimate_tokens(text)
	prompt = reported_in if reported_in else est_in
	completion = reported_out if reported_out else est_out
	cost = None
	if (profile.input_cost_per_million is not None
	    and profile.output_cost_per_million is not None):
		cost = round(
		    prompt / 1_000_000 * profile.input_cost_per_million +
		    completion / 1_000_000 * profile.output_cost_per_million, 8)
	return UsageInfo(
	    prompt_tokens=prompt,
	    completion_tokens=completion,
	    total_tokens=prompt + completion,
	    estimated_cost_usd=cost,
	)


def normalize(
    outcome: ExecutionOutcome,
    request: NormalizeRequest,
    *,
    profile: NormalizerProfile = NormalizerProfile(),
) -> NormalizedLog:
	"""
	Build the canonical log for one execution.

	Parameters:
		outcome: Supervisor result.
		request: Agent name, requested model and working directory.
		profile: Agent-specific patterns and pricing.

	Returns:
		NormalizedLog; never raises for unparseable output.
	"""
	raw = outcome.output or ""
	text = _safe("strip_ansi", lambda: strip_ansi(raw), raw)
	fallback_model = request.model or profile.default_model
	model_name = _safe(
	    "model", lambda: extract_model(text, profile.model_patterns,
	                                   fallback_model), fallback_model)
	version = _safe("version",
	                lambda: extract_version(text, profile.version_patterns),
	                "unknown")

	return NormalizedLog(
	    agent=AgentInfo(name=request.agent_name, version=version,
	                    adapter_version=request.adapter_version),
	    model=ModelInfo(name=model_name, provider=profile.provider,
	                    parameters=dict(profile.sampling_parameters)),
	    execution=ExecutionInfo(
	        started_at=outcome.started_at.isoformat(),
	        completed_at=outcome.completed_at.isoformat(),
	        duration_ms=outcome.duration_ms,
	        exit_code=outcome.exit_code,
	        status=outcome.status,
	        truncated=outcome.truncated,
	    ),
	    messages=_build_messages(text, raw if raw.strip() else "", outcome,
	                             profile),
	    usage=_usage(text, profile),
	    errors=list(outcome.errors),
	    environment=EnvironmentInfo(
	        os=f"{sys.platform}-{platform.machine()}",
	        python_version=platform.python_version(),
	        harness_version=__version__,
	        working_directory=request.working_directory,
	    ),
	)


__all__ = [
    "NO_OUTPUT",
    "TOOL_LINE_RE",
    "NormalizerProfile",
    "NormalizeRequest",
    "extract_model",
    "extract_version",
    "extract_token_counts",
    "estimate_tokens",
    "extract_tool_calls",
    "normalize",
]
