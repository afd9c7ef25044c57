"""
Test case loading.

Reads a YAML or JSON test case document, validates it into a
TestCaseConfig and resolves the agent's ``prompt_file`` relative to the
document's directory.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from agent_bench.errors import ConfigError
from agent_bench.models.test_case import MAX_PROMPT_LENGTH, TestCaseConfig
from agent_bench.utils.logging import get_logger
from agent_bench.utils.paths import ensure_within

logger = get_logger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def read_document(path: Path) -> dict[str, Any]:
	"""
	Parse a YAML or JSON document into a mapping.

	Raises:
		ConfigError: If the file is missing, unparseable or not a mapping.
	"""
	try:
		text = path.read_text(encoding="utf-8")
	except OSError as exc:
		raise ConfigError(f"cannot read file: {exc.strerror or exc}",
		                  path=path) from exc
	try:
		if path.suffix.lower() in YAML_SUFFIXES:
			data = yaml.safe_load(text)
		else:
			data = json.loads(text)
	except (yaml.YAMLError, ValueError) as exc:
		raise ConfigError(f"invalid syntax: {exc}", path=path) from exc
	if not isinstance(data, dict):
		raise ConfigError("top level must be a mapping", path=path)
	return data


def _flatten_agent(data: dict[str, Any]) -> dict[str, Any]:
	"""Accept ``agent.config`` maps by merging them into the agent entry."""
	agent = data.get("agent")
	if isinstance(agent, dict) and isinstance(agent.get("config"), dict):
		merged = {k: v for k, v in agent.items() if k != "config"}
		for key, value in agent["config"].items():
			merged.setdefault(key, value)
		data = {**data, "agent": merged}
	return data


def format_validation_error(exc: ValidationError) -> str:
	parts = []
	for err in exc.errors():
		loc = ".".join(str(p) for p in err.get("loc", ()))
		parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg"))
	return "; ".join(parts)


def _read_prompt_file(config_dir: Path, relative: str,
                      source: Path) -> str:
	try:
		prompt_path = ensure_within(config_dir, config_dir / relative)
	except ValueError as exc:
		raise ConfigError(f"prompt_file escapes the config directory: "
		                  f"{relative}", path=source) from exc
	try:
		text = prompt_path.read_text(encoding="utf-8")
	except OSError as exc:
		raise ConfigError(
		    f"failed to load prompt from file \"{relative}\": "
		    f"{exc.strerror or exc}",
		    path=source) from exc
	if not text.strip():
		raise ConfigError(f"prompt file is empty: {relative}", path=source)
	if len(text) > MAX_PROMPT_LENGTH:
		raise ConfigError(
		    f"prompt file exceeds {MAX_PROMPT_LENGTH} characters: {relative}",
		    path=source)
	return text


def load_test_case(path: Path | str) -> TestCaseConfig:
	"""
	Load and validate a test case.

	Parameters:
		path: YAML (.yaml/.yml) or JSON document.

	Returns:
		TestCaseConfig whose agent prompt is always populated.

	Raises:
		ConfigError: On any read, parse or validation failure.
	"""
	source = Path(path)
	data = _flatten_agent(read_document(source))
	try:
		config = TestCaseConfig.model_validate(data)
	except ValidationError as exc:
		raise ConfigError(format_validation_error(exc), path=source) from exc

	agent = config.agent
	if agent.prompt_file:
		text = _read_prompt_file(source.parent.resolve(), agent.prompt_file,
		                         source)
		config = config.model_copy(
		    update={"agent": agent.model_copy(update={"prompt": text})})
		logger.debug("loaded prompt from %s", agent.prompt_file)
	return config


__all__ = [
    "read_document",
    "load_test_case",
    "format_validation_error",
]
