"""
Artifact persistence.

Writes normalized logs, the results bundle and evaluator artifacts under
a run's artifacts directory, and lists what ended up there.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from agent_bench.models.agent_log import NormalizedLog
from agent_bench.models.results import ResultsBundle
from agent_bench.utils.logging import get_logger
from agent_bench.utils.paths import ensure_within

logger = get_logger(__name__)

RESULTS_FILE_NAME = "results.json"
POST_EVALUATIONS_FILE_NAME = "post-evaluations.json"


def _write_text(path: Path, content: str) -> Path:
	path.parent.mkdir(parents=True, exist_ok=True)
	path.write_text(content, encoding="utf-8")
	return path


def _dump(model: BaseModel) -> str:
	return model.model_dump_json(indent=2, exclude_none=True)


def save_agent_log(log: NormalizedLog, artifacts_dir: Path,
                   agent_name: str) -> Path:
	"""
	Persist a normalized log as ``<agent_name>.log.json``.

	Parameters:
		log: Normalized agent log.
		artifacts_dir: Run artifacts directory.
		agent_name: Adapter name used for the file name.

	Returns:
		Path of the written file.
	"""
	path = ensure_within(artifacts_dir, artifacts_dir / f"{agent_name}.log.json")
	logger.debug("writing agent log to %s", path)
	return _write_text(path, _dump(log))


def save_results_bundle(bundle: ResultsBundle, artifacts_dir: Path) -> Path:
	"""Write the results bundle to ``results.json`` and return its path."""
	path = artifacts_dir / RESULTS_FILE_NAME
	logger.debug("writing results bundle to %s", path)
	return _write_text(path, _dump(bundle))


def load_results_bundle(path: Path | str) -> ResultsBundle:
	"""Read a results bundle written by save_results_bundle."""
	return ResultsBundle.model_validate_json(
	    Path(path).read_text(encoding="utf-8"))


def save_artifact(content: str | bytes | dict[str, Any] | list[Any],
                  name: str, artifacts_dir: Path) -> Path:
	"""
	Write an arbitrary artifact under the artifacts directory.

	Dicts and lists are serialized as indented JSON.

	Parameters:
		content: Text, bytes or a JSON-serializable container.
		name: Relative file name, may include subdirectories.
		artifacts_dir: Run artifacts directory.

	Returns:
		Path of the written file.

	Raises:
		ValueError: If ``name`` escapes the artifacts directory.
	"""
	path = ensure_within(artifacts_dir, artifacts_dir / name)
	if isinstance(content, bytes):
		path.parent.mkdir(parents=True, exist_ok=True)
		path.write_bytes(content)
		return path
	if isinstance(content, (dict, list)):
		content = json.dumps(content, indent=2, default=str)
	return _write_text(path, content)


def artifact_manifest(artifacts_dir: Path) -> list[str]:
	"""Return every file under ``artifacts_dir`` as sorted POSIX paths."""
	if not artifacts_dir.is_dir():
		return []
	return sorted(
	    p.relative_to(artifacts_dir).as_posix()
	    for p in artifacts_dir.rglob("*")
	    if p.is_file())


__all__ = [
    "RESULTS_FILE_NAME",
    "POST_EVALUATIONS_FILE_NAME",
    "save_agent_log",
    "save_results_bundle",
    "load_results_bundle",
    "save_artifact",
    "artifact_manifest",
]
