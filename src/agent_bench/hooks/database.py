"""
Database post-evaluation.

Exports the results bundle, or a trimmed summary of it, as one JSON line
per run so results can be accumulated for trend analysis.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from agent_bench.core.fanout import PostEvaluationContext
from agent_bench.models.evaluation import (
    HookResult,
    HookStatus,
    PostEvaluationResult,
    utc_timestamp,
)
from agent_bench.models.results import ResultsBundle
from agent_bench.utils.logging import get_logger

from .base import Hook

logger = get_logger(__name__)

SUMMARY_EVALUATOR_FIELDS = {"evaluator", "status", "metrics", "message",
                            "duration_ms", "timestamp"}


class DatabaseConfig(BaseModel):
	model_config = ConfigDict(extra="forbid")

	type: Literal["json-file"] = "json-file"
	output_path: str
	include_full_bundle: bool = True
	append: bool = True


def bundle_summary(bundle: ResultsBundle) -> dict[str, Any]:
	"""Bundle without evaluator assertions, artifacts and errors."""
	data = bundle.model_dump(mode="json", exclude_none=True)
	data["evaluators"] = [
	    {k: v for k, v in e.items() if k in SUMMARY_EVALUATOR_FIELDS}
	    for e in data["evaluators"]
	]
	data["agent"].pop("errors", None)
	return data


class DatabasePostEvaluation(Hook):
	"""Writes a JSON-lines record of the run."""

	name = "database"
	description = "Exports evaluation results to a JSON-lines file"
	config_model = DatabaseConfig
	result_model = PostEvaluationResult

	async def execute(self, context: PostEvaluationContext,
	                  config: DatabaseConfig) -> HookResult:
		output = Path(config.output_path).resolve()
		record = (context.bundle.model_dump(mode="json", exclude_none=True)
		          if config.include_full_bundle else bundle_summary(
		              context.bundle))
		record["exported_at"] = utc_timestamp()
		try:
			output.parent.mkdir(parents=True, exist_ok=True)
			with output.open("a" if config.append else "w",
			                 encoding="utf-8") as fh:
				fh.write(json.dumps(record) + "\n")
		except OSError as exc:
			logger.warning("database export to %s failed: %s", output, exc)
			return self.result(HookStatus.FAILED, "Failed to export results",
			                   error=str(exc))
		return self.result(
		    HookStatus.SUCCESS,
		    f"Successfully exported results to {output}",
		    metadata={
		        "output_path": str(output),
		        "type": config.type,
		        "append": config.append,
		    },
		)


__all__ = ["DatabasePostEvaluation", "DatabaseConfig", "bundle_summary"]
