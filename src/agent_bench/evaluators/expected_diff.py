"""
Expected diff evaluator.

Compares the agent's modified clone with the reference clone file by
file and passes when the aggregate similarity reaches the threshold.
"""

from __future__ import annotations

import difflib
from pathlib import Path
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from agent_bench.core.fanout import EvaluationContext
from agent_bench.models.evaluation import EvaluationResult, EvaluationStatus
from agent_bench.utils.logging import get_logger

from .base import Evaluator

logger = get_logger(__name__)

REPORT_FILE_NAME = "expected-diff.json"
DEFAULT_THRESHOLD = 0.80


class ExpectedDiffConfig(BaseModel):
	model_config = ConfigDict(extra="forbid")

	threshold: float = Field(DEFAULT_THRESHOLD, ge=0.0, le=1.0)


class FileSimilarity(BaseModel):
	path: str
	similarity: float
	status: Literal["matched", "changed", "added", "removed"]


def list_files(root: Path) -> list[str]:
	"""Relative POSIX paths of all files under ``root``, skipping .git."""
	files = []
	for p in root.rglob("*"):
		rel = p.relative_to(root)
		if ".git" in rel.parts or not p.is_file():
			continue
		files.append(rel.as_posix())
	return sorted(files)


def text_similarity(a: str, b: str) -> float:
	"""Similarity ratio in [0, 1]; identical inputs give 1.0."""
	if a == b:
		return 1.0
	return difflib.SequenceMatcher(None, a, b).ratio()


def compare_trees(modified: Path, expected: Path) -> list[FileSimilarity]:
	"""Compare two trees; files present on one side only score 0."""
	modified_files = list_files(modified)
	expected_files = set(list_files(expected))
	results: list[FileSimilarity] = []
	for rel in modified_files:
		if rel not in expected_files:
			results.append(
			    FileSimilarity(path=rel, similarity=0.0, status="added"))
			continue
		try:
			score = text_similarity(
			    (modified / rel).read_text(encoding="utf-8"),
			    (expected / rel).read_text(encoding="utf-8"),
			)
		except (OSError, UnicodeDecodeError):
			same = (modified / rel).read_bytes() == (expected /
			                                         rel).read_bytes()
			score = 1.0 if same else 0.0
		results.append(
		    FileSimilarity(path=rel,
		                   similarity=score,
		                   status="matched" if score == 1.0 else "changed"))
	seen = set(modified_files)
	for rel in sorted(expected_files - seen):
		results.append(
		    FileSimilarity(path=rel, similarity=0.0, status="removed"))
	return results


def aggregate(files: list[FileSimilarity]) -> dict[str, float | int]:
	"""
	Aggregate per-file scores.

	The mean similarity of files present on both sides is reduced by
	the share of files present on only one side. Two empty trees are
	identical.
	"""
	counts = {
	    s: sum(1 for f in files if f.status == s)
	    for s in ("matched", "changed", "added", "removed")
	}
	comparable = [f for f in files if f.status in ("matched", "changed")]
	if not files:
		score = 1.0
	elif not comparable:
		score = 0.0
	else:
		mean = sum(f.similarity for f in comparable) / len(comparable)
		penalty = (counts["added"] + counts["removed"]) / len(files)
		score = mean - penalty
	return {
	    "aggregate_similarity": max(0.0, min(1.0, score)),
	    "files_matched": counts["matched"],
	    "files_changed": counts["changed"],
	    "files_added": counts["added"],
	    "files_removed": counts["removed"],
	}


class ExpectedDiffEvaluator(Evaluator):
	name = "expected-diff"
	description = ("Compares the agent's output against the expected "
	               "reference branch file by file.")
	requires_expected_reference = True
	config_model = ExpectedDiffConfig

	def check_preconditions(
	    self,
	    context: EvaluationContext,
	    config: Mapping[str, Any] | None = None,
	) -> Optional[str]:
		reason = super().check_preconditions(context, config)
		if reason:
			return reason
		if not context.expected_dir.is_dir():
			return ("Expected reference directory not available or not "
			        "accessible")
		return None

	async def evaluate(self, context: EvaluationContext,
	                   config: ExpectedDiffConfig) -> EvaluationResult:
		files = compare_trees(context.modified_dir, context.expected_dir)
		summary = aggregate(files)
		threshold = config.threshold
		similarity = summary["aggregate_similarity"]
		passed = similarity >= threshold

		artifact = self.save_artifact(
		    context,
		    REPORT_FILE_NAME,
		    {
		        "summary": summary,
		        "threshold": threshold,
		        "file_details": [f.model_dump() for f in files],
		    },
		    type="diff-report",
		    description="Detailed file-by-file similarity comparison",
		)

		parts = [
		    f"Similarity: {similarity * 100:.1f}% "
		    f"(threshold: {threshold * 100:.0f}%)",
		    f"Files: {summary['files_matched']} matched, "
		    f"{summary['files_changed']} changed",
		]
		if summary["files_added"]:
			parts.append(f"{summary['files_added']} added")
		if summary["files_removed"]:
			parts.append(f"{summary['files_removed']} removed")
		return self.result(
		    EvaluationStatus.PASSED if passed else EvaluationStatus.FAILED,
		    " | ".join(parts),
		    metrics={
		        **summary, "file_similarities": [f.model_dump() for f in files]
		    },
		    assertions={"threshold": threshold},
		    artifacts=[artifact],
		)


__all__ = [
    "ExpectedDiffEvaluator",
    "ExpectedDiffConfig",
    "FileSimilarity",
    "list_files",
    "text_similarity",
    "compare_trees",
    "aggregate",
]
