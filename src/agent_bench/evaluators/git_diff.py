"""
Git diff evaluator.

Measures the scope of the agent's changes in the modified clone: files
touched, lines added and removed, and how evenly the changes spread
across files (Shannon entropy). Untracked files count as additions.
"""

from __future__ import annotations

import difflib
import math
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from agent_bench.core.fanout import EvaluationContext
from agent_bench.core.workspace import run_git
from agent_bench.models.evaluation import EvaluationResult, EvaluationStatus
from agent_bench.utils.logging import get_logger

from .base import Evaluator

logger = get_logger(__name__)

PATCH_FILE_NAME = "git-diff.patch"


class GitDiffAssertions(BaseModel):
	model_config = ConfigDict(extra="forbid")

	max_files_changed: Optional[int] = Field(default=None, ge=0)
	max_lines_added: Optional[int] = Field(default=None, ge=0)
	max_lines_removed: Optional[int] = Field(default=None, ge=0)
	max_total_changes: Optional[int] = Field(default=None, ge=0)
	min_change_entropy: Optional[float] = Field(default=None, ge=0)
	max_change_entropy: Optional[float] = Field(default=None, ge=0)


class GitDiffConfig(BaseModel):
	model_config = ConfigDict(extra="forbid")

	base_commit: str = Field("HEAD", description="Commit to diff against")
	assertions: Optional[GitDiffAssertions] = None


class FileChange(BaseModel):
	path: str
	additions: int = 0
	deletions: int = 0

	@property
	def changes(self) -> int:
		return self.additions + self.deletions


def parse_numstat(text: str) -> list[FileChange]:
	"""Parse ``git diff --numstat`` output; binary files count as zero."""
	changes: list[FileChange] = []
	for line in text.splitlines():
		parts = line.split("\t", 2)
		if len(parts) != 3:
			continue
		added, removed, path = parts
		changes.append(
		    FileChange(
		        path=path,
		        additions=int(added) if added.isdigit() else 0,
		        deletions=int(removed) if removed.isdigit() else 0,
		    ))
	return changes


def change_entropy(changes: list[FileChange]) -> float:
	"""
	Shannon entropy (bits) of the per-file change distribution.

	0 means all changes sit in one file; higher values mean the changes
	are spread over more files.
	"""
	total = sum(c.changes for c in changes)
	if total == 0:
		return 0.0
	entropy = 0.0
	for c in changes:
		if c.changes > 0:
			p = c.changes / total
			entropy -= p * math.log2(p)
	return entropy


def check_assertions(metrics: dict[str, Any],
                     assertions: GitDiffAssertions) -> list[str]:
	"""Return a violation message for each assertion the metrics break."""
	violations: list[str] = []
	for key in ("files_changed", "lines_added", "lines_removed",
	            "total_changes"):
		limit = getattr(assertions, f"max_{key}")
		if limit is not None and metrics[key] > limit:
			violations.append(
			    f"{key} ({metrics[key]}) exceeds max_{key} ({limit})")
	entropy = metrics["change_entropy"]
	if (assertions.min_change_entropy is not None
	    and entropy < assertions.min_change_entropy):
		violations.append(f"change_entropy ({entropy:.2f}) below "
		                  f"min_change_entropy "
		                  f"({assertions.min_change_entropy})")
	if (assertions.max_change_entropy is not None
	    and entropy > assertions.max_change_entropy):
		violations.append(f"change_entropy ({entropy:.2f}) exceeds "
		                  f"max_change_entropy "
		                  f"({assertions.max_change_entropy})")
	return violations


def _untracked_patch(repo: Path, rel_path: str) -> tuple[FileChange, str]:
	data = (repo / rel_path).read_bytes()
	try:
		text = data.decode("utf-8")
	except UnicodeDecodeError:
		return (FileChange(path=rel_path),
		        f"Binary files /dev/null and b/{rel_path} differ\n")
	lines = text.splitlines(keepends=True)
	diff = difflib.unified_diff([], lines, fromfile="/dev/null",
	                            tofile=f"b/{rel_path}")
	header = f"diff --git a/{rel_path} b/{rel_path}\nnew file mode 100644\n"
	return FileChange(path=rel_path, additions=len(lines)), header + "".join(
	    diff)


class GitDiffEvaluator(Evaluator):
	name = "git-diff"
	description = ("Measures the scope of changes: files modified, lines "
	               "added and removed, and how changes are distributed.")
	config_model = GitDiffConfig

	def check_preconditions(
	    self,
	    context: EvaluationContext,
	    config: Mapping[str, Any] | None = None,
	) -> Optional[str]:
		if not (context.modified_dir / ".git").exists():
			return "Git repository not found or not accessible"
		return None

	async def evaluate(self, context: EvaluationContext,
	                   config: GitDiffConfig) -> EvaluationResult:
		repo = context.modified_dir
		timeout = context.config.git_timeout_seconds
		base = config.base_commit

		numstat = await run_git(["diff", "--numstat", base, "--"], cwd=repo,
		                        timeout=timeout)
		patch = await run_git(["diff", base, "--"], cwd=repo, timeout=timeout)
		changes = parse_numstat(numstat)

		untracked = await run_git(
		    ["ls-files", "--others", "--exclude-standard", "-z"], cwd=repo,
		    timeout=timeout)
		for rel in filter(None, untracked.split("\0")):
			change, file_patch = _untracked_patch(repo, rel)
			changes.append(change)
			patch += file_patch
		current = (await run_git(["rev-parse", "HEAD"], cwd=repo,
		                         timeout=timeout)).strip()

		added = sum(c.additions for c in changes)
		removed = sum(c.deletions for c in changes)
		metrics: dict[str, Any] = {
		    "files_changed": len(changes),
		    "lines_added": added,
		    "lines_removed": removed,
		    "total_changes": added + removed,
		    "change_entropy": change_entropy(changes),
		    "changed_files": [{
		        **c.model_dump(), "changes": c.changes
		    } for c in changes],
		    "base_commit": base,
		    "current_commit": current,
		}

		violations: list[str] = []
		if config.assertions is not None:
			violations = check_assertions(metrics, config.assertions)
			if violations:
				metrics["violations"] = violations

		artifacts = []
		if patch.strip():
			artifacts.append(
			    self.save_artifact(
			        context,
			        PATCH_FILE_NAME,
			        patch,
			        type="diff",
			        description="Git diff patch showing all changes",
			    ))

		summary = f"{len(changes)} changed files (+{added}/-{removed} lines)"
		if violations:
			status = EvaluationStatus.FAILED
			message = f"{summary} | Violations: {'; '.join(violations)}"
		else:
			status = EvaluationStatus.PASSED
			message = summary
		logger.debug("git-diff: %s", message)
		return self.result(
		    status,
		    message,
		    metrics=metrics,
		    assertions=(config.assertions.model_dump()
		                if config.assertions else None),
		    artifacts=artifacts,
		)


__all__ = [
    "GitDiffEvaluator",
    "GitDiffConfig",
    "GitDiffAssertions",
    "FileChange",
    "parse_numstat",
    "change_entropy",
    "check_assertions",
]
