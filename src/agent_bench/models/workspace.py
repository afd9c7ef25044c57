"""
Workspace models.

Describes a per-run directory tree and the lock file guarding it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


class SourceRef(BaseModel):
	"""Where the code under test comes from."""

	repo: str = Field(description="Repository URL or local path")
	branch: Optional[str] = Field(default=None, description="Branch to clone")
	commit: Optional[str] = Field(default=None,
	                              description="Commit to check out")
	expected_branch: Optional[str] = Field(
	    default=None, description="Reference branch for comparisons")


class WorkspacePaths(BaseModel):
	"""Directory layout of one run workspace."""

	root: Path
	run_dir: Path
	modified_dir: Path
	expected_dir: Optional[Path] = None
	artifacts_dir: Path
	evaluator_artifacts_dir: Path
	lock_file: Path


class Workspace(BaseModel):
	"""A provisioned run workspace."""

	run_id: str
	paths: WorkspacePaths
	source: SourceRef
	modified_commit: str = Field(description="HEAD of the mutable clone")
	expected_commit: Optional[str] = Field(
	    default=None, description="HEAD of the reference clone")
	created_at: datetime = Field(
	    default_factory=lambda: datetime.now(timezone.utc))


class LockInfo(BaseModel):
	"""JSON content of a workspace lock file."""

	pid: int
	timestamp: str
	repo: Optional[str] = None


__all__ = ["SourceRef", "WorkspacePaths", "Workspace", "LockInfo"]
