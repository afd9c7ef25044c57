"""
Run progress tracking models.

Defines the stages an evaluation run moves through and a small tracker
that records transitions for logging and progress callbacks.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class RunStage(str, Enum):
	"""
	Lifecycle stages of one evaluation run.

	Stages advance strictly in declaration order; PRE_EXECUTED and
	POST_EVALUATED are skipped when no hooks are configured. ABORTED is
	terminal and reachable from any stage.
	"""

	INITIALIZING = "initializing"
	WORKSPACE_READY = "workspace_ready"
	PRE_EXECUTED = "pre_executed"
	AGENT_EXECUTED = "agent_executed"
	EVALUATED = "evaluated"
	BUNDLE_BUILT = "bundle_built"
	POST_EVALUATED = "post_evaluated"
	FINALIZED = "finalized"
	ABORTED = "aborted"


_ORDER = [s for s in RunStage if s != RunStage.ABORTED]


class RunProgress(BaseModel):
	"""Stage tracker for a single run."""

	stage: RunStage = RunStage.INITIALIZING
	last_event: Optional[str] = None
	history: List[RunStage] = Field(
	    default_factory=lambda: [RunStage.INITIALIZING])
	updated_at: datetime = Field(
	    default_factory=lambda: datetime.now(timezone.utc))

	def advance(self, stage: RunStage, msg: str | None = None) -> None:
		"""
		Move to ``stage``.

		Raises:
			ValueError: If the run is terminal or the move goes backwards.
		"""
		if self.stage in (RunStage.FINALIZED, RunStage.ABORTED):
			raise ValueError(f"run already {self.stage.value}")
		if stage != RunStage.ABORTED and _ORDER.index(stage) <= _ORDER.index(
		    self.stage):
			raise ValueError(
			    f"cannot move from {self.stage.value} to {stage.value}")
		self.stage = stage
		self.history.append(stage)
		self.last_event = msg or stage.value
		self.updated_at = datetime.now(timezone.utc)


__all__ = ["RunStage", "RunProgress"]
