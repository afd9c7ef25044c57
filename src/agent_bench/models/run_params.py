"""
Run parameters model.

Defines validated parameters for one CLI invocation of the harness.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from pydantic_core.core_schema import ValidationInfo

from agent_bench.utils.paths import sanitize_workspace_name


class RunParams(BaseModel):
	"""Validated run parameters for the CLI and orchestrator."""

	config_file: Path = Field(description="Test case config file")
	label: Optional[str] = Field(default=None,
	                             description="Human label for the run id")
	timeout: Optional[int] = Field(default=None,
	                               description="Agent timeout in seconds")
	workspace_dir: Optional[str] = Field(
	    default=None, description="Override workspace root")
	keep_workspace: Optional[bool] = Field(
	    default=None, description="Retain the workspace after the run")
	stream_output: Optional[bool] = Field(
	    default=None, description="Echo agent output to the console")

	@field_validator('config_file')
	@classmethod
	def validate_config_file(cls, v: Path) -> Path:
		if v.suffix.lower() not in (".yaml", ".yml", ".json"):
			raise ValueError("config_file must be .yaml, .yml or .json")
		return v

	@field_validator('timeout')
	@classmethod
	def validate_positive(cls, v: Optional[int],
	                      info: ValidationInfo) -> Optional[int]:
		if v is None:
			return v
		if v <= 0:
			raise ValueError(f"{info.field_name} must be > 0")
		return v

	@property
	def label_slug(self) -> Optional[str]:
		if not self.label:
			return None
		return sanitize_workspace_name(self.label)


__all__ = ["RunParams"]
