from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import Field, field_validator
from pydantic_core.core_schema import ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

if TYPE_CHECKING:
	from .run_params import RunParams


def load_env(env_file: str | Path | None = None) -> None:
	"""Load environment variables from an `.env` file if present."""
	env_path = Path(env_file) if env_file else Path(".env")
	if env_path.exists():
		load_dotenv(env_path)


class HarnessSettings(BaseSettings):
	"""Runtime settings for the evaluation harness, read from the environment."""

	model_config = SettingsConfigDict(env_prefix="", case_sensitive=False,
	                                  populate_by_name=True)

	workspace_root: str = Field(
	    ".agent-bench-workspace",
	    alias="WORKSPACE_ROOT",
	    description="Root directory holding one subdirectory per run",
	)
	keep_workspace: bool = Field(
	    True,
	    alias="KEEP_WORKSPACE",
	    description="Retain the run workspace after completion",
	)
	git_timeout_seconds: int = Field(
	    300,
	    alias="GIT_TIMEOUT_SECONDS",
	    description="Timeout for each git invocation in seconds",
	)
	agent_timeout_seconds: int = Field(
	    300,
	    alias="AGENT_TIMEOUT_SECONDS",
	    description="Agent timeout when the test case does not set one",
	)
	evaluator_timeout_seconds: int | None = Field(
	    default=None,
	    alias="EVALUATOR_TIMEOUT_SECONDS",
	    description="Optional bound on each evaluator or post-evaluation task",
	)
	max_parallel_evaluators: int | None = Field(
	    default=None,
	    alias="MAX_PARALLEL_EVALUATORS",
	    description="Maximum evaluators running at once (default=all)",
	)
	stream_output: bool = Field(False, alias="STREAM_OUTPUT",
	                            description="Echo agent output to the console")
	log_level: str = Field("info", alias="LOG_LEVEL",
	                       description="Log level for the harness")

	@field_validator("git_timeout_seconds", "agent_timeout_seconds",
	                 "evaluator_timeout_seconds", "max_parallel_evaluators")
	@classmethod
	def validate_positive(cls, v: Any, info: ValidationInfo) -> Any:
		if v is None:
			return v
		if int(v) <= 0:
			raise ValueError(f"{info.field_name} must be > 0")
		return v

	@property
	def workspace_path(self) -> Path:
		"""Return workspace_root as Path."""
		return Path(self.workspace_root)

	def apply_overrides(self, run_params: "RunParams") -> None:
		"""Apply CLI overrides from RunParams onto these settings.

		Only non-None fields in run_params are applied, preserving
		environment-based defaults for anything the user didn't set.

		Parameters:
			run_params: Validated run parameters with optional overrides.
		"""
		_OVERRIDES: list[tuple[str, str]] = [
		    ("workspace_dir", "workspace_root"),
		    ("keep_workspace", "keep_workspace"),
		    ("stream_output", "stream_output"),
		]
		for param_field, settings_field in _OVERRIDES:
			value = getattr(run_params, param_field)
			if value is not None:
				setattr(self, settings_field, value)


__all__ = ["HarnessSettings", "load_env"]
