"""
Prompt loading utilities.

Provides functions for loading prompt templates from the prompts directory
and from user-supplied instruction files.
"""

from __future__ import annotations

from pathlib import Path

from agent_bench.utils.paths import resolve_asset_path

# Prompts directory relative to this module
PROMPTS_DIR = Path(__file__).resolve().parents[1] / "prompts"


def load_prompt(name: str) -> str:
	"""
	Load a prompt file from the prompts directory.

	Parameters:
		name: Filename of the prompt to load.

	Returns:
		Contents of the prompt file.
	"""
	return (PROMPTS_DIR / name).read_text(encoding="utf-8")


def load_instructions(path: str | Path) -> str:
	"""
	Load an instructions template.

	Supports absolute, cwd-relative, or package-relative paths.

	Raises:
		FileNotFoundError: If no candidate path exists.
	"""
	p = resolve_asset_path(str(path))
	if not p.exists():
		raise FileNotFoundError(f"instructions file not found: {path}")
	return p.read_text(encoding="utf-8")


__all__ = ["PROMPTS_DIR", "load_prompt", "load_instructions"]
