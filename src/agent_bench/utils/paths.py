"""
Path safety utilities.

Workspace naming, containment checks for user-supplied relative paths and
package-relative asset resolution.
"""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath, PureWindowsPath

# Root of the agent_bench package directory.
PACKAGE_DIR: Path = Path(__file__).resolve().parent.parent

_WHITESPACE_RE = re.compile(r"\s+")
_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]")
_LEADING_JUNK_RE = re.compile(r"^[^A-Za-z0-9]+")
MAX_WORKSPACE_NAME = 100


def sanitize_workspace_name(name: str) -> str:
	"""
	Turn a human label into a directory-safe workspace name.

	Spaces become hyphens, anything outside ``[A-Za-z0-9._-]`` is dropped,
	the name must start alphanumeric and is capped at 100 characters.

	Parameters:
		name: Human-readable label.

	Returns:
		Sanitized name, or ``"workspace"`` if nothing usable is left.
	"""
	sanitized = _WHITESPACE_RE.sub("-", name)
	sanitized = _UNSAFE_NAME_RE.sub("", sanitized)
	sanitized = _LEADING_JUNK_RE.sub("", sanitized)
	return sanitized[:MAX_WORKSPACE_NAME] or "workspace"


def is_safe_relative_path(value: str) -> bool:
	"""
	Return True when ``value`` is a relative path without traversal.

	Absolute POSIX paths, drive-letter or UNC paths and any ``..``
	component are rejected.
	"""
	if not value or value.startswith(("/", "\\")):
		return False
	if PureWindowsPath(value).drive:
		return False
	parts = PurePosixPath(value.replace("\\", "/")).parts
	return ".." not in parts


def resolve_asset_path(relative_path: str) -> Path:
	"""Resolve a path as-is if it exists, else against the package."""
	p = Path(relative_path)
	if p.exists():
		return p
	return PACKAGE_DIR / relative_path


def ensure_within(base: Path, path: Path) -> Path:
	"""
	Ensure a path is within the specified base directory.

	Parameters:
		base: The allowed base directory.
		path: The path to validate.

	Returns:
		The original path if valid.

	Raises:
		ValueError: If path escapes the base directory.
	"""
	resolved_base = base.resolve()
	resolved_path = path.resolve()
	if resolved_path == resolved_base or resolved_path.is_relative_to(
	    resolved_base):
		return path
	raise ValueError(f"Path {resolved_path} escapes base {resolved_base}")


__all__ = [
    "PACKAGE_DIR",
    "ensure_within",
    "is_safe_relative_path",
    "resolve_asset_path",
    "sanitize_workspace_name",
]
