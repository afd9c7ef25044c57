"""
Text parsing utilities.

Terminal-escape stripping and tolerant JSON extraction from free-form
agent output.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, Iterator, Optional

# CSI sequences (colors, cursor movement), OSC sequences (titles, links)
# and two-character escapes.
ANSI_RE = re.compile(
    r"\x1B\][^\x07\x1B]*(?:\x07|\x1B\\)"
    r"|\x1B\[[0-?]*[ -/]*[@-~]"
    r"|\x1B[@-Z\\-_]")
ANY_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.S)


def strip_ansi(text: str) -> str:
	"""Remove terminal color and control escape sequences."""
	return ANSI_RE.sub("", text)


def _balanced_objects(text: str) -> Iterator[str]:
	"""Yield every top-level balanced ``{...}`` span in order."""
	depth = 0
	start: Optional[int] = None
	in_string = False
	escaped = False
	for i, ch in enumerate(text):
		if in_string:
			if escaped:
				escaped = False
			elif ch == "\\":
				escaped = True
			elif ch == '"':
				in_string = False
			continue
		if ch == '"' and depth > 0:
			in_string = True
		elif ch == "{":
			if depth == 0:
				start = i
			depth += 1
		elif ch == "}" and depth > 0:
			depth -= 1
			if depth == 0 and start is not None:
				yield text[start:i + 1]
				start = None


def iter_json_candidates(text: str) -> Iterator[str]:
	"""
	Yield JSON-looking substrings, most likely first.

	Order: fenced blocks (last first), the whole text, then balanced
	objects (last first).
	"""
	for m in reversed(list(ANY_FENCE_RE.finditer(text))):
		yield m.group(1).strip()
	yield text.strip()
	yield from reversed(list(_balanced_objects(text)))


def extract_json(text: str,
                 required_keys: Iterable[str] = ()) -> Optional[Any]:
	"""
	Extract the first parseable JSON value from text.

	Parameters:
		text: Input text containing JSON somewhere.
		required_keys: When given, only dict values holding all of these
			keys are accepted.

	Returns:
		Parsed JSON value, or None if no candidate qualifies.
	"""
	required = tuple(required_keys)
	for cand in iter_json_candidates(text or ""):
		if not cand:
			continue
		try:
			value = json.loads(cand)
		except ValueError:
			continue
		if required:
			if not isinstance(value, dict):
				continue
			if not all(k in value for k in required):
				continue
		return value
	return None


__all__ = ["strip_ansi", "extract_json", "iter_json_candidates"]
