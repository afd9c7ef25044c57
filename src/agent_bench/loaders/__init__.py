"""File and resource loading utilities.

This subpackage handles loading test cases and prompt templates.

Key modules:
    - test_case: YAML/JSON test case loading and prompt_file resolution
    - prompts: Packaged prompt templates and instruction files
"""

from .prompts import load_instructions, load_prompt
from .test_case import load_test_case, read_document

__all__ = [
    "load_instructions",
    "load_prompt",
    "load_test_case",
    "read_document",
]
