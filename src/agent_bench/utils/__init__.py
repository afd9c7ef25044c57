"""Shared utility functions.

This subpackage provides common helpers used across the harness with no
dependencies on other subpackages.

Key modules:
    - parsing: ANSI stripping and tolerant JSON extraction
    - paths: Workspace naming and path safety checks
    - logging: Logging configuration and secret redaction
"""

from .parsing import extract_json, iter_json_candidates, strip_ansi
from .paths import (
    ensure_within,
    is_safe_relative_path,
    resolve_asset_path,
    sanitize_workspace_name,
)
from .logging import configure_logging, get_logger, redact_secrets

__all__ = [
    # parsing
    "extract_json",
    "iter_json_candidates",
    "strip_ansi",
    # paths
    "ensure_within",
    "is_safe_relative_path",
    "resolve_asset_path",
    "sanitize_workspace_name",
    # logging
    "configure_logging",
    "get_logger",
    "redact_secrets",
]
