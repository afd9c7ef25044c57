"""User interface components.

This subpackage provides console output rendering for the harness.

Key modules:
    - reporting: Summary table, error panel and markdown report
"""

from agent_bench.ui.reporting import (
    format_duration,
    render_error,
    render_report_md,
    render_summary,
    save_report_md,
)

__all__ = [
    "format_duration",
    "render_error",
    "render_report_md",
    "render_summary",
    "save_report_md",
]
