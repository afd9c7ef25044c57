"""
Agent bench: an evaluation harness for autonomous coding agents.

Provisions an isolated workspace per run, supervises the agent CLI,
normalizes its output into a canonical log and fans out to evaluators
that score the result.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
