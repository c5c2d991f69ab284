"""
console — depguard's interaction boundary.

Public API:
    Display                  : Coloured, verbosity-aware terminal output.
    prompt_unsecure          : "unsecure" reduced-coverage acknowledgment.
    prompt_force             : "force" policy-block override.
    acknowledge_coverage_gap : Pre-scan acknowledgment flow.
    build_report / write_report : JSON output for machine consumers.
"""

from .display import Display
from .prompt import (
    FORCE_PHRASE,
    UNSECURE_PHRASE,
    acknowledge_coverage_gap,
    prompt_force,
    prompt_unsecure,
)
from .report import build_report, write_report

__all__ = [
    "Display",
    "FORCE_PHRASE",
    "UNSECURE_PHRASE",
    "acknowledge_coverage_gap",
    "prompt_force",
    "prompt_unsecure",
    "build_report",
    "write_report",
]
