"""
Utility helpers used by the migration tool.

This subpackage exposes convenience functions for structured logging,
slug sanitization, pre-flight checks and redirect map generation.
"""

from .errors import ERRORS, log_message, report_error, report_ok, write_summary
from .pre_flight_checks import PreFlightCheckError, run_pre_flight_checks
from .redirects import generate_redirects_csv
from .slugs import load_slug_table, sanitize_slug

__all__ = [
    "ERRORS",
    "log_message",
    "report_error",
    "report_ok",
    "write_summary",
    "PreFlightCheckError",
    "run_pre_flight_checks",
    "generate_redirects_csv",
    "load_slug_table",
    "sanitize_slug",
]
