"""
Structured logging helpers for migration events.

The :mod:`wp_migrator.utils.errors` module centralizes the writing of log
lines and per-item event entries during the migration.  Plain log lines are
printed with a ``[LEVEL]`` prefix and appended to ``migration.log``; item
events are appended to JSON Lines files under the report directory so that
the information can be reviewed or parsed after a run.

Three public functions are provided:

``log_message``
    Print a level-tagged line and append it to the run log.

``report_error``
    Record an error or skip that occurred for a content item.  An optional
    exception can be supplied and will be serialized to the log.

``report_ok``
    Record a successful step for a content item.  Additional key/value
    information can be attached to the entry via the ``extra`` parameter.

The ``ERRORS`` dictionary maps event codes to human readable messages.
Codes not present in the dictionary fall back to the code itself.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

# Mapping of event codes used throughout the migration to descriptive messages.
# The keys include both error and success codes as the same lookup is used by
# :func:`report_error` and :func:`report_ok`.
ERRORS: Dict[str, str] = {
    "ALREADY_MIGRATED": "Item already exists in the destination tenant",
    "DUPLICATE_SLUG": "Slug already claimed earlier in this run",
    "REFERENCE_UNRESOLVED": "Could not resolve a taxonomy or author reference",
    "ASSET_UNAVAILABLE": "Asset could not be downloaded, transcoded or uploaded",
    "PERSIST_FAILED": "Failed to write the item to the destination store",
    "ITEM_FAILED": "Unexpected error while migrating the item",
    "PARENT_UNRESOLVED": "Could not resolve the parent page",
    "LINK_REVIEW": "Single-segment link rewritten outside the page index",
    "REFERENCE_MERGED": "Distinct source taxonomies merged by display name",
    "ARTICLE_CREATED": "Article created successfully",
    "PAGE_CREATED": "Page created successfully",
    "PARENT_LINKED": "Page parent linked",
}

DEFAULT_REPORT_DIR = os.path.join("reports", "migration")
ERROR_LOG = "errors.jsonl"
OK_LOG = "success.jsonl"
RUN_LOG = "migration.log"


def _write_jsonl(path: str, data: Dict[str, Any]) -> None:
    """Append ``data`` as a JSON object followed by a newline to ``path``."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, default=str)
        f.write("\n")


def log_message(message: str, level: str = "INFO", report_dir: Optional[str] = DEFAULT_REPORT_DIR) -> None:
    """Print ``message`` with its level and append it to the run log.

    Passing ``report_dir=None`` keeps the line on stdout only.
    """
    print(f"[{level}] {message}")
    if not report_dir:
        return
    os.makedirs(report_dir, exist_ok=True)
    with open(os.path.join(report_dir, RUN_LOG), "a", encoding="utf-8") as f:
        f.write(f"{level}: {message}\n")


def console_log(message: str, level: str = "INFO") -> None:
    """Stdout-only variant of :func:`log_message`."""
    log_message(message, level, report_dir=None)


def report_error(
    code: str,
    item: Dict[str, Any],
    exc: Optional[Exception] = None,
    *,
    report_dir: Optional[str] = DEFAULT_REPORT_DIR,
) -> Dict[str, Any]:
    """Log an error event for ``item``.

    Parameters
    ----------
    code:
        A key identifying the type of error.  If ``code`` is present in
        :data:`ERRORS` its value will be used as the message.
    item:
        Identifying fields of the content item (``kind``, ``source_id``,
        ``slug``, ``title``); any other keys are copied into the entry.
    exc:
        Optional exception instance that triggered the error.  The string
        representation of the exception will be included in the log entry.
    report_dir:
        Directory receiving ``errors.jsonl``; ``None`` disables the file.

    Returns
    -------
    dict
        The entry that was written.
    """
    message = ERRORS.get(code, code)
    entry: Dict[str, Any] = {"code": code, "message": message, **item}
    if exc is not None:
        entry["error"] = str(exc)
    print(f"[ERROR] {message} - {item.get('slug', '')}")
    if report_dir:
        _write_jsonl(os.path.join(report_dir, ERROR_LOG), entry)
    return entry


def report_ok(
    code: str,
    item: Dict[str, Any],
    extra: Optional[Dict[str, Any]] = None,
    *,
    report_dir: Optional[str] = DEFAULT_REPORT_DIR,
) -> Dict[str, Any]:
    """Log a successful event for ``item``.

    Parameters
    ----------
    code:
        A key identifying the type of event.
    item:
        Identifying fields of the content item.
    extra:
        Optional dictionary of additional fields to merge into the log entry.
    report_dir:
        Directory receiving ``success.jsonl``; ``None`` disables the file.
    """
    message = ERRORS.get(code, code)
    entry: Dict[str, Any] = {"code": code, "message": message, **item}
    if extra:
        entry.update(extra)
    print(f"[OK] {message} - {item.get('slug', '')}")
    if report_dir:
        _write_jsonl(os.path.join(report_dir, OK_LOG), entry)
    return entry


def write_summary(summary: Dict[str, Any], *, report_dir: Optional[str] = DEFAULT_REPORT_DIR) -> Optional[str]:
    """Write the final run summary as ``summary.json`` and return its path."""
    if not report_dir:
        return None
    os.makedirs(report_dir, exist_ok=True)
    path = os.path.join(report_dir, "summary.json")
    with open(path, "w", encoding="utf-8") as f:
        json.dump(summary, f, ensure_ascii=False, indent=2, default=str)
    return path
